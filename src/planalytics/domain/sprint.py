"""
Sprint capacity schemas.
"""

from datetime import date
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from planalytics.domain.confidence import SectionConfidence


class TeamMember(BaseModel):
    id: str
    name: str = ""
    availability: float = 1.0  # 0-1, clamped
    skills: List[str] = Field(default_factory=list)

    @field_validator("availability")
    @classmethod
    def _clamp_availability(cls, v: float) -> float:
        return min(1.0, max(0.0, v))


class SprintMetrics(BaseModel):
    sprint_id: str
    sprint_name: Optional[str] = None
    planned_points: float = Field(..., ge=0)
    completed_points: float = Field(..., ge=0)
    duration_days: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class CapacityParams(BaseModel):
    velocity: Union[float, Literal["auto"]] = "auto"
    sprint_duration_days: int = Field(10, gt=0)
    team_members: List[TeamMember] = Field(default_factory=list)
    historical_sprints: List[SprintMetrics] = Field(default_factory=list)
    buffer_percentage: Optional[float] = Field(None, ge=0.0, lt=1.0)


class MemberAvailability(BaseModel):
    id: str
    name: str
    availability: float
    effective_availability: float  # after low-availability discount


class TeamAvailability(BaseModel):
    total_availability: float  # mean effective availability, 1.0 for no team
    member_count: int
    members: List[MemberAvailability]
    members_above_threshold: int


class CapacityBuffer(BaseModel):
    percentage: float  # 0-100
    reasoning: str


class SprintCapacity(BaseModel):
    total_points: int
    recommended_load: int
    velocity: float
    velocity_source: Literal["provided", "historical", "default"]
    calibration_factor: Optional[float] = None  # medium-band factor applied to total_points
    team_availability: TeamAvailability
    buffer: CapacityBuffer
    confidence: SectionConfidence
