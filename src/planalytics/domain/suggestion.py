"""
Sprint composition schemas.
"""

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from planalytics.domain.confidence import SectionConfidence
from planalytics.domain.prioritization import RiskTolerance
from planalytics.domain.risk import Mitigation, SprintRisk
from planalytics.domain.sprint import CapacityParams, SprintCapacity, SprintMetrics, TeamMember
from planalytics.domain.work_items import WorkItem


class SprintSuggestionParams(BaseModel):
    backlog_items: List[WorkItem] = Field(default_factory=list)
    velocity: Union[float, Literal["auto"]] = "auto"
    sprint_duration_days: int = Field(10, gt=0)
    team_members: List[TeamMember] = Field(default_factory=list)
    historical_sprints: List[SprintMetrics] = Field(default_factory=list)
    buffer_percentage: Optional[float] = Field(None, ge=0.0, lt=1.0)
    business_goals: List[str] = Field(default_factory=list)
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM

    def capacity_params(self) -> CapacityParams:
        return CapacityParams(
            velocity=self.velocity,
            sprint_duration_days=self.sprint_duration_days,
            team_members=self.team_members,
            historical_sprints=self.historical_sprints,
            buffer_percentage=self.buffer_percentage,
        )


class SuggestedItem(BaseModel):
    item_id: str
    title: str
    points: float
    priority_score: int
    include_reason: str
    pulled_in_by: Optional[str] = None  # set when included as a dependency


class SprintSuggestion(BaseModel):
    suggested_items: List[SuggestedItem]
    total_points: float
    capacity_utilization: float  # total_points / recommended_load
    capacity: SprintCapacity
    reasoning: str
    risks: List[SprintRisk] = Field(default_factory=list)
    mitigations: List[Mitigation] = Field(default_factory=list)
    deferred_items: List[str] = Field(default_factory=list)
    confidence: SectionConfidence
