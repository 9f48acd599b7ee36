"""
Sprint risk schemas.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from planalytics.domain.confidence import SectionConfidence
from planalytics.domain.sprint import SprintCapacity
from planalytics.domain.work_items import DependencyEdge, WorkItem


class RiskCategory(str, Enum):
    SCOPE = "scope"
    DEPENDENCY = "dependency"
    CAPACITY = "capacity"
    TECHNICAL = "technical"
    EXTERNAL = "external"


class Level(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MitigationStrategy(str, Enum):
    AVOID = "avoid"
    MITIGATE = "mitigate"
    TRANSFER = "transfer"
    ACCEPT = "accept"


class SprintRisk(BaseModel):
    id: str
    category: RiskCategory
    title: str
    description: str
    probability: Level
    impact: Level
    related_items: List[str] = Field(default_factory=list)


class Mitigation(BaseModel):
    risk_id: str
    strategy: MitigationStrategy
    action: str
    effort: Level
    effectiveness: float = Field(..., ge=0.0, le=1.0)


class RiskAssessmentParams(BaseModel):
    """Either a full capacity result or a bare recommended load must be given."""

    sprint_items: List[WorkItem] = Field(default_factory=list)
    sprint_capacity: Optional[SprintCapacity] = None
    recommended_load: Optional[float] = Field(None, ge=0)
    dependencies: List[DependencyEdge] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_load(self) -> "RiskAssessmentParams":
        if self.sprint_capacity is None and self.recommended_load is None:
            raise ValueError("sprint_capacity or recommended_load is required")
        return self

    @property
    def effective_load(self) -> float:
        if self.recommended_load is not None:
            return self.recommended_load
        return float(self.sprint_capacity.recommended_load)


class RiskAssessment(BaseModel):
    risks: List[SprintRisk]
    mitigations: List[Mitigation]
    overall_risk: Level
    risk_score: int = Field(..., ge=0, le=100)
    confidence: SectionConfidence
