"""
Backlog prioritization schemas.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from planalytics.domain.confidence import SectionConfidence
from planalytics.domain.work_items import WorkItem


class RiskTolerance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PriorityTier(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PrioritizationWeights(BaseModel):
    business_value: float = Field(0.4, ge=0.0)
    dependencies: float = Field(0.25, ge=0.0)
    risk: float = Field(0.2, ge=0.0)
    effort: float = Field(0.15, ge=0.0)


class PrioritizationParams(BaseModel):
    backlog_items: List[WorkItem] = Field(default_factory=list)
    sprint_capacity: float = Field(20, ge=0)
    business_goals: List[str] = Field(default_factory=list)
    risk_tolerance: RiskTolerance = RiskTolerance.MEDIUM
    weights: Optional[Dict[str, float]] = Field(
        None, description="Per-factor overrides, merged over the default weights"
    )


class PriorityFactors(BaseModel):
    business_value: float = Field(..., ge=0.0, le=1.0)
    dependency_score: float = Field(..., ge=0.0, le=1.0)
    risk_score: float = Field(..., ge=0.0, le=1.0)
    effort_fit: float = Field(..., ge=0.0, le=1.0)


class PrioritizedItem(BaseModel):
    item_id: str
    title: str
    score: int = Field(..., ge=0, le=100)
    priority: PriorityTier
    factors: PriorityFactors
    reasoning: str


class PrioritizationReasoning(BaseModel):
    methodology: str
    weightings: PrioritizationWeights
    tradeoffs: List[str] = Field(default_factory=list)


class PrioritizationResult(BaseModel):
    prioritized_items: List[PrioritizedItem]
    reasoning: PrioritizationReasoning
    confidence: SectionConfidence
    cycles: List[List[str]] = Field(default_factory=list)
    ai_assisted_items: int = 0  # items whose business value used an AI signal
