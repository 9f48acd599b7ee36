"""
Confidence scoring schemas.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ConfidenceFactors(BaseModel):
    input_completeness: float = Field(..., ge=0.0, le=1.0)
    ai_self_assessment: float = Field(..., ge=0.0, le=1.0)
    pattern_match: float = Field(..., ge=0.0, le=1.0)


class ConfidenceWeights(BaseModel):
    input_completeness: float = Field(0.4, ge=0.0)
    ai_self_assessment: float = Field(0.3, ge=0.0)
    pattern_match: float = Field(0.3, ge=0.0)


class ConfidenceConfig(BaseModel):
    warning_threshold: int = 70
    error_threshold: int = 50
    weights: ConfidenceWeights = Field(default_factory=ConfidenceWeights)


class InputData(BaseModel):
    """Shape of the material a section was generated from."""

    description: str = ""
    examples: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    context: str = ""
    requirements: List[str] = Field(default_factory=list)


class SectionConfidenceParams(BaseModel):
    section_id: str
    section_name: Optional[str] = None
    input_data: InputData = Field(default_factory=InputData)
    ai_self_assessment: Optional[float] = Field(None, ge=0.0, le=1.0)
    ai_reasoning: Optional[str] = None
    uncertain_areas: List[str] = Field(default_factory=list)
    pattern_match: Optional[float] = Field(None, ge=0.0, le=1.0)
    content: Optional[str] = None


class SectionConfidence(BaseModel):
    section_id: str
    score: int = Field(..., ge=0, le=100)
    tier: ConfidenceTier
    factors: ConfidenceFactors
    needs_review: bool
    clarifying_questions: Optional[List[str]] = None
    reasoning: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AggregateConfidence(BaseModel):
    overall_score: int
    overall_tier: ConfidenceTier
    low_confidence_sections: List[str]
    total_sections: int
    sections_needing_review: int
