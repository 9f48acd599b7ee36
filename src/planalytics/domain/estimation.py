"""
Estimation calibration schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ComplexityBand(str, Enum):
    LOW = "low"  # complexity 1-3
    MEDIUM = "medium"  # 4-6
    HIGH = "high"  # 7-10


class EstimationRecord(BaseModel):
    task_id: str
    title: Optional[str] = None
    estimated_points: float = Field(..., gt=0)
    actual_points: Optional[float] = Field(None, ge=0)
    complexity: int = Field(..., ge=1, le=10)
    complexity_band: ComplexityBand
    tags: List[str] = Field(default_factory=list)
    estimated_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.actual_points is not None


class RecordEstimateParams(BaseModel):
    task_id: str
    title: Optional[str] = None
    estimated_points: float = Field(..., gt=0)
    complexity: int = Field(..., ge=1, le=10)
    tags: List[str] = Field(default_factory=list)


class EstimateParams(BaseModel):
    complexity: int = Field(..., ge=1, le=10)
    title: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class EstimateRange(BaseModel):
    low: int
    high: int


class Estimate(BaseModel):
    points: int
    range: EstimateRange
    confidence: int = Field(..., ge=0, le=100)
    calibrated: bool
    calibration_factor: Optional[float] = None
    reasoning: str


class BandAccuracy(BaseModel):
    sample_count: int
    avg_error: float
    calibration_factor: Optional[float] = None


class AccuracyStats(BaseModel):
    total_records: int
    completed_records: int
    accuracy_by_band: Dict[ComplexityBand, BandAccuracy]
