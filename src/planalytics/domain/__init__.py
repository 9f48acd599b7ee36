"""
Domain schemas shared by every planning component.

All inputs and outputs are pydantic models so they serialize to plain data.
"""

from planalytics.domain.confidence import (
    AggregateConfidence,
    ConfidenceConfig,
    ConfidenceFactors,
    ConfidenceTier,
    ConfidenceWeights,
    InputData,
    SectionConfidence,
    SectionConfidenceParams,
)
from planalytics.domain.estimation import (
    AccuracyStats,
    BandAccuracy,
    ComplexityBand,
    Estimate,
    EstimateParams,
    EstimateRange,
    EstimationRecord,
    RecordEstimateParams,
)
from planalytics.domain.prioritization import (
    PrioritizationParams,
    PrioritizationReasoning,
    PrioritizationResult,
    PrioritizationWeights,
    PrioritizedItem,
    PriorityFactors,
    PriorityTier,
    RiskTolerance,
)
from planalytics.domain.risk import (
    Level,
    Mitigation,
    MitigationStrategy,
    RiskAssessment,
    RiskAssessmentParams,
    RiskCategory,
    SprintRisk,
)
from planalytics.domain.sprint import (
    CapacityBuffer,
    CapacityParams,
    MemberAvailability,
    SprintCapacity,
    SprintMetrics,
    TeamAvailability,
    TeamMember,
)
from planalytics.domain.suggestion import SprintSuggestion, SprintSuggestionParams, SuggestedItem
from planalytics.domain.work_items import DependencyEdge, GraphAnalysis, Priority, WorkItem

__all__ = [
    "AccuracyStats",
    "AggregateConfidence",
    "BandAccuracy",
    "CapacityBuffer",
    "CapacityParams",
    "ComplexityBand",
    "ConfidenceConfig",
    "ConfidenceFactors",
    "ConfidenceTier",
    "ConfidenceWeights",
    "DependencyEdge",
    "Estimate",
    "EstimateParams",
    "EstimateRange",
    "EstimationRecord",
    "GraphAnalysis",
    "InputData",
    "Level",
    "MemberAvailability",
    "Mitigation",
    "MitigationStrategy",
    "PrioritizationParams",
    "PrioritizationReasoning",
    "PrioritizationResult",
    "PrioritizationWeights",
    "PrioritizedItem",
    "Priority",
    "PriorityFactors",
    "PriorityTier",
    "RecordEstimateParams",
    "RiskAssessment",
    "RiskAssessmentParams",
    "RiskCategory",
    "RiskTolerance",
    "SectionConfidence",
    "SectionConfidenceParams",
    "SprintCapacity",
    "SprintMetrics",
    "SprintRisk",
    "SprintSuggestion",
    "SprintSuggestionParams",
    "SuggestedItem",
    "TeamAvailability",
    "TeamMember",
    "WorkItem",
]
