"""
Planalytics - Planning Schedulers

This package contains the planning algorithms built on top of the analysis
layer:

- SprintCapacityAnalyzer: Usable capacity from velocity and availability
- BacklogPrioritizer: Multi-factor backlog ranking
- SprintRiskAssessor: Rule-based sprint risk detection
- SprintSuggestionService: Capacity-bounded sprint composition
"""

from .base import SchedulerBase
from .capacity_analyzer import SprintCapacityAnalyzer
from .backlog_prioritizer import BacklogPrioritizer
from .risk_assessor import SprintRiskAssessor
from .sprint_suggestion import SprintSuggestionService

__all__ = [
    "SchedulerBase",
    "SprintCapacityAnalyzer",
    "BacklogPrioritizer",
    "SprintRiskAssessor",
    "SprintSuggestionService",
]
