"""
Base Scheduler class for planning schedulers.

Provides common functionality for settings, logging, confidence scoring and
the optional AI self-assessment seam.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from planalytics.ai_providers import SelfAssessmentProvider
from planalytics.analysis.confidence import ConfidenceScorer
from planalytics.platform.config import Settings, get_settings
from planalytics.platform.logging import get_logger


class SchedulerBase(ABC):
    """
    Base class for all planning schedulers.

    Provides:
    - Settings access
    - Structured logging
    - Confidence scoring
    - Guarded access to an optional self-assessment provider
    """

    SECTION_ID = "scheduler"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        assessor: Optional[SelfAssessmentProvider] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            settings: Engine settings, defaults to the cached environment settings
            assessor: Optional AI self-assessment provider
            scorer: Confidence scorer shared with other schedulers
        """
        self.settings = settings or get_settings()
        self.assessor = assessor
        self.scorer = scorer or ConfidenceScorer(settings=self.settings)
        self.logger = get_logger(self.__class__.__name__, section=self.SECTION_ID)

    def request_self_assessment(self, payload: Dict[str, Any]) -> Optional[float]:
        """
        Ask the assessor for a 0-1 signal.

        Returns None when no assessor is configured, it has no opinion, it
        fails, or it answers outside [0, 1].
        """
        if self.assessor is None:
            return None
        try:
            value = self.assessor.get_self_assessment(payload)
        except Exception as e:
            self.logger.warning("Self-assessment provider failed", kind=payload.get("kind"), error=str(e))
            return None
        if value is None:
            return None
        if not 0.0 <= value <= 1.0:
            self.logger.warning("Self-assessment out of range", kind=payload.get("kind"), value=value)
            return None
        return float(value)

    def clamp(self, value: float, low: float = 0.0, high: float = 1.0) -> float:
        return max(low, min(high, value))

    def normalize_score(
        self,
        value: float,
        min_val: float,
        max_val: float,
        invert: bool = False
    ) -> float:
        """
        Normalize a value to the 0-1 scale.

        Args:
            value: The value to normalize
            min_val: Minimum expected value
            max_val: Maximum expected value
            invert: If True, higher input values produce lower scores

        Returns:
            Normalized score 0-1
        """
        if max_val == min_val:
            return 0.5

        normalized = (value - min_val) / (max_val - min_val)
        normalized = max(0.0, min(1.0, normalized))

        if invert:
            normalized = 1.0 - normalized

        return normalized

    @abstractmethod
    def run(self, params: Any) -> Any:
        """
        Main entry point for the scheduler.

        Must be implemented by subclasses.
        """
        pass
