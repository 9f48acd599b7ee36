"""
Sprint Capacity Analyzer

Computes usable sprint capacity from velocity (given or derived from
history) and team availability, then withholds a buffer for unplanned work.

Capacity Model:
- total_points = floor(velocity x mean effective availability x calibration)
- recommended_load = floor(total_points x (1 - buffer))
- calibration is the calibrator's medium-band factor, 1.0 without one
- members below the low-availability threshold contribute sub-linearly

Usage:
    analyzer = SprintCapacityAnalyzer()

    capacity = analyzer.calculate_capacity({
        "velocity": "auto",
        "team_members": [{"id": "u1", "availability": 0.8}],
        "historical_sprints": history,
    })
"""

import math
from datetime import date
from statistics import mean, pstdev
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from planalytics.analysis.confidence import ConfidenceScorer
from planalytics.analysis.estimation import EstimationCalibrator
from planalytics.domain.confidence import ConfidenceFactors, SectionConfidence
from planalytics.domain.estimation import ComplexityBand
from planalytics.domain.sprint import (
    CapacityBuffer,
    CapacityParams,
    MemberAvailability,
    SprintCapacity,
    SprintMetrics,
    TeamAvailability,
    TeamMember,
)
from planalytics.errors import coerce_params
from planalytics.platform.config import Settings

from .base import SchedulerBase


# Absorbs float noise such as 100 * 0.58 == 57.99999999999999
FLOOR_TOLERANCE = 1e-9


def floor_points(value: float) -> int:
    """Round point totals down, the same way for every input."""
    return math.floor(value + FLOOR_TOLERANCE)


class SprintCapacityAnalyzer(SchedulerBase):
    """
    Calculates sprint capacity and recommended load.

    An optional EstimationCalibrator scales capacity by its medium-band
    calibration factor once that band has enough history, and raises
    confidence.
    """

    # Most recent sprints considered for "auto" velocity
    VELOCITY_WINDOW = 5

    # Trimmed-mean outlier filter (needs this many sprints)
    MIN_TRIM_SAMPLES = 4
    OUTLIER_DISTANCE = 0.5  # fraction of the trimmed mean

    MIN_CONFIDENT_HISTORY = 3

    # Buffer recommendation by coefficient of variation of completion ratio
    HIGH_VARIANCE_CV = 0.3
    MODERATE_VARIANCE_CV = 0.15

    # Buffer reasoning bands (percent)
    LOW_BUFFER_PERCENT = 15
    HIGH_BUFFER_PERCENT = 30

    SECTION_ID = "sprint-capacity"

    def __init__(
        self,
        calibrator: Optional[EstimationCalibrator] = None,
        settings: Optional[Settings] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        super().__init__(settings=settings, scorer=scorer)
        self.calibrator = calibrator

    def run(self, params: Union[CapacityParams, Mapping[str, Any]]) -> SprintCapacity:
        return self.calculate_capacity(params)

    def calculate_capacity(self, params: Union[CapacityParams, Mapping[str, Any]]) -> SprintCapacity:
        """
        Calculate capacity for one sprint.

        Args:
            params: CapacityParams or equivalent mapping

        Returns:
            SprintCapacity with totals, per-member availability, buffer and confidence
        """
        params = coerce_params(CapacityParams, params, "capacity params")

        velocity, source = self._resolve_velocity(params)
        availability = self.calculate_team_availability(params.team_members)

        calibration_factor = self._calibration_factor()
        raw_total = velocity * availability.total_availability * (calibration_factor or 1.0)
        total_points = max(1, floor_points(raw_total)) if raw_total > 0 else 0

        buffer = (
            params.buffer_percentage
            if params.buffer_percentage is not None
            else self.settings.DEFAULT_BUFFER_PERCENTAGE
        )
        recommended_load = floor_points(total_points * (1 - buffer))

        confidence = self._calculate_confidence(params, source, availability, calibration_factor)

        self.logger.info(
            "Sprint capacity calculated",
            velocity=velocity,
            velocity_source=source,
            total_points=total_points,
            recommended_load=recommended_load,
            buffer=buffer,
            calibration_factor=calibration_factor,
        )

        return SprintCapacity(
            total_points=total_points,
            recommended_load=recommended_load,
            velocity=round(velocity, 2),
            velocity_source=source,
            calibration_factor=round(calibration_factor, 4) if calibration_factor is not None else None,
            team_availability=availability,
            buffer=CapacityBuffer(
                percentage=round(buffer * 100, 2),
                reasoning=self._buffer_reasoning(buffer),
            ),
            confidence=confidence,
        )

    # =========================================================================
    # Velocity
    # =========================================================================

    def _resolve_velocity(self, params: CapacityParams) -> Tuple[float, str]:
        if params.velocity != "auto":
            return float(params.velocity), "provided"

        historical = self.calculate_historical_velocity(params.historical_sprints)
        if historical is None:
            return float(self.settings.DEFAULT_VELOCITY), "default"
        return historical, "historical"

    def _remove_outliers(self, values: List[float]) -> List[float]:
        """Drop values far from the trimmed mean (min and max excluded)."""
        if len(values) < self.MIN_TRIM_SAMPLES:
            return values

        trimmed = sorted(values)[1:-1]
        center = mean(trimmed)
        limit = center * self.OUTLIER_DISTANCE
        return [v for v in values if abs(v - center) <= limit]

    def calculate_historical_velocity(self, history: Iterable[SprintMetrics]) -> Optional[float]:
        """
        Recency-weighted average of completed points.

        The most recent sprint (by end date, then input order) gets weight 1,
        the next 1/2, then 1/3, and so on.

        Returns:
            Velocity, or None when there is no usable history
        """
        indexed = list(enumerate(history))
        if not indexed:
            return None

        # Newest first; undated sprints count as oldest, later input wins ties
        indexed.sort(key=lambda pair: (pair[1].end_date or date.min, pair[0]), reverse=True)
        recent = [s.completed_points for _, s in indexed[: self.VELOCITY_WINDOW]]

        kept = self._remove_outliers(recent)
        if not kept:
            return None

        weights = [1 / (i + 1) for i in range(len(kept))]
        return sum(v * w for v, w in zip(kept, weights)) / sum(weights)

    # =========================================================================
    # Availability
    # =========================================================================

    def effective_availability(self, availability: float) -> float:
        """
        Availability credited to one member.

        Below the threshold a member contributes availability^2 / threshold,
        which is continuous at the threshold and sub-linear beneath it.
        """
        threshold = self.settings.LOW_AVAILABILITY_THRESHOLD
        availability = self.clamp(availability)
        if threshold <= 0 or availability >= threshold:
            return availability
        return availability * availability / threshold

    def calculate_team_availability(self, members: List[TeamMember]) -> TeamAvailability:
        if not members:
            return TeamAvailability(
                total_availability=1.0,
                member_count=0,
                members=[],
                members_above_threshold=0,
            )

        details = [
            MemberAvailability(
                id=m.id,
                name=m.name or m.id,
                availability=m.availability,
                effective_availability=round(self.effective_availability(m.availability), 4),
            )
            for m in members
        ]
        threshold = self.settings.LOW_AVAILABILITY_THRESHOLD
        return TeamAvailability(
            total_availability=mean(d.effective_availability for d in details),
            member_count=len(details),
            members=details,
            members_above_threshold=sum(1 for m in members if m.availability >= threshold),
        )

    # =========================================================================
    # Buffer
    # =========================================================================

    def _buffer_reasoning(self, buffer: float) -> str:
        percent = round(buffer * 100)
        if percent < self.LOW_BUFFER_PERCENT:
            return (
                f"Low {percent}% buffer leaves little room for unplanned work; "
                f"risk of overcommitment, consider at least {self.LOW_BUFFER_PERCENT}%"
            )
        if percent > self.HIGH_BUFFER_PERCENT:
            return (
                f"High {percent}% buffer accounts for uncertainty or known risks "
                f"but may be overly conservative for a stable team"
            )
        return f"Standard {percent}% buffer for unexpected work and a sustainable pace"

    def get_recommended_buffer(self, history: Iterable[SprintMetrics]) -> float:
        """
        Recommend a buffer from the spread of completion ratios.

        Returns the default with fewer than two usable sprints.
        """
        ratios = [
            s.completed_points / s.planned_points
            for s in history
            if s.planned_points > 0
        ]
        default = self.settings.DEFAULT_BUFFER_PERCENTAGE
        if len(ratios) < 2:
            return default

        avg = mean(ratios)
        if avg == 0:
            return 0.30

        cv = pstdev(ratios) / avg
        if cv > self.HIGH_VARIANCE_CV:
            return 0.30
        if cv > self.MODERATE_VARIANCE_CV:
            return 0.25
        return default

    # =========================================================================
    # Confidence
    # =========================================================================

    def _calibration_factor(self) -> Optional[float]:
        if self.calibrator is None:
            return None
        return self.calibrator.get_calibration_factor(ComplexityBand.MEDIUM)

    def _calculate_confidence(
        self,
        params: CapacityParams,
        source: str,
        availability: TeamAvailability,
        calibration_factor: Optional[float],
    ) -> SectionConfidence:
        history_count = len(params.historical_sprints)

        if history_count >= self.MIN_CONFIDENT_HISTORY:
            input_completeness = 0.8
        elif source == "default":
            input_completeness = 0.4
        else:
            input_completeness = 0.6
        if calibration_factor is not None:
            input_completeness += 0.1

        data_quality = 0.75 if history_count >= self.MIN_CONFIDENT_HISTORY else 0.5

        if availability.member_count:
            above_share = availability.members_above_threshold / availability.member_count
            pattern_match = 0.5 * availability.total_availability + 0.5 * above_share
        else:
            pattern_match = 0.6

        factors = ConfidenceFactors(
            input_completeness=self.clamp(input_completeness),
            ai_self_assessment=data_quality,
            pattern_match=round(self.clamp(pattern_match), 4),
        )

        reasoning = (
            f"Velocity {source} from {history_count} historical sprint(s); "
            f"mean effective availability {availability.total_availability:.0%} "
            f"across {availability.member_count} member(s). Algorithmic capacity model."
        )
        if calibration_factor is not None:
            reasoning += f" Estimates calibrated (medium band factor {calibration_factor:.2f})."

        return self.scorer.score_factors(self.SECTION_ID, factors, reasoning, section_name="sprint capacity")
