"""
Estimation Calibrator

Keeps a history of (estimated, actual) effort pairs per complexity band and
derives a correction factor used to adjust future estimates.

The record store is the only mutable state in the engine. Every read and
write goes through a single lock, so one calibrator can be shared by
concurrent planning requests.

Usage:
    calibrator = EstimationCalibrator()
    calibrator.record_estimate({"task_id": "t1", "estimated_points": 5, "complexity": 5})
    calibrator.record_actual("t1", 8)

    estimate = calibrator.estimate({"complexity": 5})
"""

import threading
from datetime import datetime, timezone
from statistics import mean, pstdev, stdev
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

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
from planalytics.errors import InvalidInputError, coerce_params
from planalytics.platform.config import Settings, get_settings
from planalytics.platform.logging import get_logger

logger = get_logger(__name__)


COMPLEXITY_POINTS: Dict[int, int] = {
    1: 1, 2: 1, 3: 2, 4: 3, 5: 5,
    6: 5, 7: 8, 8: 8, 9: 13, 10: 13,
}

FIBONACCI_POINTS = (1, 2, 3, 5, 8, 13, 21)


def complexity_to_points(complexity: int) -> int:
    """Map a 1-10 complexity score onto Fibonacci-like story points."""
    return COMPLEXITY_POINTS[min(10, max(1, int(complexity)))]


def get_complexity_band(complexity: int) -> ComplexityBand:
    if complexity <= 3:
        return ComplexityBand.LOW
    if complexity <= 6:
        return ComplexityBand.MEDIUM
    return ComplexityBand.HIGH


def calculate_range(points: float, complexity: int) -> EstimateRange:
    """Uncertainty range that widens with complexity; never below 1."""
    variance_factor = 1 + complexity / 10
    return EstimateRange(
        low=max(1, round(points / variance_factor)),
        high=max(1, round(points * variance_factor)),
    )


def clamp_to_fibonacci(value: float) -> int:
    """Snap a raw point value to the nearest Fibonacci story point."""
    return min(FIBONACCI_POINTS, key=lambda p: (abs(p - value), p))


class EstimationCalibrator:
    """
    Calibrates complexity-based estimates against recorded actuals.

    Tracks records per complexity band; a band is calibrated once it holds
    enough closed records.
    """

    # Outlier thresholds (standard deviations of actual/estimated ratio)
    OUTLIER_STD_DEV = 2.5
    MIN_OUTLIER_SAMPLES = 5

    # Sample size at which confidence depends on ratio spread
    MIN_HIGH_CONFIDENCE = 10

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.min_samples = self.settings.CALIBRATION_MIN_SAMPLES
        self._lock = threading.Lock()
        self._records: List[EstimationRecord] = []
        self._factors: Dict[ComplexityBand, float] = {}

    # =========================================================================
    # Recording
    # =========================================================================

    def record_estimate(self, params: Union[RecordEstimateParams, Mapping[str, Any]]) -> EstimationRecord:
        """Append an open record for a task."""
        params = coerce_params(RecordEstimateParams, params, "estimate record")
        record = EstimationRecord(
            task_id=params.task_id,
            title=params.title,
            estimated_points=params.estimated_points,
            complexity=params.complexity,
            complexity_band=get_complexity_band(params.complexity),
            tags=params.tags,
            estimated_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._records.append(record)
        logger.debug("Estimate recorded", task_id=record.task_id, band=record.complexity_band.value)
        return record

    def record_actual(self, task_id: str, actual_points: float) -> bool:
        """
        Close the most recent open record for a task.

        Returns:
            False when the task has no open record
        """
        if actual_points < 0:
            raise InvalidInputError("actual_points must be non-negative", {"task_id": task_id})

        with self._lock:
            for i in range(len(self._records) - 1, -1, -1):
                record = self._records[i]
                if record.task_id == task_id and not record.is_closed:
                    self._records[i] = record.model_copy(update={
                        "actual_points": actual_points,
                        "completed_at": datetime.now(timezone.utc),
                    })
                    self._recompute_factor(record.complexity_band)
                    break
            else:
                logger.debug("No open estimate to close", task_id=task_id)
                return False

        logger.info("Actual recorded", task_id=task_id, actual_points=actual_points)
        return True

    # =========================================================================
    # Calibration
    # =========================================================================

    def _closed(self, band: ComplexityBand) -> List[EstimationRecord]:
        return [r for r in self._records if r.complexity_band == band and r.is_closed]

    def _remove_outliers(self, records: List[EstimationRecord]) -> List[EstimationRecord]:
        """Drop records whose actual/estimated ratio is far from the mean."""
        if len(records) < self.MIN_OUTLIER_SAMPLES:
            return records

        ratios = [r.actual_points / r.estimated_points for r in records]
        avg = mean(ratios)
        spread = stdev(ratios)
        if spread == 0:
            return records

        return [
            r for r, ratio in zip(records, ratios)
            if abs(ratio - avg) <= self.OUTLIER_STD_DEV * spread
        ]

    def _recompute_factor(self, band: ComplexityBand) -> None:
        closed = self._closed(band)
        if len(closed) < self.min_samples:
            self._factors.pop(band, None)
            return

        kept = self._remove_outliers(closed)
        estimated = mean(r.estimated_points for r in kept)
        actual = mean(r.actual_points for r in kept)
        self._factors[band] = actual / estimated

    def get_calibration_factor(self, band: Union[ComplexityBand, str]) -> Optional[float]:
        """Ratio mean(actual) / mean(estimated) for the band, or None when uncalibrated."""
        with self._lock:
            return self._factors.get(ComplexityBand(band))

    def _confidence(self, band: ComplexityBand) -> int:
        closed = self._closed(band)
        if not closed:
            return 50
        if len(closed) < self.min_samples:
            return 60
        if len(closed) < self.MIN_HIGH_CONFIDENCE:
            return 75

        ratios = [r.actual_points / r.estimated_points for r in closed]
        return max(75, min(95, round(95 - pstdev(ratios) * 35)))

    def estimate(self, params: Union[EstimateParams, Mapping[str, Any]]) -> Estimate:
        """
        Estimate points for a complexity score.

        Args:
            params: EstimateParams or mapping with `complexity` (1-10)

        Returns:
            Estimate with points, range, confidence (0-100) and reasoning
        """
        params = coerce_params(EstimateParams, params, "estimate params")
        complexity = params.complexity
        band = get_complexity_band(complexity)
        base = complexity_to_points(complexity)

        with self._lock:
            factor = self._factors.get(band)
            confidence = self._confidence(band)
            sample_count = len(self._closed(band))

        if factor is None:
            return Estimate(
                points=base,
                range=calculate_range(base, complexity),
                confidence=confidence,
                calibrated=False,
                reasoning=f"Base estimate for complexity {complexity}/10. No calibration data available.",
            )

        points = clamp_to_fibonacci(base * factor)
        change = round(abs(factor - 1) * 100)
        direction = "increase" if factor >= 1 else "decrease"
        return Estimate(
            points=points,
            range=calculate_range(points, complexity),
            confidence=confidence,
            calibrated=True,
            calibration_factor=round(factor, 3),
            reasoning=(
                f"Calibrated estimate for complexity {complexity}/10 ({band.value} band). "
                f"Historical data ({sample_count} tasks) suggests {change}% {direction} from base {base}."
            ),
        )

    def get_accuracy_stats(self) -> AccuracyStats:
        with self._lock:
            by_band: Dict[ComplexityBand, BandAccuracy] = {}
            for band in ComplexityBand:
                closed = self._closed(band)
                errors = [abs(r.actual_points - r.estimated_points) / r.estimated_points for r in closed]
                by_band[band] = BandAccuracy(
                    sample_count=len(closed),
                    avg_error=round(mean(errors), 4) if errors else 0.0,
                    calibration_factor=self._factors.get(band),
                )

            return AccuracyStats(
                total_records=len(self._records),
                completed_records=sum(1 for r in self._records if r.is_closed),
                accuracy_by_band=by_band,
            )

    # =========================================================================
    # Persistence hand-off
    # =========================================================================

    def export_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [r.model_dump(mode="json") for r in self._records]

    def import_records(self, records: Iterable[Union[EstimationRecord, Mapping[str, Any]]]) -> int:
        """
        Replace the in-memory store and recompute every band factor.

        The store is left untouched when any record fails validation.
        """
        try:
            validated = [
                r if isinstance(r, EstimationRecord) else EstimationRecord.model_validate(r)
                for r in records
            ]
        except ValidationError as e:
            logger.warning("Estimation record import rejected", errors=e.error_count())
            raise InvalidInputError.from_validation_error("estimation records", e) from e

        with self._lock:
            self._records = validated
            self._factors = {}
            for band in ComplexityBand:
                self._recompute_factor(band)

        logger.info("Estimation records imported", count=len(validated))
        return len(validated)
