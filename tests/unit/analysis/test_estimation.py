"""
Tests for the estimation calibrator.
"""

import threading

import pytest

from planalytics.analysis.estimation import (
    EstimationCalibrator,
    calculate_range,
    clamp_to_fibonacci,
    complexity_to_points,
    get_complexity_band,
)
from planalytics.domain.estimation import ComplexityBand
from planalytics.errors import InvalidInputError


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def calibrator(settings) -> EstimationCalibrator:
    return EstimationCalibrator(settings=settings)


def record_pairs(calibrator, pairs, complexity=5, prefix="t"):
    for n, (estimated, actual) in enumerate(pairs):
        task_id = f"{prefix}{n}"
        calibrator.record_estimate({
            "task_id": task_id,
            "estimated_points": estimated,
            "complexity": complexity,
        })
        assert calibrator.record_actual(task_id, actual) is True


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for the pure mapping helpers."""

    @pytest.mark.parametrize("complexity,band", [
        (1, ComplexityBand.LOW), (3, ComplexityBand.LOW),
        (4, ComplexityBand.MEDIUM), (6, ComplexityBand.MEDIUM),
        (7, ComplexityBand.HIGH), (10, ComplexityBand.HIGH),
    ])
    def test_complexity_band(self, complexity, band):
        assert get_complexity_band(complexity) == band

    def test_complexity_to_points_is_monotonic_fibonacci(self):
        points = [complexity_to_points(c) for c in range(1, 11)]
        assert points == sorted(points)
        assert set(points) <= {1, 2, 3, 5, 8, 13}
        assert complexity_to_points(5) == 5
        assert complexity_to_points(10) == 13

    def test_range_widens_with_complexity(self):
        narrow = calculate_range(8, 2)
        wide = calculate_range(8, 9)
        assert narrow.low <= 8 <= narrow.high
        assert wide.high - wide.low > narrow.high - narrow.low

    def test_range_low_never_below_one(self):
        assert calculate_range(1, 10).low == 1

    @pytest.mark.parametrize("value,expected", [(0.2, 1), (4, 3), (10, 8), (11, 13), (40, 21)])
    def test_clamp_to_fibonacci(self, value, expected):
        assert clamp_to_fibonacci(value) == expected


# =============================================================================
# Recording and calibration
# =============================================================================

class TestCalibration:
    """Tests for recording actuals and deriving factors."""

    def test_record_actual_closes_most_recent_open_record(self, calibrator):
        calibrator.record_estimate({"task_id": "t1", "estimated_points": 3, "complexity": 4})
        calibrator.record_estimate({"task_id": "t1", "estimated_points": 5, "complexity": 4})

        assert calibrator.record_actual("t1", 8) is True
        records = calibrator.export_records()
        assert records[0]["actual_points"] is None
        assert records[1]["actual_points"] == 8
        assert records[1]["completed_at"] is not None

    def test_record_actual_soft_fails(self, calibrator):
        assert calibrator.record_actual("unknown", 3) is False

        calibrator.record_estimate({"task_id": "t1", "estimated_points": 3, "complexity": 2})
        assert calibrator.record_actual("t1", 3) is True
        assert calibrator.record_actual("t1", 4) is False

    def test_negative_actual_is_rejected(self, calibrator):
        with pytest.raises(InvalidInputError):
            calibrator.record_actual("t1", -1)

    def test_two_closed_records_are_not_enough(self, calibrator):
        record_pairs(calibrator, [(5, 10), (5, 10)])
        assert calibrator.get_calibration_factor(ComplexityBand.MEDIUM) is None
        assert calibrator.estimate({"complexity": 5}).calibrated is False

    def test_factor_is_ratio_of_means(self, calibrator):
        record_pairs(calibrator, [(5, 10)] * 5)
        assert calibrator.get_calibration_factor("medium") == pytest.approx(2.0)

    def test_open_records_are_ignored(self, calibrator):
        record_pairs(calibrator, [(5, 5)] * 3)
        calibrator.record_estimate({"task_id": "open", "estimated_points": 5, "complexity": 5})
        assert calibrator.get_calibration_factor(ComplexityBand.MEDIUM) == pytest.approx(1.0)

    def test_outliers_are_removed_with_enough_samples(self, calibrator):
        record_pairs(calibrator, [(5, 5)] * 11 + [(5, 50)])
        assert calibrator.get_calibration_factor(ComplexityBand.MEDIUM) == pytest.approx(1.0)

    def test_bands_are_independent(self, calibrator):
        record_pairs(calibrator, [(5, 10)] * 3, complexity=5)
        assert calibrator.get_calibration_factor(ComplexityBand.LOW) is None
        assert calibrator.get_calibration_factor(ComplexityBand.HIGH) is None


# =============================================================================
# Estimates
# =============================================================================

class TestEstimate:
    """Tests for calibrated and uncalibrated estimates."""

    def test_uncalibrated_estimate(self, calibrator):
        estimate = calibrator.estimate({"complexity": 5})
        assert estimate.points == 5
        assert estimate.calibrated is False
        assert estimate.calibration_factor is None
        assert estimate.confidence == 50
        assert "No calibration data" in estimate.reasoning

    def test_calibrated_estimate_scales_up(self, calibrator):
        record_pairs(calibrator, [(5, 10)] * 5)

        estimate = calibrator.estimate({"complexity": 5})

        assert estimate.calibrated is True
        assert estimate.points > 5
        assert estimate.calibration_factor == pytest.approx(2.0)
        assert "100% increase" in estimate.reasoning

    def test_confidence_grows_with_samples(self, calibrator):
        seen = [calibrator.estimate({"complexity": 5}).confidence]
        for n in range(12):
            record_pairs(calibrator, [(5, 5)], prefix=f"s{n}-")
            seen.append(calibrator.estimate({"complexity": 5}).confidence)
        assert seen == sorted(seen)
        assert seen[-1] == 95

    def test_invalid_complexity_raises(self, calibrator):
        with pytest.raises(InvalidInputError):
            calibrator.estimate({"complexity": 11})


# =============================================================================
# Stats and persistence
# =============================================================================

class TestStatsAndPersistence:
    """Tests for accuracy stats and import/export."""

    def test_accuracy_stats(self, calibrator):
        record_pairs(calibrator, [(4, 5), (4, 3)], complexity=2)
        calibrator.record_estimate({"task_id": "open", "estimated_points": 3, "complexity": 8})

        stats = calibrator.get_accuracy_stats()

        assert stats.total_records == 3
        assert stats.completed_records == 2
        low = stats.accuracy_by_band[ComplexityBand.LOW]
        assert low.sample_count == 2
        assert low.avg_error == pytest.approx(0.25)
        assert stats.accuracy_by_band[ComplexityBand.HIGH].sample_count == 0

    def test_export_import_round_trip_restores_factors(self, calibrator, settings):
        record_pairs(calibrator, [(5, 10)] * 4)
        exported = calibrator.export_records()

        restored = EstimationCalibrator(settings=settings)
        assert restored.import_records(exported) == 4
        assert restored.get_calibration_factor(ComplexityBand.MEDIUM) == pytest.approx(2.0)

    def test_import_replaces_state(self, calibrator):
        record_pairs(calibrator, [(5, 10)] * 4)
        calibrator.import_records([])
        assert calibrator.get_calibration_factor(ComplexityBand.MEDIUM) is None
        assert calibrator.get_accuracy_stats().total_records == 0

    def test_malformed_import_leaves_state_untouched(self, calibrator):
        record_pairs(calibrator, [(5, 10)] * 3)
        with pytest.raises(InvalidInputError):
            calibrator.import_records([{"task_id": "x"}])
        assert calibrator.get_accuracy_stats().total_records == 3

    def test_concurrent_recording(self, calibrator):
        def worker(n):
            for i in range(50):
                task_id = f"w{n}-{i}"
                calibrator.record_estimate({"task_id": task_id, "estimated_points": 2, "complexity": 2})
                calibrator.record_actual(task_id, 4)
                calibrator.estimate({"complexity": 2})

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stats = calibrator.get_accuracy_stats()
        assert stats.total_records == 200
        assert stats.completed_records == 200
        assert calibrator.get_calibration_factor(ComplexityBand.LOW) == pytest.approx(2.0)
