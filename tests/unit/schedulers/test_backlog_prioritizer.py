"""
Tests for the backlog prioritizer.
"""

import pytest

from planalytics.domain.prioritization import PriorityTier, RiskTolerance
from planalytics.errors import InvalidInputError
from planalytics.schedulers.backlog_prioritizer import BacklogPrioritizer, priority_to_value


class FixedAssessor:
    def __init__(self, value):
        self.value = value
        self.payloads = []

    def get_self_assessment(self, payload):
        self.payloads.append(payload)
        return self.value


class FailingAssessor:
    def get_self_assessment(self, payload):
        raise RuntimeError("backend down")


@pytest.fixture
def prioritizer(settings) -> BacklogPrioritizer:
    return BacklogPrioritizer(settings=settings)


# =============================================================================
# Ranking
# =============================================================================

class TestRanking:
    """Ordering and scores."""

    def test_critical_before_low(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [
                make_item("1", priority="critical", points=5),
                make_item("2", priority="low", points=3),
            ],
            "sprint_capacity": 20,
        })

        ids = [p.item_id for p in result.prioritized_items]
        scores = [p.score for p in result.prioritized_items]
        assert ids == ["1", "2"]
        assert scores == [92, 65]
        assert result.prioritized_items[0].priority == PriorityTier.CRITICAL
        assert result.prioritized_items[1].priority == PriorityTier.MEDIUM

    def test_empty_backlog(self, prioritizer):
        result = prioritizer.prioritize({"backlog_items": [], "sprint_capacity": 20})
        assert result.prioritized_items == []
        assert result.confidence.score == 100

    def test_every_item_is_ranked_once(self, prioritizer, make_item):
        items = [make_item(str(n), points=n + 1) for n in range(6)]
        result = prioritizer.prioritize({"backlog_items": items})
        assert sorted(p.item_id for p in result.prioritized_items) == [str(n) for n in range(6)]

    def test_ties_keep_backlog_order(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [make_item("b", points=3), make_item("a", points=3)],
        })
        assert [p.item_id for p in result.prioritized_items] == ["b", "a"]

    def test_goal_keywords_raise_business_value(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [
                make_item("plain", title="Item plain", priority="low", points=3),
                make_item("goal", title="Checkout conversion flow", priority="low", points=3),
            ],
            "business_goals": ["Improve checkout conversion"],
        })
        by_id = {p.item_id: p for p in result.prioritized_items}
        assert by_id["goal"].factors.business_value == pytest.approx(0.45)
        assert by_id["plain"].factors.business_value == pytest.approx(0.25)
        assert result.prioritized_items[0].item_id == "goal"

    def test_priority_values(self):
        assert priority_to_value("critical") == 1.0
        assert priority_to_value(None) == 0.5


class TestFactors:
    """Individual scoring factors."""

    def test_prerequisites_score_higher_on_dependencies(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [
                make_item("a", points=3),
                make_item("b", points=3, dependencies=["a"]),
                make_item("c", points=3, dependencies=["a", "b"]),
            ],
        })
        scores = {p.item_id: p.factors.dependency_score for p in result.prioritized_items}
        assert scores["a"] == 1.0
        assert scores["b"] == pytest.approx(0.87)
        assert scores["c"] == pytest.approx(0.75)

    def test_cycle_members_score_neutrally(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [
                make_item("x", points=3, dependencies=["y"]),
                make_item("y", points=3, dependencies=["x"]),
            ],
        })
        assert result.cycles
        assert set(result.cycles[0]) == {"x", "y"}
        assert all(p.factors.dependency_score == 0.5 for p in result.prioritized_items)
        assert any("cycle" in t for t in result.reasoning.tradeoffs)

    def test_risk_tolerance_scales_size_risk(self, prioritizer, make_item):
        item = make_item("big", points=13)
        risk = {
            tolerance: prioritizer.prioritize({
                "backlog_items": [item], "risk_tolerance": tolerance,
            }).prioritized_items[0].factors.risk_score
            for tolerance in RiskTolerance
        }
        assert risk[RiskTolerance.LOW] < risk[RiskTolerance.MEDIUM] < risk[RiskTolerance.HIGH]

    def test_effort_fit_prefers_small_items(self, prioritizer, make_item):
        result = prioritizer.prioritize({
            "backlog_items": [make_item("small", points=2), make_item("huge", points=40)],
            "sprint_capacity": 20,
        })
        fit = {p.item_id: p.factors.effort_fit for p in result.prioritized_items}
        assert fit["small"] == pytest.approx(0.91)
        assert fit["huge"] == pytest.approx(0.1)

    def test_zero_capacity_gives_neutral_effort_fit(self, prioritizer, make_item):
        result = prioritizer.prioritize({"backlog_items": [make_item("a", points=2)], "sprint_capacity": 0})
        assert result.prioritized_items[0].factors.effort_fit == 0.5


class TestWeights:
    """Weight overrides."""

    def test_per_call_override_is_merged(self, prioritizer, make_item):
        result = prioritizer.prioritize({"backlog_items": [make_item("a")], "weights": {"risk": 0.5}})
        assert result.reasoning.weightings.risk == 0.5
        assert result.reasoning.weightings.business_value == 0.4

    def test_constructor_override(self, settings, make_item):
        prioritizer = BacklogPrioritizer(weights={"business_value": 1.0}, settings=settings)
        result = prioritizer.prioritize({"backlog_items": [make_item("a")]})
        assert result.reasoning.weightings.business_value == 1.0
        assert result.reasoning.weightings.dependencies == 0.25

    def test_negative_weight_rejected(self, settings):
        with pytest.raises(InvalidInputError):
            BacklogPrioritizer(weights={"risk": -1}, settings=settings)


class TestAiSignal:
    """Optional business value assessor."""

    def test_fallback_is_explained(self, prioritizer, make_item):
        result = prioritizer.prioritize({"backlog_items": [make_item("a", priority="high")]})
        assert any("fallback" in t for t in result.reasoning.tradeoffs)
        assert "fallback" in result.prioritized_items[0].reasoning
        assert "AI unavailable" in result.confidence.reasoning

    def test_assessor_blends_business_value(self, settings, make_item):
        assessor = FixedAssessor(1.0)
        prioritizer = BacklogPrioritizer(assessor=assessor, settings=settings)
        result = prioritizer.prioritize({"backlog_items": [make_item("a", priority="low")]})

        item = result.prioritized_items[0]
        assert item.factors.business_value == pytest.approx(0.775)
        assert "AI-assisted" in item.reasoning
        assert not any("fallback" in t for t in result.reasoning.tradeoffs)
        assert assessor.payloads[0]["kind"] == "business_value"

    def test_out_of_range_answer_is_ignored(self, settings, make_item):
        prioritizer = BacklogPrioritizer(assessor=FixedAssessor(4.0), settings=settings)
        result = prioritizer.prioritize({"backlog_items": [make_item("a", priority="low")]})
        assert result.prioritized_items[0].factors.business_value == 0.25

    def test_failing_assessor_falls_back(self, settings, make_item):
        prioritizer = BacklogPrioritizer(assessor=FailingAssessor(), settings=settings)
        result = prioritizer.prioritize({"backlog_items": [make_item("a", priority="low")]})
        assert result.prioritized_items[0].factors.business_value == 0.25
        assert result.ai_assisted_items == 0

    def test_ai_assisted_items_counts_answered_items(self, settings, make_item):
        items = [make_item("a"), make_item("b")]

        silent = BacklogPrioritizer(assessor=FixedAssessor(None), settings=settings)
        answered = BacklogPrioritizer(assessor=FixedAssessor(0.6), settings=settings)

        assert silent.prioritize({"backlog_items": items}).ai_assisted_items == 0
        assert answered.prioritize({"backlog_items": items}).ai_assisted_items == 2



class TestValidation:

    def test_unknown_priority_rejected(self, prioritizer):
        with pytest.raises(InvalidInputError):
            prioritizer.prioritize({"backlog_items": [{"id": "a", "priority": "urgent"}]})
