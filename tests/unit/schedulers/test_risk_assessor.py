"""
Tests for the sprint risk assessor.
"""

import pytest

from planalytics.domain.risk import Level, RiskCategory
from planalytics.errors import InvalidInputError
from planalytics.schedulers.capacity_analyzer import SprintCapacityAnalyzer
from planalytics.schedulers.risk_assessor import SprintRiskAssessor

DESCRIBED = "Well understood change with written acceptance criteria"


@pytest.fixture
def assessor(settings) -> SprintRiskAssessor:
    return SprintRiskAssessor(settings=settings)


@pytest.fixture
def described(make_item):
    def _make(item_id, **kwargs):
        kwargs.setdefault("description", DESCRIBED)
        return make_item(item_id, **kwargs)
    return _make


def by_category(assessment, category):
    return [r for r in assessment.risks if r.category == category]


# =============================================================================
# Capacity
# =============================================================================

class TestCapacityRisks:

    def test_overcommitment(self, assessor, make_item):
        assessment = assessor.assess_risks({
            "sprint_items": [make_item("1", points=15), make_item("2", points=15)],
            "recommended_load": 20,
        })

        capacity = by_category(assessment, RiskCategory.CAPACITY)
        assert len(capacity) == 1
        assert "overcommitment" in capacity[0].title.lower()
        assert capacity[0].probability in (Level.HIGH, Level.MEDIUM)
        assert capacity[0].impact == Level.HIGH
        assert assessment.overall_risk == Level.HIGH

    def test_mild_overcommitment_is_medium_probability(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [described("1", points=8), described("2", points=3)],
            "recommended_load": 10,
        })
        capacity = by_category(assessment, RiskCategory.CAPACITY)
        assert capacity[0].probability == Level.MEDIUM

    def test_capacity_result_supplies_load(self, assessor, settings, make_item):
        capacity = SprintCapacityAnalyzer(settings=settings).calculate_capacity({"velocity": 25})
        assert capacity.recommended_load == 20

        assessment = assessor.assess_risks({
            "sprint_items": [make_item("1", points=15), make_item("2", points=15)],
            "sprint_capacity": capacity,
        })
        assert by_category(assessment, RiskCategory.CAPACITY)

    def test_low_buffer(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [described("1", points=9), described("2", points=9)],
            "recommended_load": 19,
        })

        capacity = by_category(assessment, RiskCategory.CAPACITY)
        assert [r.title for r in capacity] == ["Low capacity buffer"]
        assert assessment.risk_score == 15
        assert assessment.overall_risk == Level.LOW

    def test_exactly_at_load_has_no_capacity_risk(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [described("1", points=10), described("2", points=10)],
            "recommended_load": 20,
        })
        assert by_category(assessment, RiskCategory.CAPACITY) == []

    def test_zero_load_with_work_is_overcommitted(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [described("1", points=2)],
            "recommended_load": 0,
        })
        assert by_category(assessment, RiskCategory.CAPACITY)[0].probability == Level.HIGH


# =============================================================================
# Technical, dependency and scope
# =============================================================================

class TestComplexityRisks:

    def test_one_risk_per_large_item(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [
                described("small", points=5),
                described("edge", points=13),
                described("huge", points=20),
            ],
            "recommended_load": 100,
        })

        technical = by_category(assessment, RiskCategory.TECHNICAL)
        assert [r.related_items for r in technical] == [["edge"], ["huge"]]
        assert technical[0].impact == Level.MEDIUM
        assert technical[1].impact == Level.HIGH
        assert assessment.overall_risk == Level.MEDIUM


class TestDependencyRisks:

    def test_hub_gating_most_items(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [
                described("h", points=2),
                described("a", points=2, dependencies=["h"]),
                described("b", points=2, dependencies=["h"]),
                described("c", points=2, dependencies=["h"]),
                described("d", points=2),
            ],
            "recommended_load": 40,
        })

        dependency = by_category(assessment, RiskCategory.DEPENDENCY)
        assert len(dependency) == 1
        assert dependency[0].related_items == ["h", "a", "b", "c"]
        assert dependency[0].probability == Level.HIGH

    def test_explicit_edges_count(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [described("p", points=2), described("q", points=2), described("r", points=2)],
            "recommended_load": 40,
            "dependencies": [
                {"from_id": "p", "to_id": "q"},
                {"from_id": "p", "to_id": "r"},
            ],
        })
        assert len(by_category(assessment, RiskCategory.DEPENDENCY)) == 1

    def test_chain_has_no_hub(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [
                described("a", points=2),
                described("b", points=2, dependencies=["a"]),
                described("c", points=2, dependencies=["b"]),
                described("d", points=2, dependencies=["c"]),
            ],
            "recommended_load": 40,
        })
        assert by_category(assessment, RiskCategory.DEPENDENCY) == []

    def test_dependencies_outside_sprint_are_ignored(self, assessor, described):
        assessment = assessor.assess_risks({
            "sprint_items": [
                described("a", points=2, dependencies=["elsewhere"]),
                described("b", points=2, dependencies=["elsewhere"]),
            ],
            "recommended_load": 40,
        })
        assert by_category(assessment, RiskCategory.DEPENDENCY) == []


class TestScopeRisks:

    def test_mostly_short_descriptions(self, assessor, make_item):
        assessment = assessor.assess_risks({
            "sprint_items": [
                make_item("1", points=2),
                make_item("2", points=2, description="todo"),
                make_item("3", points=2),
                make_item("4", points=2, description=DESCRIBED),
            ],
            "recommended_load": 40,
        })

        scope = by_category(assessment, RiskCategory.SCOPE)
        assert len(scope) == 1
        assert scope[0].related_items == ["1", "2", "3"]
        assert scope[0].probability == Level.HIGH

    def test_few_short_descriptions_are_tolerated(self, assessor, make_item):
        assessment = assessor.assess_risks({
            "sprint_items": [
                make_item("1", points=2),
                make_item("2", points=2, description=DESCRIBED),
                make_item("3", points=2, description=DESCRIBED),
                make_item("4", points=2, description=DESCRIBED),
            ],
            "recommended_load": 40,
        })
        assert by_category(assessment, RiskCategory.SCOPE) == []


# =============================================================================
# Assessment shape
# =============================================================================

class TestAssessment:

    def test_mitigations_reference_risks(self, assessor, make_item):
        assessment = assessor.assess_risks({
            "sprint_items": [make_item("1", points=15), make_item("2", points=15)],
            "recommended_load": 20,
        })

        risk_ids = [r.id for r in assessment.risks]
        assert len(risk_ids) == len(set(risk_ids))
        assert all(m.risk_id in risk_ids for m in assessment.mitigations)
        assert {m.risk_id for m in assessment.mitigations} == set(risk_ids)

    def test_saturated_score(self, assessor, make_item):
        assessment = assessor.assess_risks({
            "sprint_items": [make_item("1", points=15), make_item("2", points=15)],
            "recommended_load": 20,
        })
        assert assessment.risk_score == 100

    def test_empty_sprint(self, assessor):
        assessment = assessor.assess_risks({"sprint_items": [], "recommended_load": 20})
        assert assessment.risks == []
        assert assessment.mitigations == []
        assert assessment.risk_score == 0
        assert assessment.overall_risk == Level.LOW

    def test_missing_load_rejected(self, assessor, make_item):
        with pytest.raises(InvalidInputError):
            assessor.assess_risks({"sprint_items": [make_item("1")]})

    def test_fallback_confidence_reasoning(self, assessor, described):
        assessment = assessor.assess_risks({"sprint_items": [described("1", points=3)], "recommended_load": 10})
        assert assessment.confidence.section_id == "sprint-risk"
        assert "fallback" in assessment.confidence.reasoning
