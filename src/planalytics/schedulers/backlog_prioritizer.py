"""
Backlog Prioritizer

Ranks backlog items with a weighted multi-factor score.

Scoring Factors:
- Business value (0.40): priority level, business goal match, optional AI signal
- Dependencies (0.25): orphans first, fewer unresolved predecessors is better
- Risk (0.20): size-driven, scaled by risk tolerance
- Effort fit (0.15): smaller relative to sprint capacity is better

Usage:
    prioritizer = BacklogPrioritizer()

    result = prioritizer.prioritize({
        "backlog_items": items,
        "sprint_capacity": 20,
        "business_goals": ["Improve checkout conversion"],
    })
"""

from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from planalytics.ai_providers import SelfAssessmentProvider
from planalytics.analysis.confidence import ConfidenceScorer
from planalytics.analysis.dependency_graph import DependencyGraph, build_item_graph
from planalytics.analysis.keywords import extract_item_keywords, extract_keywords
from planalytics.domain.confidence import ConfidenceFactors, ConfidenceTier, SectionConfidence
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
from planalytics.domain.work_items import Priority, WorkItem
from planalytics.errors import coerce_params
from planalytics.platform.config import Settings

from .base import SchedulerBase


PRIORITY_VALUES: Dict[Optional[Priority], float] = {
    Priority.CRITICAL: 1.0,
    Priority.HIGH: 0.75,
    Priority.MEDIUM: 0.5,
    Priority.LOW: 0.25,
    None: 0.5,
}

FACTOR_LABELS = {
    "business_value": "business value",
    "dependency_score": "dependency position",
    "risk_score": "low risk",
    "effort_fit": "effort fit",
}


def priority_to_value(priority: Optional[Priority]) -> float:
    return PRIORITY_VALUES.get(priority, 0.5)


class BacklogPrioritizer(SchedulerBase):
    """
    Ranks backlog items for sprint selection.

    Builds a dependency graph (explicit plus implicit edges) per call; no
    state survives between calls.
    """

    # Business value
    GOAL_MATCH_BOOST = 0.2
    AI_VALUE_WEIGHT = 0.7  # share of business value taken from the AI signal

    # Dependency score
    ORPHAN_SCORE = 1.0
    CYCLE_SCORE = 0.5
    FIRST_DEPENDENCY_SCORE = 0.85
    PER_PREDECESSOR_PENALTY = 0.1
    MIN_DEPENDENCY_SCORE = 0.2
    ENABLER_BONUS = 0.02  # per successor
    MAX_ENABLER_BONUS = 0.1
    MAX_DEPENDENT_SCORE = 0.95

    # Risk: points at which an item is maximally risky
    MAX_RISK_POINTS = 21
    TOLERANCE_MULTIPLIERS = {
        RiskTolerance.LOW: 1.3,
        RiskTolerance.MEDIUM: 1.0,
        RiskTolerance.HIGH: 0.7,
    }

    # Effort fit floor for items at or beyond capacity
    MIN_EFFORT_FIT = 0.1

    CRITICAL_SCORE = 80

    SECTION_ID = "backlog-prioritization"
    METHODOLOGY = (
        "Weighted multi-factor scoring: business value, dependency position, "
        "risk and effort fit against sprint capacity"
    )

    def __init__(
        self,
        weights: Optional[Union[PrioritizationWeights, Mapping[str, float]]] = None,
        assessor: Optional[SelfAssessmentProvider] = None,
        settings: Optional[Settings] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        super().__init__(settings=settings, assessor=assessor, scorer=scorer)
        self.weights = self._merge_weights(PrioritizationWeights(), weights)

    @staticmethod
    def _merge_weights(
        base: PrioritizationWeights,
        overrides: Optional[Union[PrioritizationWeights, Mapping[str, float]]],
    ) -> PrioritizationWeights:
        if overrides is None:
            return base
        if isinstance(overrides, PrioritizationWeights):
            return overrides
        merged = {**base.model_dump(), **overrides}
        return coerce_params(PrioritizationWeights, merged, "prioritization weights")

    def run(self, params: Union[PrioritizationParams, Mapping[str, Any]]) -> PrioritizationResult:
        return self.prioritize(params)

    def prioritize(
        self,
        params: Union[PrioritizationParams, Mapping[str, Any]],
        graph: Optional[DependencyGraph] = None,
    ) -> PrioritizationResult:
        """
        Score and rank backlog items.

        Args:
            params: PrioritizationParams or equivalent mapping
            graph: Prebuilt graph over the same items, built here when omitted

        Returns:
            PrioritizationResult sorted by score descending
        """
        params = coerce_params(PrioritizationParams, params, "prioritization params")
        weights = self._merge_weights(self.weights, params.weights)
        items = params.backlog_items

        if not items:
            return self._empty_result(weights)

        if graph is None:
            graph = build_item_graph(
                items,
                implicit_threshold=self.settings.IMPLICIT_DEPENDENCY_THRESHOLD,
                detect_implicit=self.settings.FEATURE_IMPLICIT_DEPENDENCIES,
            )
        cycles = graph.detect_cycles()
        in_cycle: Set[str] = {node for cycle in cycles for node in cycle}
        goal_keywords = set(extract_keywords(" ".join(params.business_goals)))

        ai_scored = 0
        scored: List[PrioritizedItem] = []
        for item in items:
            business_value, from_ai = self._business_value(item, goal_keywords, params.business_goals)
            if from_ai:
                ai_scored += 1
            factors = PriorityFactors(
                business_value=business_value,
                dependency_score=self._dependency_score(item.id, graph, in_cycle),
                risk_score=self._risk_score(item, params.risk_tolerance),
                effort_fit=self._effort_fit(item, params.sprint_capacity),
            )
            score = self._weighted_score(factors, weights)
            scored.append(PrioritizedItem(
                item_id=item.id,
                title=item.title,
                score=score,
                priority=self._score_to_tier(score),
                factors=factors,
                reasoning=self._item_reasoning(score, factors, weights, from_ai),
            ))

        # sort is stable: equal scores keep backlog order
        scored.sort(key=lambda p: -p.score)

        tradeoffs = self._tradeoffs(params, cycles, ai_scored, len(graph.get_implicit_dependencies()))
        confidence = self._calculate_confidence(items, cycles, ai_scored)

        self.logger.info(
            "Backlog prioritized",
            item_count=len(items),
            cycle_count=len(cycles),
            ai_assisted=ai_scored > 0,
        )

        return PrioritizationResult(
            prioritized_items=scored,
            reasoning=PrioritizationReasoning(
                methodology=self.METHODOLOGY,
                weightings=weights,
                tradeoffs=tradeoffs,
            ),
            confidence=confidence,
            cycles=cycles,
            ai_assisted_items=ai_scored,
        )

    # =========================================================================
    # Factors
    # =========================================================================

    def _business_value(self, item: WorkItem, goal_keywords: Set[str], goals: List[str]) -> Tuple[float, bool]:
        value = priority_to_value(item.priority)

        if goal_keywords:
            item_keywords = set(extract_item_keywords(item))
            overlap = len(item_keywords & goal_keywords)
            if overlap:
                value += self.GOAL_MATCH_BOOST * min(1.0, overlap / 2)

        value = self.clamp(value)

        ai_value = self.request_self_assessment({
            "kind": "business_value",
            "item": item.model_dump(mode="json"),
            "business_goals": goals,
        })
        if ai_value is None:
            return round(value, 4), False

        blended = self.AI_VALUE_WEIGHT * ai_value + (1 - self.AI_VALUE_WEIGHT) * value
        return round(self.clamp(blended), 4), True

    def _dependency_score(self, item_id: str, graph: DependencyGraph, in_cycle: Set[str]) -> float:
        if item_id in in_cycle:
            return self.CYCLE_SCORE

        predecessors = graph.get_transitive_dependencies(item_id)
        if not predecessors:
            return self.ORPHAN_SCORE

        score = self.FIRST_DEPENDENCY_SCORE - self.PER_PREDECESSOR_PENALTY * (len(predecessors) - 1)
        score = max(self.MIN_DEPENDENCY_SCORE, score)
        score += min(self.MAX_ENABLER_BONUS, self.ENABLER_BONUS * len(graph.get_successors(item_id)))
        return round(min(self.MAX_DEPENDENT_SCORE, score), 4)

    def _item_points(self, item: WorkItem) -> float:
        return item.points if item.points is not None else self.settings.DEFAULT_ITEM_POINTS

    def _risk_score(self, item: WorkItem, tolerance: RiskTolerance) -> float:
        """Higher is safer. Size risk is scaled up under low tolerance, down under high."""
        size_risk = self.normalize_score(self._item_points(item), 0, self.MAX_RISK_POINTS)
        multiplier = self.TOLERANCE_MULTIPLIERS[tolerance]
        return round(self.clamp(1.0 - size_risk * multiplier), 4)

    def _effort_fit(self, item: WorkItem, capacity: float) -> float:
        if capacity <= 0:
            return 0.5
        ratio = self.normalize_score(self._item_points(item), 0, capacity)
        return round(max(self.MIN_EFFORT_FIT, 1.0 - 0.9 * ratio), 4)

    def _weighted_score(self, factors: PriorityFactors, weights: PrioritizationWeights) -> int:
        raw = (
            weights.business_value * factors.business_value
            + weights.dependencies * factors.dependency_score
            + weights.risk * factors.risk_score
            + weights.effort * factors.effort_fit
        )
        return max(0, min(100, round(raw * 100)))

    def _score_to_tier(self, score: int) -> PriorityTier:
        """Tier thresholds follow the confidence tiers, with a critical band on top."""
        if score >= self.CRITICAL_SCORE:
            return PriorityTier.CRITICAL
        if score >= self.settings.CONFIDENCE_WARNING_THRESHOLD:
            return PriorityTier.HIGH
        if score >= self.settings.CONFIDENCE_ERROR_THRESHOLD:
            return PriorityTier.MEDIUM
        return PriorityTier.LOW

    # =========================================================================
    # Reasoning
    # =========================================================================

    def _item_reasoning(
        self,
        score: int,
        factors: PriorityFactors,
        weights: PrioritizationWeights,
        from_ai: bool,
    ) -> str:
        contributions = {
            "business_value": weights.business_value * factors.business_value,
            "dependency_score": weights.dependencies * factors.dependency_score,
            "risk_score": weights.risk * factors.risk_score,
            "effort_fit": weights.effort * factors.effort_fit,
        }
        ranked = sorted(contributions.items(), key=lambda kv: -kv[1])
        dominant = " and ".join(
            f"{FACTOR_LABELS[name]} ({getattr(factors, name):.2f})" for name, _ in ranked[:2]
        )
        source = "AI-assisted" if from_ai else "fallback: derived from priority level"
        return f"Score {score}: driven by {dominant}; business value {source}"

    def _tradeoffs(
        self,
        params: PrioritizationParams,
        cycles: List[List[str]],
        ai_scored: int,
        implicit_count: int,
    ) -> List[str]:
        tradeoffs = []
        if ai_scored == 0:
            tradeoffs.append("AI unavailable - using priority-based estimation (fallback)")
        if cycles:
            tradeoffs.append(
                f"{len(cycles)} dependency cycle(s) detected; affected items scored neutrally on dependencies"
            )
        if implicit_count:
            tradeoffs.append(f"{implicit_count} implicit dependencies inferred from item keywords")
        if params.risk_tolerance != RiskTolerance.MEDIUM:
            tradeoffs.append(f"Risk tolerance {params.risk_tolerance.value} reweights large items")
        if not params.business_goals:
            tradeoffs.append("No business goals supplied; business value reflects priority only")
        return tradeoffs

    # =========================================================================
    # Confidence
    # =========================================================================

    def _calculate_confidence(
        self,
        items: List[WorkItem],
        cycles: List[List[str]],
        ai_scored: int,
    ) -> SectionConfidence:
        described = sum(1 for i in items if len(i.description) > 50) / len(items)
        linked = sum(1 for i in items if i.dependencies) / len(items)

        factors = ConfidenceFactors(
            input_completeness=round(0.6 * described + 0.4 * linked, 4),
            ai_self_assessment=0.8 if ai_scored else 0.4,
            pattern_match=0.4 if cycles else 0.7,
        )
        if ai_scored:
            reasoning = f"AI-assisted business value for {ai_scored} of {len(items)} items"
        else:
            reasoning = "Fallback priority-based scoring algorithm (AI unavailable)"
        return self.scorer.score_factors(self.SECTION_ID, factors, reasoning, section_name="backlog prioritization")

    def _empty_result(self, weights: PrioritizationWeights) -> PrioritizationResult:
        factors = ConfidenceFactors(input_completeness=1.0, ai_self_assessment=1.0, pattern_match=1.0)
        return PrioritizationResult(
            prioritized_items=[],
            reasoning=PrioritizationReasoning(
                methodology="No items to prioritize",
                weightings=weights,
                tradeoffs=[],
            ),
            confidence=SectionConfidence(
                section_id=self.SECTION_ID,
                score=100,
                tier=ConfidenceTier.HIGH,
                factors=factors,
                needs_review=False,
                reasoning="Empty backlog; nothing to prioritize",
            ),
        )
