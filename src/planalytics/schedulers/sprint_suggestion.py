"""
Sprint Suggestion Service

Composes a sprint: capacity, prioritized backlog, dependency-closed greedy
selection bounded by the recommended load, then a risk pass over the
selection.

Algorithm: greedy walk over the prioritized backlog. Each candidate brings
its unselected explicit prerequisites along; the bundle is accepted only if
the running total stays within the recommended load. Items that do not fit
are deferred, never force-fit.

Usage:
    service = SprintSuggestionService()

    suggestion = service.suggest_sprint_composition({
        "backlog_items": items,
        "velocity": 30,
        "team_members": members,
    })
"""

from typing import Any, Dict, List, Mapping, Optional, Set, Union

from planalytics.ai_providers import CompositionProvider, SelfAssessmentProvider
from planalytics.analysis.confidence import ConfidenceScorer
from planalytics.analysis.dependency_graph import DependencyGraph, build_item_graph
from planalytics.analysis.estimation import EstimationCalibrator
from planalytics.domain.confidence import ConfidenceFactors, ConfidenceTier, SectionConfidence
from planalytics.domain.prioritization import PrioritizationParams, PrioritizedItem, PriorityTier
from planalytics.domain.risk import RiskAssessmentParams
from planalytics.domain.sprint import SprintCapacity
from planalytics.domain.suggestion import SprintSuggestion, SprintSuggestionParams, SuggestedItem
from planalytics.domain.work_items import Priority, WorkItem
from planalytics.errors import coerce_params
from planalytics.platform.config import Settings

from .backlog_prioritizer import BacklogPrioritizer
from .base import SchedulerBase
from .capacity_analyzer import SprintCapacityAnalyzer
from .risk_assessor import SprintRiskAssessor


class SprintSuggestionService(SchedulerBase):
    """
    Suggests a capacity-bounded, dependency-closed sprint composition.
    """

    TOP_RANKED = 3
    HIGH_SCORE = 70
    GOOD_FIT = 0.7
    TARGET_UTILIZATION = 0.85

    SECTION_ID = "sprint-suggestion"

    def __init__(
        self,
        calibrator: Optional[EstimationCalibrator] = None,
        assessor: Optional[SelfAssessmentProvider] = None,
        composition_provider: Optional[CompositionProvider] = None,
        settings: Optional[Settings] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        super().__init__(settings=settings, assessor=assessor, scorer=scorer)
        self.composition_provider = composition_provider
        self.capacity_analyzer = SprintCapacityAnalyzer(
            calibrator=calibrator, settings=self.settings, scorer=self.scorer
        )
        self.prioritizer = BacklogPrioritizer(assessor=assessor, settings=self.settings, scorer=self.scorer)
        self.risk_assessor = SprintRiskAssessor(assessor=assessor, settings=self.settings, scorer=self.scorer)

    def run(self, params: Union[SprintSuggestionParams, Mapping[str, Any]]) -> SprintSuggestion:
        return self.suggest_sprint_composition(params)

    def _item_points(self, item: WorkItem) -> float:
        return item.points if item.points is not None else self.settings.DEFAULT_ITEM_POINTS

    def suggest_sprint_composition(
        self, params: Union[SprintSuggestionParams, Mapping[str, Any]]
    ) -> SprintSuggestion:
        """
        Suggest which backlog items to take into the sprint.

        Args:
            params: SprintSuggestionParams or equivalent mapping

        Returns:
            SprintSuggestion whose total_points never exceed capacity.recommended_load
        """
        params = coerce_params(SprintSuggestionParams, params, "sprint suggestion params")
        capacity = self.capacity_analyzer.calculate_capacity(params.capacity_params())

        if not params.backlog_items:
            return self._empty_suggestion(capacity)

        items = params.backlog_items
        by_id = {i.id: i for i in items}
        graph = build_item_graph(
            items,
            implicit_threshold=self.settings.IMPLICIT_DEPENDENCY_THRESHOLD,
            detect_implicit=self.settings.FEATURE_IMPLICIT_DEPENDENCIES,
        )
        explicit = build_item_graph(items, detect_implicit=False)

        prioritization = self.prioritizer.prioritize(
            PrioritizationParams(
                backlog_items=items,
                sprint_capacity=capacity.recommended_load,
                business_goals=params.business_goals,
                risk_tolerance=params.risk_tolerance,
            ),
            graph=graph,
        )
        ranked = prioritization.prioritized_items
        ranks = {p.item_id: n for n, p in enumerate(ranked)}
        critical_path = set(graph.get_critical_path())

        load = capacity.recommended_load
        total = 0.0
        selected: List[SuggestedItem] = []
        selected_ids: Set[str] = set()
        for candidate in ranked:
            if candidate.item_id in selected_ids:
                continue
            bundle = [d for d in explicit.get_transitive_dependencies(candidate.item_id) if d not in selected_ids]
            bundle.append(candidate.item_id)
            bundle_points = sum(self._item_points(by_id[i]) for i in bundle)
            if total + bundle_points > load:
                self.logger.debug(
                    "Candidate deferred",
                    item_id=candidate.item_id,
                    bundle_points=bundle_points,
                    remaining=load - total,
                )
                continue

            for item_id in bundle:
                item = by_id[item_id]
                prioritized = ranked[ranks[item_id]]
                if item_id == candidate.item_id:
                    reason = self._include_reason(item, prioritized, ranks[item_id], graph, critical_path)
                    pulled_in_by = None
                else:
                    reason = f"Required by {candidate.item_id} (dependency pulled in)"
                    pulled_in_by = candidate.item_id
                selected.append(SuggestedItem(
                    item_id=item_id,
                    title=item.title,
                    points=self._item_points(item),
                    priority_score=prioritized.score,
                    include_reason=reason,
                    pulled_in_by=pulled_in_by,
                ))
                selected_ids.add(item_id)
            total += bundle_points

        deferred = [p.item_id for p in ranked if p.item_id not in selected_ids]
        utilization = total / load if load > 0 else 0.0

        risk_assessment = self.risk_assessor.assess_risks(RiskAssessmentParams(
            sprint_items=[by_id[s.item_id] for s in selected],
            sprint_capacity=capacity,
            dependencies=graph.get_edges(),
        ))

        tiers = {p.item_id: p.priority for p in ranked}
        ai_assisted = prioritization.ai_assisted_items > 0
        reasoning = self._reasoning(
            selected, total, capacity, utilization, params.business_goals, deferred, tiers, ai_assisted
        )
        confidence = self._calculate_confidence(
            capacity.confidence, prioritization.confidence, utilization, ai_assisted
        )

        self.logger.info(
            "Sprint composition suggested",
            selected=len(selected),
            deferred=len(deferred),
            total_points=total,
            recommended_load=load,
        )

        return SprintSuggestion(
            suggested_items=selected,
            total_points=total,
            capacity_utilization=round(utilization, 4),
            capacity=capacity,
            reasoning=reasoning,
            risks=risk_assessment.risks,
            mitigations=risk_assessment.mitigations,
            deferred_items=deferred,
            confidence=confidence,
        )

    # =========================================================================
    # Reasoning
    # =========================================================================

    def _include_reason(
        self,
        item: WorkItem,
        prioritized: PrioritizedItem,
        rank: int,
        graph: DependencyGraph,
        critical_path: Set[str],
    ) -> str:
        reasons = []
        if item.priority == Priority.CRITICAL:
            reasons.append("Critical priority")
        elif item.priority == Priority.HIGH:
            reasons.append("High business value")

        if rank < self.TOP_RANKED:
            reasons.append(f"top-scored item (#{rank + 1})")
        elif prioritized.score >= self.HIGH_SCORE:
            reasons.append("high-scoring item")

        if not graph.get_predecessors(item.id):
            reasons.append("can start immediately (no blockers)")
        if item.id in critical_path:
            reasons.append("on critical path")
        if graph.get_successors(item.id):
            reasons.append("enables other work")
        if prioritized.factors.effort_fit >= self.GOOD_FIT:
            reasons.append("good capacity fit")

        if not reasons:
            return f"Fits remaining capacity (score {prioritized.score})"
        text = "; ".join(reasons)
        return text[0].upper() + text[1:]

    def _reasoning(
        self,
        selected: List[SuggestedItem],
        total: float,
        capacity: SprintCapacity,
        utilization: float,
        goals: List[str],
        deferred: List[str],
        tiers: Dict[str, PriorityTier],
        ai_assisted: bool,
    ) -> str:
        reasoning = (
            f"Selected {len(selected)} items ({total:g} pts) for a recommended load of "
            f"{capacity.recommended_load} pts ({utilization:.0%} used, "
            f"{capacity.buffer.percentage:g}% buffer applied). "
        )

        critical = sum(1 for s in selected if tiers[s.item_id] == PriorityTier.CRITICAL)
        high = sum(1 for s in selected if tiers[s.item_id] == PriorityTier.HIGH)
        if critical or high:
            reasoning += f"Includes {critical} critical and {high} high priority items. "

        if goals:
            reasoning += f"Prioritized against goals: {', '.join(goals)}. "

        deferred_high = sum(1 for i in deferred if tiers[i] in (PriorityTier.CRITICAL, PriorityTier.HIGH))
        if deferred_high:
            reasoning += f"{deferred_high} high-value items deferred for lack of capacity. "

        if ai_assisted:
            reasoning += "Business value AI-assisted."
        else:
            reasoning += "Business value from the fallback priority algorithm (no AI signal)."
        return reasoning.strip()

    def _calculate_confidence(
        self,
        capacity_confidence: SectionConfidence,
        prioritization_confidence: SectionConfidence,
        utilization: float,
        ai_assisted: bool,
    ) -> SectionConfidence:
        cap = capacity_confidence.factors
        prio = prioritization_confidence.factors

        if utilization <= self.TARGET_UTILIZATION:
            pattern_match = 0.8
        elif utilization <= 1.0:
            pattern_match = 0.6
        else:
            pattern_match = 0.4

        factors = ConfidenceFactors(
            input_completeness=round((cap.input_completeness + prio.input_completeness) / 2, 4),
            ai_self_assessment=round((cap.ai_self_assessment + prio.ai_self_assessment) / 2, 4),
            pattern_match=pattern_match,
        )
        if ai_assisted:
            reasoning = "Combined capacity and AI-assisted prioritization confidence"
        else:
            reasoning = "Combined capacity and prioritization confidence (algorithmic fallback, AI unavailable)"
        return self.scorer.score_factors(self.SECTION_ID, factors, reasoning, section_name="sprint suggestion")

    def _empty_suggestion(self, capacity: SprintCapacity) -> SprintSuggestion:
        return SprintSuggestion(
            suggested_items=[],
            total_points=0,
            capacity_utilization=0.0,
            capacity=capacity,
            reasoning="No backlog items to schedule.",
            confidence=SectionConfidence(
                section_id=self.SECTION_ID,
                score=100,
                tier=ConfidenceTier.HIGH,
                factors=ConfidenceFactors(input_completeness=1.0, ai_self_assessment=1.0, pattern_match=1.0),
                needs_review=False,
                reasoning="Empty backlog; nothing to compose",
            ),
        )

    # =========================================================================
    # AI seam
    # =========================================================================

    def get_ai_suggestion(
        self, params: Union[SprintSuggestionParams, Mapping[str, Any]]
    ) -> Optional[SprintSuggestion]:
        """
        Ask the composition provider for an alternative sprint.

        Returns None when no provider is configured, it declines, fails, or
        proposes unknown items or more than the recommended load.
        """
        if self.composition_provider is None:
            self.logger.debug("No composition provider configured")
            return None

        params = coerce_params(SprintSuggestionParams, params, "sprint suggestion params")
        capacity = self.capacity_analyzer.calculate_capacity(params.capacity_params())
        by_id = {i.id: i for i in params.backlog_items}

        payload: Dict[str, Any] = {
            "backlog_items": [i.model_dump(mode="json") for i in params.backlog_items],
            "recommended_load": capacity.recommended_load,
            "business_goals": params.business_goals,
            "risk_tolerance": params.risk_tolerance.value,
        }
        try:
            proposal = self.composition_provider.suggest_composition(payload)
        except Exception as e:
            self.logger.warning("Composition provider failed", error=str(e))
            return None
        if not proposal:
            return None

        item_ids = list(dict.fromkeys(proposal.get("item_ids") or []))
        unknown = [i for i in item_ids if i not in by_id]
        if unknown:
            self.logger.warning("AI composition references unknown items", unknown=unknown)
            return None

        chosen = set(item_ids)
        total = sum(self._item_points(by_id[i]) for i in item_ids)
        load = capacity.recommended_load
        if total > load:
            self.logger.warning("AI composition exceeds recommended load", total_points=total, recommended_load=load)
            return None

        utilization = total / load if load > 0 else 0.0
        risk_assessment = self.risk_assessor.assess_risks(RiskAssessmentParams(
            sprint_items=[by_id[i] for i in item_ids],
            sprint_capacity=capacity,
        ))
        factors = ConfidenceFactors(
            input_completeness=capacity.confidence.factors.input_completeness,
            ai_self_assessment=0.8,
            pattern_match=0.8 if utilization <= self.TARGET_UTILIZATION else 0.6,
        )

        return SprintSuggestion(
            suggested_items=[
                SuggestedItem(
                    item_id=i,
                    title=by_id[i].title,
                    points=self._item_points(by_id[i]),
                    priority_score=0,
                    include_reason="Selected by AI composition",
                )
                for i in item_ids
            ],
            total_points=total,
            capacity_utilization=round(utilization, 4),
            capacity=capacity,
            reasoning=proposal.get("reasoning") or "AI-generated sprint composition",
            risks=risk_assessment.risks,
            mitigations=risk_assessment.mitigations,
            deferred_items=[i.id for i in params.backlog_items if i.id not in chosen],
            confidence=self.scorer.score_factors(self.SECTION_ID, factors, "AI-generated composition"),
        )
