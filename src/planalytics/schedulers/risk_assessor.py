"""
Sprint Risk Assessor

Rule-based detection of sprint risks, each paired with mitigations.

Rules (independent, additive):
- Overcommitment: planned points exceed the recommended load
- Low buffer: utilization strictly between 90% and 100%
- High complexity: one risk per item at or above the large-item threshold
- Dependency concentration: a few hub items gate most of the sprint
- Unclear scope: too many items with short descriptions

Usage:
    assessor = SprintRiskAssessor()
    assessment = assessor.assess_risks({
        "sprint_items": items,
        "recommended_load": 20,
    })
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from planalytics.ai_providers import SelfAssessmentProvider
from planalytics.analysis.confidence import ConfidenceScorer
from planalytics.domain.confidence import ConfidenceFactors, SectionConfidence
from planalytics.domain.risk import (
    Level,
    Mitigation,
    MitigationStrategy,
    RiskAssessment,
    RiskAssessmentParams,
    RiskCategory,
    SprintRisk,
)
from planalytics.domain.work_items import WorkItem
from planalytics.errors import coerce_params
from planalytics.platform.config import Settings

from .base import SchedulerBase


LEVEL_WEIGHTS = {Level.HIGH: 3, Level.MEDIUM: 2, Level.LOW: 1}


@dataclass
class _Finding:
    """A fired rule before ids are assigned."""
    category: RiskCategory
    title: str
    description: str
    probability: Level
    impact: Level
    related_items: List[str]
    mitigations: List[Dict[str, Any]] = field(default_factory=list)


class SprintRiskAssessor(SchedulerBase):
    """
    Detects capacity, technical, dependency and scope risks in a sprint.
    """

    # Utilization thresholds
    SEVERE_OVERCOMMIT_RATIO = 1.3
    LOW_BUFFER_RATIO = 0.9

    # Dependency concentration
    MIN_HUB_DEPENDENTS = 2
    MAX_HUB_SHARE = 0.25  # hubs may be at most this share of the sprint
    MIN_GATED_SHARE = 0.5  # share of remaining items gated by hubs
    HIGH_GATED_SHARE = 0.75

    # Score scaling: three high/high risks saturate the score
    MAX_SEVERITY = 27
    HIGH_RISK_SCORE = 60
    MEDIUM_RISK_SCORE = 25

    SECTION_ID = "sprint-risk"

    def __init__(
        self,
        assessor: Optional[SelfAssessmentProvider] = None,
        settings: Optional[Settings] = None,
        scorer: Optional[ConfidenceScorer] = None,
    ):
        super().__init__(settings=settings, assessor=assessor, scorer=scorer)

    def run(self, params: Union[RiskAssessmentParams, Mapping[str, Any]]) -> RiskAssessment:
        return self.assess_risks(params)

    def assess_risks(self, params: Union[RiskAssessmentParams, Mapping[str, Any]]) -> RiskAssessment:
        """
        Assess a planned sprint.

        Args:
            params: RiskAssessmentParams or equivalent mapping; needs either a
                sprint capacity or a recommended load

        Returns:
            RiskAssessment whose mitigations all reference its risks
        """
        params = coerce_params(RiskAssessmentParams, params, "risk assessment params")
        items = params.sprint_items
        load = params.effective_load
        total = sum(self._item_points(i) for i in items)
        utilization = self._utilization(total, load)

        findings: List[_Finding] = []
        if items:
            findings.extend(self._capacity_risks(items, total, load, utilization))
            findings.extend(self._complexity_risks(items))
            findings.extend(self._dependency_risks(items, params))
            findings.extend(self._scope_risks(items))

        risks: List[SprintRisk] = []
        mitigations: List[Mitigation] = []
        for n, finding in enumerate(findings, start=1):
            risk_id = f"risk-{n}"
            risks.append(SprintRisk(
                id=risk_id,
                category=finding.category,
                title=finding.title,
                description=finding.description,
                probability=finding.probability,
                impact=finding.impact,
                related_items=finding.related_items,
            ))
            mitigations.extend(Mitigation(risk_id=risk_id, **m) for m in finding.mitigations)

        risk_score = self._risk_score(risks)
        overall = self._overall_risk(risks, risk_score)
        confidence = self._calculate_confidence(items, utilization, risks)

        self.logger.info(
            "Sprint risks assessed",
            item_count=len(items),
            risk_count=len(risks),
            risk_score=risk_score,
            overall_risk=overall.value,
        )

        return RiskAssessment(
            risks=risks,
            mitigations=mitigations,
            overall_risk=overall,
            risk_score=risk_score,
            confidence=confidence,
        )

    def _item_points(self, item: WorkItem) -> float:
        return item.points if item.points is not None else self.settings.DEFAULT_ITEM_POINTS

    @staticmethod
    def _utilization(total: float, load: float) -> float:
        if load > 0:
            return total / load
        return math.inf if total > 0 else 0.0

    # =========================================================================
    # Rules
    # =========================================================================

    def _capacity_risks(
        self,
        items: List[WorkItem],
        total: float,
        load: float,
        utilization: float,
    ) -> List[_Finding]:
        ids = [i.id for i in items]

        if utilization > 1.0:
            overage = total - load
            return [_Finding(
                category=RiskCategory.CAPACITY,
                title="Sprint overcommitment",
                description=(
                    f"Planned {total:g} points against a recommended load of {load:g} "
                    f"({overage:g} points over)"
                ),
                probability=Level.HIGH if utilization > self.SEVERE_OVERCOMMIT_RATIO else Level.MEDIUM,
                impact=Level.HIGH,
                related_items=ids,
                mitigations=[
                    {
                        "strategy": MitigationStrategy.MITIGATE,
                        "action": f"Reduce sprint scope by at least {math.ceil(overage)} points or defer lower-priority items",
                        "effort": Level.LOW,
                        "effectiveness": 0.8,
                    },
                    {
                        "strategy": MitigationStrategy.TRANSFER,
                        "action": "Move overflow items to the next sprint or another team with spare capacity",
                        "effort": Level.MEDIUM,
                        "effectiveness": 0.6,
                    },
                ],
            )]

        if self.LOW_BUFFER_RATIO < utilization < 1.0:
            return [_Finding(
                category=RiskCategory.CAPACITY,
                title="Low capacity buffer",
                description=f"Sprint is planned at {utilization:.0%} of recommended load, leaving little slack",
                probability=Level.MEDIUM,
                impact=Level.MEDIUM,
                related_items=ids,
                mitigations=[{
                    "strategy": MitigationStrategy.ACCEPT,
                    "action": "Identify a stretch item that can be dropped first if unplanned work arrives",
                    "effort": Level.LOW,
                    "effectiveness": 0.5,
                }],
            )]
        return []

    def _complexity_risks(self, items: List[WorkItem]) -> List[_Finding]:
        threshold = self.settings.LARGE_ITEM_POINTS
        findings = []
        for item in items:
            points = self._item_points(item)
            if points < threshold:
                continue
            findings.append(_Finding(
                category=RiskCategory.TECHNICAL,
                title=f"High complexity item: {item.title or item.id}",
                description=f"Item {item.id} is sized at {points:g} points (threshold {threshold})",
                probability=Level.MEDIUM,
                impact=Level.HIGH if points > threshold else Level.MEDIUM,
                related_items=[item.id],
                mitigations=[{
                    "strategy": MitigationStrategy.MITIGATE,
                    "action": f"Consider breaking {item.id} into smaller, independently deliverable items",
                    "effort": Level.MEDIUM,
                    "effectiveness": 0.7,
                }],
            ))
        return findings

    def _dependency_risks(self, items: List[WorkItem], params: RiskAssessmentParams) -> List[_Finding]:
        sprint_ids = {i.id for i in items}
        dependents: Dict[str, Set[str]] = {i.id: set() for i in items}
        for item in items:
            for dep in item.dependencies:
                if dep in sprint_ids and dep != item.id:
                    dependents[dep].add(item.id)
        for edge in params.dependencies:
            if edge.from_id in sprint_ids and edge.to_id in sprint_ids and edge.from_id != edge.to_id:
                dependents[edge.from_id].add(edge.to_id)

        hubs = [i.id for i in items if len(dependents[i.id]) >= self.MIN_HUB_DEPENDENTS]
        if not hubs or len(hubs) > max(1, round(self.MAX_HUB_SHARE * len(items))):
            return []

        gated = set().union(*(dependents[h] for h in hubs)) - set(hubs)
        others = len(items) - len(hubs)
        share = len(gated) / others if others else 0.0
        if share < self.MIN_GATED_SHARE:
            return []

        hub_list = ", ".join(hubs)
        return [_Finding(
            category=RiskCategory.DEPENDENCY,
            title="High dependency concentration",
            description=(
                f"{len(gated)} of {others} other items depend on {hub_list}; "
                f"a delay there blocks most of the sprint"
            ),
            probability=Level.HIGH if share >= self.HIGH_GATED_SHARE else Level.MEDIUM,
            impact=Level.HIGH,
            related_items=hubs + sorted(gated),
            mitigations=[
                {
                    "strategy": MitigationStrategy.MITIGATE,
                    "action": f"Start {hub_list} first and swarm on them until unblocked",
                    "effort": Level.LOW,
                    "effectiveness": 0.7,
                },
                {
                    "strategy": MitigationStrategy.AVOID,
                    "action": "Split hub items so dependents can start on a stable interface early",
                    "effort": Level.MEDIUM,
                    "effectiveness": 0.6,
                },
            ],
        )]

    def _scope_risks(self, items: List[WorkItem]) -> List[_Finding]:
        min_length = self.settings.MIN_DESCRIPTION_LENGTH
        unclear = [i.id for i in items if len(i.description.strip()) < min_length]
        ratio = len(unclear) / len(items)
        if ratio <= self.settings.UNCLEAR_SCOPE_RATIO:
            return []

        return [_Finding(
            category=RiskCategory.SCOPE,
            title="Unclear item definitions",
            description=(
                f"{len(unclear)} of {len(items)} items have descriptions shorter than "
                f"{min_length} characters"
            ),
            probability=Level.HIGH if ratio > 0.6 else Level.MEDIUM,
            impact=Level.MEDIUM,
            related_items=unclear,
            mitigations=[{
                "strategy": MitigationStrategy.MITIGATE,
                "action": "Refine item descriptions and acceptance criteria before sprint start",
                "effort": Level.MEDIUM,
                "effectiveness": 0.7,
            }],
        )]

    # =========================================================================
    # Scoring
    # =========================================================================

    def _risk_score(self, risks: List[SprintRisk]) -> int:
        severity = sum(LEVEL_WEIGHTS[r.probability] * LEVEL_WEIGHTS[r.impact] for r in risks)
        return min(100, round(severity * 100 / self.MAX_SEVERITY))

    def _overall_risk(self, risks: List[SprintRisk], score: int) -> Level:
        if score >= self.HIGH_RISK_SCORE or any(
            r.probability == Level.HIGH and r.impact == Level.HIGH for r in risks
        ):
            return Level.HIGH
        if score >= self.MEDIUM_RISK_SCORE or any(r.impact == Level.HIGH for r in risks):
            return Level.MEDIUM
        return Level.LOW

    def _calculate_confidence(
        self,
        items: List[WorkItem],
        utilization: float,
        risks: List[SprintRisk],
    ) -> SectionConfidence:
        if items:
            described = sum(
                1 for i in items if len(i.description.strip()) >= self.settings.MIN_DESCRIPTION_LENGTH
            ) / len(items)
        else:
            described = 1.0

        ai_value = self.request_self_assessment({
            "kind": "sprint_risk",
            "item_ids": [i.id for i in items],
            "risks": [r.model_dump(mode="json") for r in risks],
        })

        factors = ConfidenceFactors(
            input_completeness=round(described * 0.7 + 0.3, 4),
            ai_self_assessment=ai_value if ai_value is not None else 0.5,
            pattern_match=0.7 if utilization <= 1.0 else 0.5,
        )
        if ai_value is not None:
            reasoning = "Rule-based risk detection with AI self-assessment"
        else:
            reasoning = "Algorithmic risk detection (AI unavailable, fallback heuristics)"
        return self.scorer.score_factors(self.SECTION_ID, factors, reasoning, section_name="sprint risks")
