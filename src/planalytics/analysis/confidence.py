"""
Confidence Scorer

Attaches a 0-100 reliability score to any generated section from three
factors: how complete the input was, the AI's own assessment, and how well
the section fits known patterns.

Usage:
    scorer = ConfidenceScorer()
    section = scorer.calculate_section_confidence({
        "section_id": "overview",
        "input_data": {"description": "..."},
        "ai_self_assessment": 0.8,
    })
    summary = scorer.aggregate_confidence([section])
"""

from statistics import mean
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from planalytics.ai_providers import SelfAssessmentProvider
from planalytics.domain.confidence import (
    AggregateConfidence,
    ConfidenceConfig,
    ConfidenceFactors,
    ConfidenceTier,
    ConfidenceWeights,
    InputData,
    SectionConfidence,
    SectionConfidenceParams,
)
from planalytics.errors import ConfigurationError, coerce_params
from planalytics.platform.config import Settings, get_settings
from planalytics.platform.logging import get_logger

logger = get_logger(__name__)

MAX_QUESTIONS = 5
MAX_QUESTIONS_WHEN_CONFIDENT = 2
LOW_FACTOR = 0.5
HIGH_FACTOR = 0.7

# Used when no AI self-assessment is available
NEUTRAL_SELF_ASSESSMENT = 0.5


def default_confidence_config(settings: Optional[Settings] = None) -> ConfidenceConfig:
    settings = settings or get_settings()
    return ConfidenceConfig(
        warning_threshold=settings.CONFIDENCE_WARNING_THRESHOLD,
        error_threshold=settings.CONFIDENCE_ERROR_THRESHOLD,
    )


def calculate_input_completeness(input_data: Union[InputData, Mapping[str, Any]]) -> float:
    """
    Score how much material a section was built from.

    Description length saturates at 500 characters; list inputs saturate at
    a handful of entries.

    Returns:
        Completeness in [0, 1]
    """
    data = coerce_params(InputData, input_data, "input data")
    score = 0.0

    description = data.description.strip()
    if len(description) >= 500:
        score += 0.3
    elif len(description) >= 100:
        score += 0.2
    elif description:
        score += 0.1

    score += min(0.2, len(data.examples) * 0.05)
    score += min(0.2, len(data.constraints) * 0.04)

    context = data.context.strip()
    if len(context) > 50:
        score += 0.15
    elif context:
        score += 0.08

    score += min(0.15, len(data.requirements) * 0.03)
    return round(min(1.0, max(0.0, score)), 4)


def calculate_pattern_match(section_name: str, input_data: Union[InputData, Mapping[str, Any]]) -> float:
    """Heuristic fit of a section against common document section shapes."""
    data = coerce_params(InputData, input_data, "input data")
    name = section_name.lower()
    description = data.description.lower()
    score = 0.5

    if "overview" in name or "description" in name:
        if "problem" in description or "challenge" in description:
            score += 0.1
        if "solution" in description or "will" in description:
            score += 0.1
        if "value" in description or "benefit" in description:
            score += 0.1

    if "feature" in name or "requirement" in name:
        if data.examples:
            score += 0.15
        if data.constraints:
            score += 0.1

    if "user" in name or "persona" in name:
        if len(data.description) > 200:
            score += 0.2

    return min(1.0, score)


def calculate_weighted_score(
    factors: Union[ConfidenceFactors, Mapping[str, float]],
    weights: Optional[Union[ConfidenceWeights, Mapping[str, float]]] = None,
) -> int:
    """round(100 * sum(weight * factor)), clamped to [0, 100]."""
    factors = coerce_params(ConfidenceFactors, factors, "confidence factors")
    weights = ConfidenceWeights() if weights is None else coerce_params(
        ConfidenceWeights, weights, "confidence weights"
    )
    raw = (
        weights.input_completeness * factors.input_completeness
        + weights.ai_self_assessment * factors.ai_self_assessment
        + weights.pattern_match * factors.pattern_match
    )
    return max(0, min(100, round(raw * 100)))


def get_confidence_tier(score: float, config: Optional[ConfidenceConfig] = None) -> ConfidenceTier:
    config = config or default_confidence_config()
    if score >= config.warning_threshold:
        return ConfidenceTier.HIGH
    if score >= config.error_threshold:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def generate_clarifying_questions(
    section_name: str,
    factors: Union[ConfidenceFactors, Mapping[str, float]],
    ai_uncertain_areas: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    Questions that would raise confidence in a section, most useful first.

    At most five; at most two when every factor is already high.
    """
    factors = coerce_params(ConfidenceFactors, factors, "confidence factors")
    section = section_name.lower()
    questions: List[str] = []

    if factors.input_completeness < LOW_FACTOR:
        questions.append(f"Can you provide more details about the {section}?")
        questions.append(f"Are there specific examples or use cases for the {section} you can share?")

    if factors.pattern_match < LOW_FACTOR:
        questions.append(f"Does the {section} follow any industry standards or existing patterns?")

    if factors.ai_self_assessment < LOW_FACTOR:
        questions.append(f"Which parts of the {section} are you least sure about?")

    for area in ai_uncertain_areas or []:
        questions.append(f"Could you clarify: {area}?")

    all_high = min(
        factors.input_completeness, factors.ai_self_assessment, factors.pattern_match
    ) >= HIGH_FACTOR
    limit = MAX_QUESTIONS_WHEN_CONFIDENT if all_high else MAX_QUESTIONS
    return questions[:limit]


class ConfidenceScorer:
    """
    Produces SectionConfidence records and aggregates them.

    An optional SelfAssessmentProvider fills in `ai_self_assessment` when the
    caller does not supply one.
    """

    def __init__(
        self,
        config: Optional[ConfidenceConfig] = None,
        assessor: Optional[SelfAssessmentProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self._config = config or default_confidence_config(settings)
        self.assessor = assessor

    def get_config(self) -> ConfidenceConfig:
        return self._config.model_copy(deep=True)

    def update_config(self, **changes: Any) -> ConfidenceConfig:
        """
        Merge changes into the current configuration.

        Raises:
            ConfigurationError: invalid values or error threshold above warning threshold
        """
        merged = {**self._config.model_dump(), **changes}
        try:
            config = ConfidenceConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError("Invalid confidence configuration", {"errors": e.errors()}) from e

        if config.error_threshold > config.warning_threshold:
            raise ConfigurationError(
                "error_threshold must not exceed warning_threshold",
                {"error_threshold": config.error_threshold, "warning_threshold": config.warning_threshold},
            )

        self._config = config
        logger.info(
            "Confidence config updated",
            warning_threshold=config.warning_threshold,
            error_threshold=config.error_threshold,
        )
        return self.get_config()

    def _assess(self, params: SectionConfidenceParams) -> Optional[float]:
        if self.assessor is None:
            return None
        try:
            value = self.assessor.get_self_assessment({
                "kind": "section_confidence",
                "section_id": params.section_id,
                "section_name": params.section_name,
                "content": params.content,
            })
        except Exception as e:
            logger.warning("Self-assessment provider failed", section_id=params.section_id, error=str(e))
            return None
        if value is None or not 0.0 <= value <= 1.0:
            return None
        return float(value)

    def calculate_section_confidence(
        self, params: Union[SectionConfidenceParams, Mapping[str, Any]]
    ) -> SectionConfidence:
        params = coerce_params(SectionConfidenceParams, params, "section confidence params")
        section_name = params.section_name or params.section_id

        ai_value = params.ai_self_assessment
        if ai_value is None:
            ai_value = self._assess(params)
        reasoning = params.ai_reasoning
        if ai_value is None:
            ai_value = NEUTRAL_SELF_ASSESSMENT
            reasoning = reasoning or "No AI self-assessment available; scored by algorithmic fallback heuristics"

        pattern_match = params.pattern_match
        if pattern_match is None:
            pattern_match = calculate_pattern_match(section_name, params.input_data)

        factors = ConfidenceFactors(
            input_completeness=calculate_input_completeness(params.input_data),
            ai_self_assessment=ai_value,
            pattern_match=pattern_match,
        )
        score = calculate_weighted_score(factors, self._config.weights)
        needs_review = score < self._config.warning_threshold

        return SectionConfidence(
            section_id=params.section_id,
            score=score,
            tier=get_confidence_tier(score, self._config),
            factors=factors,
            needs_review=needs_review,
            clarifying_questions=(
                generate_clarifying_questions(section_name, factors, params.uncertain_areas)
                if needs_review else None
            ),
            reasoning=reasoning,
        )

    def score_factors(
        self,
        section_id: str,
        factors: ConfidenceFactors,
        reasoning: Optional[str] = None,
        section_name: Optional[str] = None,
    ) -> SectionConfidence:
        """Build a SectionConfidence from factors a component computed itself."""
        score = calculate_weighted_score(factors, self._config.weights)
        needs_review = score < self._config.warning_threshold
        return SectionConfidence(
            section_id=section_id,
            score=score,
            tier=get_confidence_tier(score, self._config),
            factors=factors,
            needs_review=needs_review,
            clarifying_questions=(
                generate_clarifying_questions(section_name or section_id.replace("-", " "), factors)
                if needs_review else None
            ),
            reasoning=reasoning,
        )

    def aggregate_confidence(self, sections: Iterable[SectionConfidence]) -> AggregateConfidence:
        sections = list(sections)
        if not sections:
            return AggregateConfidence(
                overall_score=0,
                overall_tier=ConfidenceTier.LOW,
                low_confidence_sections=[],
                total_sections=0,
                sections_needing_review=0,
            )

        overall = round(mean(s.score for s in sections))
        return AggregateConfidence(
            overall_score=overall,
            overall_tier=get_confidence_tier(overall, self._config),
            low_confidence_sections=[s.section_id for s in sections if s.tier == ConfidenceTier.LOW],
            total_sections=len(sections),
            sections_needing_review=sum(1 for s in sections if s.needs_review),
        )
