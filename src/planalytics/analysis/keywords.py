"""
Keyword Extractor

Normalizes free text into keyword lists and matches them against an explicit
table of work-category patterns to infer likely dependencies between items.

Usage:
    a = extract_keywords("Create database schema for users")
    b = extract_keywords("Build REST endpoint for user lookup")

    result = check_keyword_dependency(a, b)
    if result.likely:
        print(result.confidence, result.reason)
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from planalytics.domain.work_items import WorkItem


STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "this", "that", "these", "those", "it", "its", "which", "who", "whom",
    "what", "when", "where", "why", "how", "all", "each", "every", "both",
    "few", "more", "most", "other", "some", "such", "no", "nor", "not",
    "only", "own", "same", "so", "than", "too", "very",
})

MIN_KEYWORD_LENGTH = 3

# Pattern keywords shorter than this only match exactly
MIN_PREFIX_LENGTH = 4

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


@dataclass(frozen=True)
class DependencyPattern:
    """A work category, the keywords that signal it and its upstream categories."""
    name: str
    keywords: Tuple[str, ...]
    depends_on: Tuple[str, ...]
    confidence: float  # 0-1


@dataclass(frozen=True)
class KeywordDependency:
    likely: bool
    confidence: float
    reason: str


# Ordered upstream-first: an item is classified by the first category it
# touches, so "write tests for the api endpoint" is api work.
DEPENDENCY_PATTERNS: Tuple[DependencyPattern, ...] = (
    DependencyPattern(
        name="infrastructure",
        keywords=("setup", "infrastructure", "init", "config", "scaffold", "provision", "environment"),
        depends_on=(),
        confidence=0.9,
    ),
    DependencyPattern(
        name="database",
        keywords=("database", "schema", "model", "migration", "table", "index"),
        depends_on=("infrastructure",),
        confidence=0.85,
    ),
    DependencyPattern(
        name="api",
        keywords=("api", "endpoint", "route", "controller", "service", "backend", "rest", "graphql"),
        depends_on=("database",),
        confidence=0.8,
    ),
    DependencyPattern(
        name="frontend",
        keywords=("frontend", "component", "page", "view", "interface", "screen", "layout"),
        depends_on=("api",),
        confidence=0.75,
    ),
    DependencyPattern(
        name="integration",
        keywords=("integration", "integrate", "connect", "wire", "link"),
        depends_on=("api", "frontend"),
        confidence=0.7,
    ),
    DependencyPattern(
        name="implementation",
        keywords=("implement", "create", "build", "develop", "feature", "logic"),
        depends_on=(),
        confidence=0.6,
    ),
    DependencyPattern(
        name="testing",
        keywords=("test", "unit", "e2e", "coverage", "regression"),
        depends_on=("implementation",),
        confidence=0.85,
    ),
    DependencyPattern(
        name="documentation",
        keywords=("document", "docs", "readme", "guide", "manual"),
        depends_on=("testing",),
        confidence=0.7,
    ),
    DependencyPattern(
        name="deployment",
        keywords=("deploy", "release", "publish", "ship", "rollout"),
        depends_on=("documentation",),
        confidence=0.9,
    ),
)


def extract_keywords(text: Optional[str]) -> List[str]:
    """
    Tokenize text into normalized keywords.

    Lower-cases, replaces punctuation with spaces, drops stop words and
    tokens shorter than three characters, and de-duplicates preserving the
    first-seen order.
    """
    if not text:
        return []

    normalized = _NON_ALPHANUMERIC.sub(" ", text.lower())
    seen: Set[str] = set()
    keywords: List[str] = []
    for token in normalized.split():
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    return keywords


def extract_item_keywords(item: WorkItem) -> List[str]:
    """Keywords of an item's title, description and labels."""
    parts = [item.title, item.description, " ".join(item.labels)]
    return extract_keywords(" ".join(p for p in parts if p))


def _keyword_matches(token: str, pattern_keyword: str) -> bool:
    if token == pattern_keyword:
        return True
    return len(pattern_keyword) >= MIN_PREFIX_LENGTH and token.startswith(pattern_keyword)


def _touches(keywords: Iterable[str], pattern: DependencyPattern) -> bool:
    return any(_keyword_matches(k, pk) for k in keywords for pk in pattern.keywords)


def matching_categories(keywords: Iterable[str]) -> List[str]:
    """Names of every pattern the keywords touch, in table order."""
    keywords = list(keywords)
    return [p.name for p in DEPENDENCY_PATTERNS if _touches(keywords, p)]


def find_matching_pattern(keywords: Iterable[str]) -> Optional[DependencyPattern]:
    """Return the first pattern (in table order) the keywords touch, if any."""
    keywords = list(keywords)
    for pattern in DEPENDENCY_PATTERNS:
        if _touches(keywords, pattern):
            return pattern
    return None


def check_keyword_dependency(
    a_keywords: Iterable[str],
    b_keywords: Iterable[str],
) -> KeywordDependency:
    """
    Decide whether item B plausibly depends on item A.

    B is classified by its first matching pattern. A qualifies when any
    category its keywords touch is one of that pattern's upstream
    categories. Confidence is the pattern confidence scaled by the share of
    upstream categories A covers.

    Args:
        a_keywords: Keywords of the candidate predecessor
        b_keywords: Keywords of the candidate dependent

    Returns:
        KeywordDependency with likely flag, confidence (0-1) and reason
    """
    pattern_b = find_matching_pattern(b_keywords)
    if pattern_b is None or not pattern_b.depends_on:
        return KeywordDependency(likely=False, confidence=0.0, reason="No pattern match")

    a_categories = set(matching_categories(a_keywords))
    matched = [dep for dep in pattern_b.depends_on if dep in a_categories]
    if not matched:
        return KeywordDependency(
            likely=False, confidence=0.0, reason="Keywords do not suggest dependency"
        )

    confidence = pattern_b.confidence * (len(matched) / len(pattern_b.depends_on))
    return KeywordDependency(
        likely=True,
        confidence=round(confidence, 4),
        reason=f"Task matches dependency pattern: {pattern_b.name} depends on {', '.join(matched)}",
    )
