"""
Tests for keyword extraction and pattern-based dependency inference.
"""

import pytest

from planalytics.analysis.keywords import (
    DEPENDENCY_PATTERNS,
    check_keyword_dependency,
    extract_item_keywords,
    extract_keywords,
    find_matching_pattern,
    matching_categories,
)
from planalytics.domain.work_items import WorkItem


class TestExtractKeywords:
    """Tests for text normalization."""

    def test_lowercases_and_strips_punctuation(self):
        assert extract_keywords("Build the REST-API, now!") == ["build", "rest", "api", "now"]

    def test_removes_stop_words_and_short_tokens(self):
        assert extract_keywords("Set up a DB on the server for us") == ["set", "server"]

    def test_deduplicates_preserving_first_seen_order(self):
        assert extract_keywords("deploy api then api deploy") == ["deploy", "api", "then"]

    @pytest.mark.parametrize("text", ["", None, "   ", "a an the of"])
    def test_empty_input_gives_no_keywords(self, text):
        assert extract_keywords(text) == []

    def test_item_keywords_cover_title_description_and_labels(self):
        item = WorkItem(id="1", title="Login page", description="Render form", labels=["frontend"])
        assert extract_item_keywords(item) == ["login", "page", "render", "form", "frontend"]


class TestPatternMatching:
    """Tests for the dependency pattern table."""

    def test_pattern_table_declares_known_upstreams(self):
        names = {p.name for p in DEPENDENCY_PATTERNS}
        for pattern in DEPENDENCY_PATTERNS:
            assert set(pattern.depends_on) <= names
            assert 0 < pattern.confidence <= 1

    def test_first_match_wins_in_table_order(self):
        pattern = find_matching_pattern(["deploy", "api", "documentation"])
        assert pattern.name == "api"

    def test_upstream_category_classifies_mixed_items(self):
        keywords = extract_keywords("Write unit tests for the user API endpoint")
        assert find_matching_pattern(keywords).name == "api"
        assert find_matching_pattern(extract_keywords("Deploy the release notes docs")).name == "documentation"

    def test_table_runs_upstream_first(self):
        names = [p.name for p in DEPENDENCY_PATTERNS]
        assert names.index("infrastructure") < names.index("database") < names.index("api")
        assert names.index("implementation") < names.index("testing") < names.index("deployment")

    def test_prefix_match_on_longer_keywords(self):
        assert find_matching_pattern(["migrations"]).name == "database"
        assert find_matching_pattern(["tests"]).name == "testing"

    def test_no_match_returns_none(self):
        assert find_matching_pattern(["banana", "orange"]) is None

    def test_matching_categories_lists_all_touched(self):
        assert matching_categories(["create", "database", "schema"]) == ["database", "implementation"]


class TestCheckKeywordDependency:
    """Tests for pairwise dependency inference."""

    def test_api_depends_on_database(self):
        result = check_keyword_dependency(
            extract_keywords("Create database schema for users"),
            extract_keywords("Build REST endpoint for user lookup"),
        )
        assert result.likely is True
        assert result.confidence == pytest.approx(0.8)
        assert "api" in result.reason

    def test_testing_depends_on_implementation(self):
        result = check_keyword_dependency(
            extract_keywords("Implement password reset"),
            extract_keywords("Write tests for password reset"),
        )
        assert result.likely is True
        assert result.confidence == pytest.approx(0.85)

    def test_reverse_direction_is_not_inferred(self):
        result = check_keyword_dependency(
            extract_keywords("Build REST endpoint for user lookup"),
            extract_keywords("Create database schema for users"),
        )
        assert result.likely is False
        assert result.confidence == 0.0

    def test_no_pattern_match(self):
        result = check_keyword_dependency(["database"], ["banana"])
        assert result.likely is False
        assert result.reason == "No pattern match"

    def test_partial_upstream_coverage_scales_confidence(self):
        # integration depends on api and frontend; only api is covered
        result = check_keyword_dependency(["endpoint"], ["integrate", "payments"])
        assert result.likely is True
        assert result.confidence == pytest.approx(0.35)

    def test_unrelated_upstream(self):
        result = check_keyword_dependency(["readme"], ["endpoint"])
        assert result.likely is False
        assert result.reason == "Keywords do not suggest dependency"
