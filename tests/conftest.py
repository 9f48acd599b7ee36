"""
Pytest configuration and shared fixtures.
"""

import os

import pytest

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "warning")

from planalytics.domain.work_items import WorkItem  # noqa: E402
from planalytics.platform.config import Settings  # noqa: E402
from planalytics.platform.logging import configure_logging  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging() -> None:
    """Configure structured logging once for the test session."""
    configure_logging()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def make_item():
    """Factory for work items with sensible defaults."""
    def _make(item_id: str, **kwargs) -> WorkItem:
        kwargs.setdefault("title", f"Item {item_id}")
        return WorkItem(id=item_id, **kwargs)
    return _make
