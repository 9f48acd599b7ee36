"""
Tests for structured logging setup.
"""

import structlog
from structlog.testing import capture_logs

from planalytics.platform.config import Settings
from planalytics.platform.logging import EngineInfo, build_processors, get_logger
from planalytics.schedulers.backlog_prioritizer import BacklogPrioritizer


class RaisingAssessor:
    def get_self_assessment(self, payload):
        raise RuntimeError("backend down")


class TestEngineInfo:

    def test_stamps_engine_name_and_version(self):
        event = EngineInfo("Planalytics", "1.2.3")(None, "info", {"event": "hello"})
        assert event["engine"] == "Planalytics"
        assert event["engine_version"] == "1.2.3"

    def test_keeps_values_bound_by_the_caller(self):
        event = EngineInfo("Planalytics", "1.2.3")(None, "info", {"event": "hello", "engine": "host"})
        assert event["engine"] == "host"


class TestProcessors:

    def test_engine_info_comes_from_settings(self):
        processors = build_processors(Settings(_env_file=None, APP_NAME="Planner", VERSION="9.9"))
        info = next(p for p in processors if isinstance(p, EngineInfo))
        assert (info.name, info.version) == ("Planner", "9.9")

    def test_json_renderer_in_production(self):
        processors = build_processors(Settings(_env_file=None, APP_ENV="production"))
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_elsewhere(self):
        processors = build_processors(Settings(_env_file=None, APP_ENV="test"))
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


class TestLoggers:

    def test_initial_values_are_bound(self):
        with capture_logs() as logs:
            get_logger("planalytics.test", run="r1").warning("Checked")
        assert logs[0]["run"] == "r1"
        assert logs[0]["event"] == "Checked"

    def test_scheduler_events_carry_their_section(self, settings):
        with capture_logs() as logs:
            prioritizer = BacklogPrioritizer(assessor=RaisingAssessor(), settings=settings)
            assert prioritizer.request_self_assessment({"kind": "business_value"}) is None

        failed = [e for e in logs if e["event"] == "Self-assessment provider failed"]
        assert failed[0]["section"] == "backlog-prioritization"
        assert failed[0]["log_level"] == "warning"
        assert failed[0]["error"] == "backend down"
