"""
Planalytics Structured Logging

Every event carries the engine name and version so analysis logs can be told
apart from the host service's own output.
"""

import logging
import sys
from typing import Any, MutableMapping, Optional

import structlog

from planalytics.platform.config import Settings, settings as default_settings


class EngineInfo:
    """Processor stamping `engine` and `engine_version` onto each event."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("engine", self.name)
        event_dict.setdefault("engine_version", self.version)
        return event_dict


def build_processors(config: Settings) -> list:
    renderer = (
        structlog.processors.JSONRenderer()
        if config.APP_ENV == "production"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        EngineInfo(config.APP_NAME, config.VERSION),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure structlog for the host process; JSON output in production."""
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(config),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)


def get_logger(name: Optional[str] = None, **initial_values: Any) -> structlog.BoundLogger:
    """Logger for one engine component, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger
