"""
Typed errors surfaced by the planning engine.

Degenerate data (empty backlogs, missing points, cycles) never raises; these
errors cover input that cannot be interpreted at all.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class ErrorCategory(str, Enum):
    INVALID_INPUT = "invalid_input"
    INVALID_CONFIGURATION = "invalid_configuration"


class PlanningError(Exception):
    """Base error carrying a machine-readable category."""

    category: ErrorCategory = ErrorCategory.INVALID_INPUT

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(PlanningError):
    """Raised when a parameter object cannot be validated."""

    category = ErrorCategory.INVALID_INPUT

    @classmethod
    def from_validation_error(cls, name: str, exc: ValidationError) -> "InvalidInputError":
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        return cls(f"Invalid {name}: {exc.error_count()} validation error(s)", {"errors": errors})


class ConfigurationError(PlanningError):
    """Raised when a component is reconfigured with inconsistent values."""

    category = ErrorCategory.INVALID_CONFIGURATION


def coerce_params(model_cls: Type[M], params: Union[M, Mapping[str, Any]], name: str) -> M:
    """Validate a mapping into `model_cls`, converting failures to InvalidInputError."""
    if isinstance(params, model_cls):
        return params
    try:
        return model_cls.model_validate(params)
    except ValidationError as e:
        raise InvalidInputError.from_validation_error(name, e) from e
