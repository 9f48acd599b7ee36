"""
Optional AI capability interfaces.

Components accept these as constructor arguments. When none is supplied the
component runs its deterministic heuristics only.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class SelfAssessmentProvider(Protocol):
    """Returns a 0-1 assessment for the payload, or None when it has no opinion."""

    def get_self_assessment(self, payload: Dict[str, Any]) -> Optional[float]:
        ...


@runtime_checkable
class CompositionProvider(Protocol):
    """Proposes an alternative sprint composition.

    The returned mapping must contain `item_ids` (ordered list of backlog ids)
    and may contain `reasoning`.
    """

    def suggest_composition(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...
