from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from .registry import WORKFLOWS

logger = logging.getLogger(__name__)

INVALID_TRANSITION = "invalid_transition"
MISSING_REQUIREMENTS = "missing_requirements"

Guard = Callable[..., List[Dict[str, str]]]


@dataclass
class TransitionError(Exception):
    code: str
    detail: List[Dict[str, str]]

    def __str__(self) -> str:
        return "; ".join(item.get("reason", "") for item in self.detail) or self.code


def _edges(entity_type: str) -> Dict[str, Dict[str, Sequence[Guard]]]:
    workflow = WORKFLOWS.get(entity_type)
    if workflow is None:
        raise TransitionError(
            code=INVALID_TRANSITION,
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )
    return workflow["transitions"]


def allowed_targets(entity_type: str, from_state: str) -> List[str]:
    """States reachable from ``from_state``; empty for terminal states."""
    return sorted(_edges(entity_type).get(from_state, {}))


def apply_transition(
    db: Session,
    *,
    actor: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: str,
    to_state: str,
    before_obj: Any,
    after_obj: Any,
) -> None:
    """Check one state change against the transition table and its guards.

    Nothing is written: the caller owns the status update and the
    transaction around it.
    """
    guards = _edges(entity_type).get(from_state, {}).get(to_state)
    if guards is None:
        raise TransitionError(
            code=INVALID_TRANSITION,
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures = [
        failure
        for guard in guards
        for failure in guard(db, before_obj=before_obj, after_obj=after_obj, from_state=from_state, to_state=to_state)
    ]
    if failures:
        raise TransitionError(code=MISSING_REQUIREMENTS, detail=failures)

    logger.debug(
        "%s %s: %s -> %s",
        entity_type,
        entity_id,
        from_state,
        to_state,
        extra={"actor": actor},
    )
