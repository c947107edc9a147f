from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def guard_request_approve(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if _blank(_get_value(after_obj, "approved_by")):
        return [{"field": "approved_by", "reason": "approver required"}]
    return []


def guard_request_reject(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if _blank(_get_value(after_obj, "rejected_by")):
        missing.append({"field": "rejected_by", "reason": "rejecter required"})
    if _blank(_get_value(after_obj, "rejection_reason")):
        missing.append({"field": "rejection_reason", "reason": "rejection reason required"})
    return missing


def guard_request_fulfill(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(before_obj, "warehouse_id"):
        return [{"field": "warehouse_id", "reason": "warehouse required for fulfillment"}]
    return []
