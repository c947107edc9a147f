from __future__ import annotations

import hashlib
import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from . import models
from .errors import Conflict, InvalidArgument


def hash_payload(payload: dict) -> str:
    return hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()


def lookup(db: Session, *, scope: str, key: str, payload: dict) -> Optional[models.IdempotencyKey]:
    """Return the stored key for a replay, or None for a first use.

    Raises ``Conflict`` when the key was already used with another payload.
    """
    if not key or not key.strip():
        raise InvalidArgument("Idempotency-Key must not be blank")

    existing = (
        db.query(models.IdempotencyKey)
        .filter(
            models.IdempotencyKey.scope == scope,
            models.IdempotencyKey.key == key.strip(),
        )
        .first()
    )
    if existing is None:
        return None
    if existing.payload_hash != hash_payload(payload):
        raise Conflict("Idempotency key reuse with different payload.")
    return existing


def register(db: Session, *, scope: str, key: str, payload: dict, resource_id: Any) -> models.IdempotencyKey:
    """Record the key in the caller's transaction (flush only).

    A concurrent first use of the same key loses on the unique constraint
    and surfaces as ``Conflict`` when the caller commits.
    """
    entry = models.IdempotencyKey(
        scope=scope,
        key=key.strip(),
        payload_hash=hash_payload(payload),
        resource_id=resource_id,
    )
    db.add(entry)
    db.flush()
    return entry
