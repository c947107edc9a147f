from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Optional

# 48 random bits per day and prefix; unique constraints catch the rest.
_SUFFIX_BYTES = 6


def generate_reference(prefix: str, *, now: Optional[datetime] = None) -> str:
    """
    Human-readable reference such as ``LOT-20250214-1F3A9C0B72DE``.

    Used for lot, movement and stock-request numbers shown to store staff.
    """
    day = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    return f"{prefix.upper()}-{day}-{secrets.token_hex(_SUFFIX_BYTES).upper()}"
