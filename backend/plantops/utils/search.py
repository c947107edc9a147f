from __future__ import annotations

from typing import Optional

# Pass as ``escape=`` to every ``ilike`` built from ``like_pattern``.
LIKE_ESCAPE = "\\"


def like_pattern(search: Optional[str]) -> Optional[str]:
    """Substring pattern for a free-text search box, or None when blank.

    ``%`` and ``_`` typed by the user match themselves, not any text.
    """
    if search is None:
        return None
    term = search.strip()
    if not term:
        return None
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"
