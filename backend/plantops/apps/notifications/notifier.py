from __future__ import annotations

import os
from typing import Callable, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from . import models


class Notifier(Protocol):
    def notify(
        self,
        *,
        target_user_id: int,
        event_type: str,
        title: str,
        message: str,
        link: Optional[str],
    ) -> None:
        ...


class NoopNotifier:
    def notify(
        self,
        *,
        target_user_id: int,
        event_type: str,
        title: str,
        message: str,
        link: Optional[str],
    ) -> None:
        return None


class DatabaseNotifier:
    """Stores in-app notifications, one short transaction per delivery."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def notify(
        self,
        *,
        target_user_id: int,
        event_type: str,
        title: str,
        message: str,
        link: Optional[str],
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                models.Notification(
                    user_id=target_user_id,
                    type=event_type,
                    title=title,
                    message=message,
                    link=link,
                    read=False,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_notifier(session_factory: Callable[[], Session]) -> Tuple[Notifier, bool]:
    enabled = os.getenv("NOTIFICATIONS_ENABLED", "true").strip().lower()
    if enabled in {"0", "false", "no", "off", "disabled"}:
        return NoopNotifier(), False
    return DatabaseNotifier(session_factory), True
