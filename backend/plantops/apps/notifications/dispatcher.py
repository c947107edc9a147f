"""
Outbound notification queue.

Ledger operations publish events only after their transaction commits.
Events wait in a bounded in-process queue and a daemon worker hands them
to the configured `Notifier`. Delivery is best effort: a full queue drops
the event and a failing notifier is logged, never raised to the publisher.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from plantops.apps.accounts import services as account_services

from .notifier import Notifier, get_notifier

logger = logging.getLogger(__name__)

QUEUE_SIZE = int(os.getenv("NOTIFICATIONS_QUEUE_SIZE", "1000"))

# Audience resolved by the worker at delivery time.
AUDIENCE_WAREHOUSE_MANAGERS = "warehouse_managers"

_STOP = object()


@dataclass
class NotificationEvent:
    event_type: str
    title: str
    message: str
    link: Optional[str] = None
    user_ids: Tuple[int, ...] = field(default_factory=tuple)
    audience: Optional[str] = None


class NotificationDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        notifier: Optional[Notifier] = None,
        maxsize: int = QUEUE_SIZE,
    ) -> None:
        self._session_factory = session_factory
        if notifier is None:
            notifier, configured = get_notifier(session_factory)
            if not configured:
                logger.info("Notifications disabled; events will be discarded")
        self._notifier = notifier
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # publishing
    # ------------------------------------------------------------------

    def publish(self, event: NotificationEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                "Notification queue full, dropping event",
                extra={"event_type": event.event_type, "queue_size": self._queue.maxsize},
            )
            return False
        return True

    def publish_many(self, events: Iterable[NotificationEvent]) -> int:
        return sum(1 for event in events if self.publish(event))

    # ------------------------------------------------------------------
    # worker
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._run,
                name="notification-dispatcher",
                daemon=True,
            )
            self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is None:
            return
        self._queue.put(_STOP)
        worker.join(timeout)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def drain(self) -> int:
        """Deliver everything queued on the calling thread; returns the count."""
        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if item is _STOP:
                continue
            self._deliver(item)
            delivered += 1

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._deliver(item)

    def _deliver(self, event: NotificationEvent) -> None:
        try:
            targets = self._resolve_targets(event)
        except Exception:
            logger.exception("Failed to resolve notification audience", extra={"event_type": event.event_type})
            return

        for user_id in targets:
            try:
                self._notifier.notify(
                    target_user_id=user_id,
                    event_type=event.event_type,
                    title=event.title,
                    message=event.message,
                    link=event.link,
                )
            except Exception as exc:
                logger.warning(
                    "Notification delivery failed",
                    extra={"event_type": event.event_type, "user_id": user_id, "error": str(exc)},
                )

    def _resolve_targets(self, event: NotificationEvent) -> List[int]:
        targets = list(event.user_ids)
        if event.audience == AUDIENCE_WAREHOUSE_MANAGERS:
            db = self._session_factory()
            try:
                targets.extend(account_services.list_warehouse_manager_ids(db))
            finally:
                db.close()
        unique: List[int] = []
        for uid in targets:
            if uid is not None and uid not in unique:
                unique.append(uid)
        return unique


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        from plantops.database import WriteSessionLocal

        _dispatcher = NotificationDispatcher(WriteSessionLocal)
    return _dispatcher


def set_dispatcher(dispatcher: Optional[NotificationDispatcher]) -> None:
    global _dispatcher
    _dispatcher = dispatcher


def publish_events(events: Iterable[NotificationEvent]) -> None:
    """Hand committed-ledger events to the dispatcher without ever raising."""
    try:
        get_dispatcher().publish_many(events)
    except Exception:
        logger.exception("Failed to publish notification events")
