from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from plantops.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkOrder(Base):
    """Field work order; owned by the work-order module, read here for
    existence checks and titles only."""

    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
