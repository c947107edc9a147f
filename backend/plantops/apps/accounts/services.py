from __future__ import annotations

from typing import List

from sqlalchemy.orm import Session

from . import models


def list_warehouse_manager_ids(db: Session) -> List[int]:
    rows = (
        db.query(models.User.id)
        .filter(
            models.User.role.in_(models.WAREHOUSE_MANAGER_ROLES),
            models.User.is_active.is_(True),
        )
        .order_by(models.User.id.asc())
        .all()
    )
    return [row.id for row in rows]
