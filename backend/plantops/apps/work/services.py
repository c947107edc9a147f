from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from . import models


def get_work_order(db: Session, work_order_id: int) -> Optional[models.WorkOrder]:
    return db.query(models.WorkOrder).filter(models.WorkOrder.id == work_order_id).first()
