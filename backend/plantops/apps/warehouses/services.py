from __future__ import annotations

from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from plantops.utils.search import LIKE_ESCAPE, like_pattern

from . import models


def get_plot(db: Session, location_id: int) -> Optional[models.Plot]:
    return db.query(models.Plot).filter(models.Plot.id == location_id).first()


def is_stock_warehouse(db: Session, location_id: Optional[int]) -> bool:
    if not location_id:
        return False
    plot = get_plot(db, location_id)
    return plot is not None and plot.type in models.STOCK_PLOT_TYPES


def list_warehouses(db: Session, *, search: Optional[str] = None) -> List[models.Plot]:
    query = db.query(models.Plot).filter(models.Plot.type.in_(models.STOCK_PLOT_TYPES))
    pattern = like_pattern(search)
    if pattern:
        query = query.filter(
            or_(
                models.Plot.name.ilike(pattern, escape=LIKE_ESCAPE),
                models.Plot.description.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    return query.order_by(models.Plot.created_at.desc(), models.Plot.id.desc()).all()


def count_warehouses(db: Session) -> int:
    return db.query(models.Plot).filter(models.Plot.type.in_(models.STOCK_PLOT_TYPES)).count()
