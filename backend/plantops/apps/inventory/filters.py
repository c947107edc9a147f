"""
Typed list filters.

Each filter is a parameter object whose optional fields map onto
parameterised SQLAlchemy predicates; `None` means "no constraint".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Query

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


@dataclass(frozen=True)
class Page:
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @classmethod
    def of(cls, page: Optional[int] = None, limit: Optional[int] = None) -> "Page":
        page = page if page and page > 0 else 1
        if not limit or limit < 1 or limit > MAX_LIMIT:
            limit = DEFAULT_LIMIT
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, query: Query) -> Query:
        return query.offset(self.offset).limit(self.limit)


@dataclass(frozen=True)
class ItemFilter:
    search: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class LotFilter:
    search: Optional[str] = None
    warehouse_id: Optional[int] = None
    item_id: Optional[int] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class MovementFilter:
    movement_type: Optional[str] = None
    item_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    lot_id: Optional[int] = None
    stock_request_id: Optional[int] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class RequestFilter:
    work_order_id: Optional[int] = None
    status: Optional[str] = None
    item_id: Optional[int] = None
