from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class WarehouseRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    type: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
