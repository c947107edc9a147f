from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, Index, Integer, String

from plantops.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRole(str, enum.Enum):
    """Plantation roles as issued by the platform.

    Levels 1 and 2 are estate management; level 3 and 4 are field
    supervisors and staff.
    """

    LEVEL_1 = "Level 1"
    LEVEL_2 = "Level 2"
    LEVEL_3 = "Level 3"
    LEVEL_4 = "Level 4"
    WAREHOUSE = "warehouse"
    USER = "user"


# Roles that manage stock and receive stock-request notifications.
WAREHOUSE_MANAGER_ROLES = (
    AccountRole.LEVEL_1,
    AccountRole.LEVEL_2,
    AccountRole.WAREHOUSE,
)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_role_active", "role", "is_active"),)

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    role = Column(
        SAEnum(
            AccountRole,
            name="account_role_enum",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=AccountRole.USER,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
