# backend/plantops/security.py

"""
Bearer-token authentication for the inventory API.

Tokens are issued by the plantation login service and signed with the
shared `SECRET_KEY`. This module verifies them, resolves the `sub` claim
to an active `User` and exposes role checks as FastAPI dependencies.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from plantops.apps.accounts import models as account_models
from plantops.apps.accounts.models import AccountRole

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(*, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``data`` (which must carry ``sub``) with an expiry claim."""
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def _unauthorised(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_subject(token: str) -> int:
    """Return the numeric user id in ``sub`` or raise 401."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise _unauthorised("Token has expired")
    except JWTError:
        raise _unauthorised()

    try:
        return int(str(claims.get("sub", "")).strip())
    except ValueError:
        raise _unauthorised()


def get_user_by_id(db: Session, user_id: Union[str, int, None]) -> Optional[account_models.User]:
    if user_id is None:
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.query(account_models.User).filter(account_models.User.id == user_id).first()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    user = get_user_by_id(db, decode_subject(token))
    if user is None:
        raise _unauthorised()
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user account")
    return current_user


def require_roles(*allowed_roles: Union[AccountRole, str]) -> Callable[..., account_models.User]:
    """Dependency that admits only users holding one of ``allowed_roles``.

    Role names are checked when the router module is imported, so a typo
    fails at startup rather than on the first request.
    """
    roles: FrozenSet[AccountRole] = frozenset(AccountRole(role) for role in allowed_roles)

    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
    ) -> account_models.User:
        if current_user.role not in roles:
            logger.info(
                "Role check refused",
                extra={"user_id": current_user.id, "role": getattr(current_user.role, "value", None)},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this operation",
            )
        return current_user

    return dependency
