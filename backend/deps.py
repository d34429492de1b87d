"""
Shared FastAPI dependencies.

Centralizes common dependencies so routers import from a single place
(DB session, auth guards, pagination).
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from domain.constants import ORDERS_PER_PAGE_DEFAULT, ORDERS_PER_PAGE_MAX
from domain.enums import UserRole
from domain.errors import PermissionDeniedError, UnauthorizedError
from middleware.auth import require_token_claims


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(ORDERS_PER_PAGE_DEFAULT, ge=1, le=ORDERS_PER_PAGE_MAX),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


async def require_user(
    claims: dict = Depends(require_token_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Require a valid token whose subject is an existing user.

    The role is read from the database, not the token, so demoting an admin
    takes effect before their token expires.
    """
    q = await db.execute(select(User).where(User.id == claims["user_id"]))
    user = q.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("Account not found for access token.")
    return user


async def require_admin(user: User = Depends(require_user)) -> User:
    """Require that the authenticated user is an admin."""
    if user.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Admin role required for this endpoint.")
    return user
