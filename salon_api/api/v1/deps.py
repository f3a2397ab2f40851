"""
FastAPI dependencies: auth guards, database session and notifier.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.core.security import decode_access_token
from salon_api.db.session import async_session_factory
from salon_api.models.enums import Role
from salon_api.models.user import User
from salon_api.services.notifier import Notifier

# auto_error=False so the cookie can be tried when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Notifier ────────────────────────────────────────────────────────
def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


# ── Auth dependencies ───────────────────────────────────────────────
def _token_from(header_token: str | None, cookie_token: str | None) -> str | None:
    # Priority: Header > Cookie
    if header_token:
        return header_token
    if cookie_token:
        # Cookies are set as "Bearer <token>"
        return cookie_token.removeprefix("Bearer ").strip() or None
    return None


async def _resolve_user(token: str | None, db: AsyncSession) -> User | None:
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return await db.get(User, user_id)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""
    user = await _resolve_user(_token_from(token, access_token), db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    user = await _resolve_user(_token_from(token, access_token), db)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user account")
    return current_user


async def require_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Admins and super admins."""
    if current_user.role not in (Role.ADMIN.value, Role.SUPER_ADMIN.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


async def require_super_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    if current_user.role != Role.SUPER_ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return current_user
