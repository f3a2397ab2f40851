"""
Auth endpoints: login, registration, token refresh & user management.
"""

import logging

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_api.api.v1.deps import (get_current_active_user, get_db, get_notifier,
                                   get_optional_user, require_super_admin)
from salon_api.core.config import settings
from salon_api.core.exceptions import Conflict, Forbidden, NotFound, Unauthorized
from salon_api.core.security import (create_access_token, create_refresh_token,
                                     decode_refresh_token, get_password_hash,
                                     verify_password)
from salon_api.models.employee import Employee
from salon_api.models.enums import Role
from salon_api.models.user import User
from salon_api.schemas.common import Envelope, MessageResponse
from salon_api.schemas.user import (AuthData, LoginRequest, ProfileData, RefreshRequest,
                                    RegisterRequest, RoleUpdate, UserDeleteData,
                                    UserListData, UserRead, UserStats)
from salon_api.services import employees as employee_service
from salon_api.services.notifier import Notifier

# Rate limiter keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _issue_tokens(response: Response, user: User) -> AuthData:
    access_token = create_access_token(user.id, role=user.role, email=user.email)
    refresh_token = create_refresh_token(user.id)

    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        key="refresh_token",
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )
    return AuthData(
        token=access_token,
        refresh_token=refresh_token,
        user=UserRead.model_validate(user),
    )


@router.post("/login", response_model=Envelope[AuthData])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Envelope[AuthData]:
    """Authenticate with email/password. Tokens are also set as HttpOnly cookies."""
    result = await db.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.hashed_password):
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("User account is inactive")

    logger.info("Login: %s (%s)", user.email, user.role)
    return Envelope(message="Login successful", data=_issue_tokens(response, user))


@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    response: Response,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    caller: User | None = Depends(get_optional_user),
) -> Envelope[AuthData]:
    """Self-service sign-up creates employees; other roles need a super admin."""
    if body.role != Role.EMPLOYEE and (caller is None or caller.role != Role.SUPER_ADMIN.value):
        raise Forbidden("Only a super admin can register admin accounts")

    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none() is not None:
        raise Conflict("User already exists with this email")

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        role=body.role.value,
        is_active=True,
    )
    db.add(user)

    if body.role == Role.EMPLOYEE and await employee_service.find_employee_by_email(db, body.email) is None:
        db.add(
            Employee(
                name=body.name,
                email=body.email,
                phone=body.phone.strip(),
                position=(body.position or "").strip() or "General",
                department=(body.department or "").strip() or "Staff",
                salary=0,
                is_active=True,
            )
        )
    await db.commit()
    logger.info("Registered %s as %s", user.email, user.role)
    return Envelope(message="User registered successfully", data=_issue_tokens(response, user))


@router.post("/refresh", response_model=Envelope[AuthData])
@limiter.limit("10/minute")
async def refresh_access_token(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    refresh_token_cookie: str | None = Cookie(None, alias="refresh_token"),
    db: AsyncSession = Depends(get_db),
) -> Envelope[AuthData]:
    # Priority: Body > Cookie
    token_str = body.refresh_token if body and body.refresh_token else refresh_token_cookie
    if not token_str:
        raise Unauthorized("Refresh token missing")

    payload = decode_refresh_token(token_str)
    if payload is None:
        raise Unauthorized("Invalid or expired refresh token")

    user = await db.get(User, int(payload.get("sub", 0)))
    if user is None or not user.is_active:
        raise Unauthorized("User not found or inactive")

    return Envelope(data=_issue_tokens(response, user))


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    """Clear auth cookies and end the session."""
    response.delete_cookie("access_token")
    response.delete_cookie("refresh_token")
    return MessageResponse(message="Logged out")


@router.get("/profile", response_model=Envelope[ProfileData])
async def profile(
    current_user: User = Depends(get_current_active_user),
) -> Envelope[ProfileData]:
    return Envelope(data=ProfileData(user=UserRead.model_validate(current_user)))


# ── User management (super admin) ───────────────────────────────────
@router.get("/users", response_model=Envelope[UserListData])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> Envelope[UserListData]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    users = [UserRead.model_validate(u) for u in result.scalars().all()]
    return Envelope(data=UserListData(users=users, count=len(users)))


@router.get("/users/stats", response_model=Envelope[UserStats])
async def user_stats(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> Envelope[UserStats]:
    result = await db.execute(select(User.role, func.count()).group_by(User.role))
    counts = dict(result.all())
    return Envelope(
        data=UserStats(
            total_users=sum(counts.values()),
            admin_count=counts.get(Role.ADMIN.value, 0),
            super_admin_count=counts.get(Role.SUPER_ADMIN.value, 0),
            employee_count=counts.get(Role.EMPLOYEE.value, 0),
        )
    )


@router.patch("/users/{user_id}/role", response_model=Envelope[ProfileData])
async def update_user_role(
    user_id: int,
    body: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
) -> Envelope[ProfileData]:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == admin.id and body.role != Role.SUPER_ADMIN:
        raise Conflict("You cannot change your own role")
    user.role = body.role.value
    await db.commit()
    logger.info("Role of %s changed to %s", user.email, user.role)
    return Envelope(
        message="User role updated successfully",
        data=ProfileData(user=UserRead.model_validate(user)),
    )


@router.delete("/users/{user_id}", response_model=Envelope[UserDeleteData])
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_super_admin),
    notifier: Notifier = Depends(get_notifier),
) -> Envelope[UserDeleteData]:
    """Delete a login and, by matching email, its employee record."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == admin.id:
        raise Conflict("You cannot delete your own account")

    email = user.email
    employee = await employee_service.find_employee_by_email(db, email)
    employee_id = employee.id if employee is not None else None
    if employee is not None:
        await employee_service.purge_employee(db, employee)
    await db.delete(user)
    await db.commit()

    logger.info("User deleted: %s, employee record deleted: %s", email, employee_id is not None)
    if employee_id is not None:
        notifier.employee_update("deleted", employee_id)
    return Envelope(
        message="User deleted successfully",
        data=UserDeleteData(user_deleted=True, employee_deleted=employee_id is not None),
    )
