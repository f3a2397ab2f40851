"""Pydantic schemas for login, registration and user management."""

from __future__ import annotations

from pydantic import BaseModel, field_validator, model_validator

from salon_api.models.enums import Role
from salon_api.schemas.common import UTCDateTime


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v or v.startswith("@") or v.endswith("@"):
        raise ValueError("Invalid email address")
    return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return v.strip().lower()


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: str
    role: Role = Role.EMPLOYEE
    phone: str | None = None
    position: str | None = None
    department: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v

    @model_validator(mode="after")
    def _phone_for_employees(self) -> "RegisterRequest":
        if self.role == Role.EMPLOYEE and not (self.phone and self.phone.strip()):
            raise ValueError("Phone is required for employee role")
        return self


class UserRead(BaseModel):
    id: int
    email: str
    name: str | None
    role: Role
    is_active: bool
    created_at: UTCDateTime | None

    model_config = {"from_attributes": True}


class RoleUpdate(BaseModel):
    role: Role


class AuthData(BaseModel):
    token: str
    refresh_token: str
    user: UserRead


class ProfileData(BaseModel):
    user: UserRead


class UserListData(BaseModel):
    users: list[UserRead]
    count: int


class UserStats(BaseModel):
    total_users: int
    admin_count: int
    super_admin_count: int
    employee_count: int


class UserDeleteData(BaseModel):
    user_deleted: bool
    employee_deleted: bool


class RefreshRequest(BaseModel):
    refresh_token: str
