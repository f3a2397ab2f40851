"""Response envelope and shared field types."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Generic, TypeVar

from pydantic import AfterValidator, BaseModel

from salon_api.core.timeutils import ensure_utc

T = TypeVar("T")

# Naive values coming back from SQLite are UTC
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]

# Largest value an INTEGER primary key column can hold
MAX_ID = 2_147_483_647


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
