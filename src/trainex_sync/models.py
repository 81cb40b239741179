"""Pydantic models for retrieval requests, results and calendar events.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

import base64
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator

FailureKind = Literal[
    "validation",
    "browser_missing",
    "authentication",
    "timeout",
    "not_found",
    "unexpected",
]

# Query parameter name -> value, as issued by the portal for one browser session.
SessionTokens = dict[str, str]


class Credentials(BaseModel):
    """Portal login for a single retrieval call. Never persisted."""

    username: str
    password: SecretStr

    @field_validator("username")
    @classmethod
    def _username_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("username must not be empty")
        return value

    @field_validator("password")
    @classmethod
    def _password_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("password must not be empty")
        return value


class RetrievalRequest(BaseModel):
    """What to fetch: whose schedule and which month (or single day).

    ``target_day == 0`` means the whole month without a day filter.
    """

    credentials: Credentials
    target_year: int = Field(ge=1970, le=9999)
    target_month: int = Field(ge=1, le=12)
    target_day: int = Field(default=0, ge=0, le=31)

    model_config = {"frozen": True}

    @property
    def is_month_query(self) -> bool:
        return self.target_day == 0


class RetrievalSuccess(BaseModel):
    """Raw calendar bytes exactly as the export endpoint returned them."""

    ok: Literal[True] = True
    raw_bytes: bytes

    @property
    def ics_bytes_base64(self) -> str:
        return base64.b64encode(self.raw_bytes).decode("ascii")


class RetrievalFailure(BaseModel):
    """User-facing failure with an optional non-localized diagnostic hint."""

    ok: Literal[False] = False
    kind: FailureKind
    message: str
    hint: str | None = None


RetrievalResult = RetrievalSuccess | RetrievalFailure


class CalendarEvent(BaseModel):
    """A single decoded VEVENT.

    ``start`` and ``end`` are ISO-8601 UTC strings (``2026-01-05T08:15:00.000Z``)
    unless the source used an unrecognized shape, which is passed through.
    ``end >= start`` is not enforced.
    """

    id: str  # Content fingerprint of summary|start|end|location
    summary: str
    start: str
    end: str
    location: str | None = None
    description: str | None = None
    categories: list[str] | None = None
