"""Base pydantic models shared by authbound entities."""

from __future__ import annotations
from datetime import UTC, datetime
from uuid import UUID, uuid4
from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    """Return the current UTC timestamp."""
    return datetime.now(tz=UTC)


class AuthboundBaseModel(BaseModel):
    """Base model that forbids unknown fields and strips string whitespace."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class TimestampedModel(AuthboundBaseModel):
    """Model carrying an identifier and creation/update timestamps."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["AuthboundBaseModel", "TimestampedModel"]
