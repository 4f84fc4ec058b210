"""Schemas for activity log payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ActivityEntryRead(SQLModel):
    """Activity entry returned by read endpoints."""

    id: UUID
    actor_id: UUID | None
    action: str
    entity_type: str
    entity_id: UUID | None
    details: dict[str, object] | None
    created_at: datetime
