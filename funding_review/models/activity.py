"""Append-only activity log model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class ActivityEntry(QueryModel, table=True):
    """Append-only record of a review workflow write."""

    __tablename__ = "activity_entries"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: UUID | None = Field(default=None, index=True)
    action: str = Field(index=True)
    entity_type: str = Field(default="")
    entity_id: UUID | None = Field(default=None, index=True)
    details: dict[str, object] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
