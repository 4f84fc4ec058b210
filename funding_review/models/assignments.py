"""Evaluator assignment model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, ForeignKey, Index, text
from sqlalchemy import Uuid as SAUuid
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

ACTIVE_STATUSES = ("pending", "accepted")
_ACTIVE_PREDICATE = text("status IN ('pending', 'accepted')")


class Assignment(QueryModel, table=True):
    """One (proposal, evaluator) review request and its response."""

    __tablename__ = "evaluator_assignments"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index(
            "uq_evaluator_assignments_active_pair",
            "proposal_id",
            "evaluator_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    proposal_id: UUID = Field(
        sa_column=Column(
            SAUuid(),
            ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    evaluator_id: UUID = Field(foreign_key="evaluator_profiles.id", index=True)
    assigned_by: UUID | None = None
    method: str = Field(default="manual")  # manual | auto_balanced | ai_matched
    status: str = Field(default="pending", index=True)  # pending | accepted | declined | removed
    assigned_at: datetime = Field(default_factory=utcnow)
    responded_at: datetime | None = None
    decline_reason: str | None = None
    decline_comment: str | None = None
    coi_declared: bool = Field(default=False)
    coi_details: str | None = None
    removed_at: datetime | None = None
