"""Proposal model including the attached funding decision."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Proposal(QueryModel, table=True):
    """Proposal metadata relevant to matching and the decision slot."""

    __tablename__ = "proposals"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    call_id: UUID = Field(foreign_key="calls.id", index=True)
    title: str
    project_type: str | None = None
    keywords: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    department: str | None = Field(default=None, index=True)
    author_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    # draft | submitted | under_review | approved | rejected | revise_and_resubmit
    status: str = Field(default="submitted", index=True)
    decided_by: UUID | None = None
    decided_at: datetime | None = None
    decision_note: str | None = None
    assignment_revision: int = Field(default=0)
    last_assignment_at: datetime | None = None
    submitted_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
