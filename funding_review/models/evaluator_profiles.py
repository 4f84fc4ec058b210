"""Directory records for reviewers and other platform actors."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class EvaluatorProfile(QueryModel, table=True):
    """Identity, role, affiliation and capacity of a directory actor."""

    __tablename__ = "evaluator_profiles"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    email: str | None = Field(default=None, index=True)
    role: str = Field(default="evaluator", index=True)
    department: str | None = Field(default=None, index=True)
    campus: str | None = Field(default=None, index=True)
    expertise: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    max_capacity: int | None = Field(default=None, ge=0)
    is_active: bool = Field(default=True)
    # Bumped on every assignment write touching this evaluator.
    assignment_revision: int = Field(default=0)
    last_assignment_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
