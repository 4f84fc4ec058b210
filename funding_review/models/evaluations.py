"""Rubric evaluation model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, ForeignKey, UniqueConstraint
from sqlalchemy import Uuid as SAUuid
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Evaluation(QueryModel, table=True):
    """A reviewer's rubric for one proposal; frozen once `completed_at` is set."""

    __tablename__ = "evaluations"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        UniqueConstraint("proposal_id", "evaluator_id", name="uq_evaluations_pair"),
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
    rubric: list[dict[str, object]] = Field(default_factory=list, sa_column=Column(JSON))
    overall_score: float | None = None
    recommendation: str | None = None
    public_comments: str = Field(default="")
    confidential_comments: str = Field(default="")
    ai_assistance_used: bool = Field(default=False)
    completed_at: datetime | None = None
    revision: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
