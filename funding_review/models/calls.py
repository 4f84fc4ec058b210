"""Funding call and rubric criterion models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from funding_review.core.time import utcnow
from funding_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Call(QueryModel, table=True):
    """A published call for proposals with its review configuration."""

    __tablename__ = "calls"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    status: str = Field(default="open", index=True)  # draft | open | closed | archived
    required_evaluators: int | None = Field(default=None, ge=0)
    conflict_policies: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    assignment_method: str = Field(default="manual")  # manual | auto_balanced | ai_matched
    blind_review: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Criterion(QueryModel, table=True):
    """One weighted rubric dimension; rows are versioned, never edited in place."""

    __tablename__ = "evaluation_criteria"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    call_id: UUID = Field(foreign_key="calls.id", index=True)
    name: str
    description: str = Field(default="")
    weight: float = Field(default=0.0)
    max_score: float = Field(default=5.0)
    scale: list[dict[str, object]] = Field(default_factory=list, sa_column=Column(JSON))
    category: str = Field(default="innovation")
    position: int = Field(default=0)
    version: int = Field(default=1, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
