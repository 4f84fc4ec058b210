"""Schemas for rubric criteria payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ScaleLevel(SQLModel):
    """One score → descriptor pair of a criterion scale."""

    score: float
    label: str
    description: str = ""


class CriterionCreate(SQLModel):
    """Criterion definition within a rubric replacement."""

    name: str = Field(min_length=1)
    description: str = ""
    weight: float
    max_score: float
    scale: list[ScaleLevel] = Field(default_factory=list)
    category: str = "innovation"


class CriteriaReplace(SQLModel):
    """Payload replacing a call's full rubric."""

    criteria: list[CriterionCreate]


class CriterionRead(SQLModel):
    """Criterion returned by read endpoints."""

    id: UUID
    call_id: UUID
    name: str
    description: str
    weight: float
    max_score: float
    scale: list[dict[str, object]]
    category: str
    position: int
    version: int
    is_active: bool
    created_at: datetime
