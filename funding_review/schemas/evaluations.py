"""Schemas for rubric evaluation payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from funding_review.schemas.criteria import CriterionRead

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

Recommendation = Literal[
    "approve",
    "approve_with_modifications",
    "reject",
    "revise_and_resubmit",
]


class RubricEntryInput(SQLModel):
    """Score and notes for one criterion; score may be null while drafting."""

    criterion_id: UUID
    score: float | None = None
    comments: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class EvaluationDraftRequest(SQLModel):
    """Partial rubric save."""

    rubric: list[RubricEntryInput] = Field(default_factory=list)
    recommendation: Recommendation | None = None
    public_comments: str = ""
    confidential_comments: str = ""
    ai_assistance_used: bool = False


class EvaluationSubmitRequest(EvaluationDraftRequest):
    """Final rubric submission."""


class RubricEntryRead(SQLModel):
    """Stored rubric entry with the criterion settings it was scored against."""

    criterion_id: UUID
    score: float | None
    comments: str
    strengths: list[str]
    weaknesses: list[str]
    weight: float
    max_score: float


class EvaluationRead(SQLModel):
    """Evaluation returned by read endpoints."""

    id: UUID
    proposal_id: UUID
    evaluator_id: UUID
    rubric: list[RubricEntryRead]
    overall_score: float | None
    recommendation: str | None
    public_comments: str
    confidential_comments: str
    ai_assistance_used: bool
    completed_at: datetime | None
    revision: int
    created_at: datetime
    updated_at: datetime


class EvaluationContextRead(SQLModel):
    """Everything a reviewer needs to score a proposal."""

    proposal_id: UUID
    proposal_title: str
    assignment_id: UUID
    assignment_status: str
    criteria: list[CriterionRead]
    evaluation: EvaluationRead | None
    missing_scores: list[UUID]
    preview_score: float | None


class OwnerEvaluationRead(SQLModel):
    """Submitted evaluation as shown to the proposal's authors."""

    evaluator_name: str
    overall_score: float | None
    recommendation: str | None
    public_comments: str
    completed_at: datetime | None
    rubric: list[RubricEntryRead]


class OwnerEvaluationsRead(SQLModel):
    """Author-facing view of a proposal's review outcome."""

    proposal_id: UUID
    status: str
    evaluations: list[OwnerEvaluationRead]
    recommendation_counts: dict[str, int]
    average_score: float | None
    decision_note: str | None
    decided_at: datetime | None
