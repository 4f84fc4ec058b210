"""Schemas for evaluation summaries and funding decisions."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

DecisionStatus = Literal["approved", "rejected", "revise_and_resubmit"]


class CriterionAverageRead(SQLModel):
    """Mean score of one criterion across submitted evaluations."""

    criterion_id: UUID
    name: str
    average_score: float | None
    max_score: float
    count: int


class PendingEvaluatorRead(SQLModel):
    """Evaluator whose review is still outstanding."""

    evaluator_id: UUID
    name: str
    assignment_status: str
    has_draft: bool


class DecisionRead(SQLModel):
    """Decision slot attached to a proposal."""

    proposal_id: UUID
    status: str
    decided_by: UUID | None
    decided_at: datetime | None
    note: str | None


class EvaluationSummaryRead(SQLModel):
    """Aggregate review state used to gate a funding decision."""

    proposal_id: UUID
    required_evaluations: int
    assigned_count: int
    in_progress_count: int
    submitted_count: int
    pending_count: int
    criterion_averages: list[CriterionAverageRead]
    average_score: float | None
    pending_evaluators: list[PendingEvaluatorRead]
    recommendation_counts: dict[str, int]
    threshold_met: bool
    decision: DecisionRead


class DecisionRequest(SQLModel):
    """Finalize payload; `confirm` must be true."""

    decision: DecisionStatus
    note: str = ""
    confirm: bool = False
