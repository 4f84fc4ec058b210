"""Schemas for evaluator assignment payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

AssignmentMethod = Literal["manual", "auto_balanced", "ai_matched"]


class QuickAssignRequest(SQLModel):
    """Payload for assigning one evaluator to a proposal."""

    evaluator_id: UUID
    method: AssignmentMethod = "manual"


class AssignmentSetRequest(SQLModel):
    """Payload reconciling a proposal's active evaluators to an exact set."""

    evaluator_ids: list[UUID]
    method: AssignmentMethod = "manual"


class AssignmentResponseRequest(SQLModel):
    """Evaluator response to a pending assignment."""

    decision: Literal["accept", "decline"]
    reason: str | None = None
    comment: str | None = None
    coi_declared: bool = False
    coi_details: str | None = None


class AssignmentRead(SQLModel):
    """Assignment returned by read endpoints."""

    id: UUID
    proposal_id: UUID
    evaluator_id: UUID
    assigned_by: UUID | None
    method: str
    status: str
    assigned_at: datetime
    responded_at: datetime | None
    decline_reason: str | None
    decline_comment: str | None
    coi_declared: bool
    coi_details: str | None
    removed_at: datetime | None


class AssignmentSetRead(SQLModel):
    """Outcome of a bulk reconciliation."""

    proposal_id: UUID
    active: list[AssignmentRead]
    created: list[UUID] = Field(default_factory=list)
    removed: list[UUID] = Field(default_factory=list)
    unchanged: list[UUID] = Field(default_factory=list)


class MyAssignmentRead(AssignmentRead):
    """Caller's assignment with its proposal title and workload lane."""

    proposal_title: str
    lane: str


class EvaluatorWorkloadRead(SQLModel):
    """Per-evaluator workload row."""

    evaluator_id: UUID
    name: str
    department: str | None
    campus: str | None
    active: int
    pending: int
    in_progress: int
    completed: int
    capacity: int
    utilization: float


class WorkloadOverviewRead(SQLModel):
    """Workload distribution across every evaluator."""

    evaluators: list[EvaluatorWorkloadRead]
    average_workload: float
    max_workload: int
    min_workload: int


class CallProposalAssignmentRead(SQLModel):
    """Assignment coverage for one proposal of a call."""

    proposal_id: UUID
    title: str
    status: str
    evaluator_ids: list[UUID]
    assigned: int
    required: int


class CallAssignmentOverviewRead(SQLModel):
    """Assignment coverage across a call."""

    call_id: UUID
    required: int
    proposals: list[CallProposalAssignmentRead]
    fully_assigned: int
    needs_assignment: int
