"""Schemas for the proposals × evaluators match matrix."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

ConflictSeverity = Literal["none", "advisory", "blocking"]
AssignmentCoverage = Literal["needs_assignment", "partial", "complete"]


class MatrixFilter(SQLModel):
    """Optional narrowing of the matrix rows and columns."""

    call_ids: list[UUID] = Field(default_factory=list)
    proposal_statuses: list[str] = Field(default_factory=list)
    evaluator_campus: str | None = None
    evaluator_department: str | None = None
    evaluator_expertise: str | None = None
    show_only_available: bool = False
    assignment_status: AssignmentCoverage | None = None
    as_of: datetime | None = None


class MatrixProposalRead(SQLModel):
    """Matrix row header."""

    id: UUID
    call_id: UUID
    title: str
    status: str
    department: str | None
    required: int
    assigned: int
    coverage: AssignmentCoverage


class MatrixEvaluatorRead(SQLModel):
    """Matrix column header."""

    id: UUID
    name: str
    department: str | None
    campus: str | None
    expertise: list[str]
    workload: int
    capacity: int
    available: bool


class MatchCellRead(SQLModel):
    """Computed fit of one evaluator for one proposal."""

    proposal_id: UUID
    evaluator_id: UUID
    match_score: float
    expertise_score: float
    availability_score: float
    conflict_flags: list[str]
    conflict_severity: ConflictSeverity
    reasoning: str
    available: bool
    assignable: bool
    stale: bool
    assignment_id: UUID | None = None
    assignment_status: str | None = None


class MatrixSummaryRead(SQLModel):
    """Counts over the filtered matrix."""

    total_proposals: int
    total_evaluators: int
    needs_assignment: int
    partial: int
    fully_assigned: int
    available_evaluators: int
    at_capacity: int


class MatrixFilterOptionsRead(SQLModel):
    """Distinct values available for matrix filters."""

    calls: list[dict[str, str]]
    campuses: list[str]
    departments: list[str]
    expertise: list[str]


class MatrixRead(SQLModel):
    """Full matrix payload."""

    computed_at: datetime
    proposals: list[MatrixProposalRead]
    evaluators: list[MatrixEvaluatorRead]
    cells: list[list[MatchCellRead]]
    summary: MatrixSummaryRead
    filter_options: MatrixFilterOptionsRead
