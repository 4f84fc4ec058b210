"""Rubric criteria endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.schemas.assignments import CallAssignmentOverviewRead
from funding_review.schemas.criteria import CriteriaReplace, CriterionRead
from funding_review.services.criteria import list_criteria, replace_criteria
from funding_review.services.workload import call_assignment_overview

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/calls/{call_id}", tags=["calls"])


@router.get("/criteria", response_model=list[CriterionRead])
async def get_criteria(
    call_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> list[CriterionRead]:
    """Current rubric of a call."""
    rows = await list_criteria(session, actor=actor, call_id=call_id)
    return [CriterionRead.model_validate(row, from_attributes=True) for row in rows]


@router.post("/criteria", response_model=list[CriterionRead])
async def post_criteria(
    call_id: UUID,
    payload: CriteriaReplace,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> list[CriterionRead]:
    """Publish a new rubric version for a call."""
    rows = await replace_criteria(
        session,
        actor=actor,
        call_id=call_id,
        criteria=payload.criteria,
    )
    return [CriterionRead.model_validate(row, from_attributes=True) for row in rows]


@router.get("/assignment-overview", response_model=CallAssignmentOverviewRead)
async def assignment_overview(
    call_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> CallAssignmentOverviewRead:
    return await call_assignment_overview(session, actor=actor, call_id=call_id)
