"""Assignment lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.schemas.assignments import (
    AssignmentRead,
    AssignmentResponseRequest,
    AssignmentSetRead,
    AssignmentSetRequest,
    MyAssignmentRead,
    QuickAssignRequest,
)
from funding_review.services.assignments import (
    quick_assign,
    remove_assignment,
    respond_to_assignment,
    set_assigned_evaluators,
)
from funding_review.services.workload import list_my_assignments

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(tags=["assignments"])


@router.post(
    "/proposals/{proposal_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_assignment(
    proposal_id: UUID,
    payload: QuickAssignRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> AssignmentRead:
    """Quick-assign one evaluator to a proposal."""
    assignment = await quick_assign(
        session,
        actor=actor,
        proposal_id=proposal_id,
        evaluator_id=payload.evaluator_id,
        method=payload.method,
    )
    return AssignmentRead.model_validate(assignment, from_attributes=True)


@router.put("/proposals/{proposal_id}/assignments", response_model=AssignmentSetRead)
async def replace_assignments(
    proposal_id: UUID,
    payload: AssignmentSetRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> AssignmentSetRead:
    """Reconcile a proposal's active evaluators to the requested set."""
    result = await set_assigned_evaluators(
        session,
        actor=actor,
        proposal_id=proposal_id,
        evaluator_ids=payload.evaluator_ids,
        method=payload.method,
    )
    return AssignmentSetRead(
        proposal_id=result.proposal_id,
        active=[AssignmentRead.model_validate(row, from_attributes=True) for row in result.active],
        created=result.created,
        removed=result.removed,
        unchanged=result.unchanged,
    )


@router.delete("/assignments/{assignment_id}", response_model=AssignmentRead)
async def delete_assignment(
    assignment_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> AssignmentRead:
    """Remove an active assignment; the record is kept as `removed`."""
    assignment = await remove_assignment(session, actor=actor, assignment_id=assignment_id)
    return AssignmentRead.model_validate(assignment, from_attributes=True)


@router.post("/assignments/{assignment_id}/respond", response_model=AssignmentRead)
async def respond(
    assignment_id: UUID,
    payload: AssignmentResponseRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> AssignmentRead:
    """Accept or decline the caller's pending assignment."""
    assignment = await respond_to_assignment(
        session,
        actor=actor,
        assignment_id=assignment_id,
        payload=payload,
    )
    return AssignmentRead.model_validate(assignment, from_attributes=True)


@router.get("/assignments/me", response_model=list[MyAssignmentRead])
async def my_assignments(
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> list[MyAssignmentRead]:
    return await list_my_assignments(session, actor=actor)
