"""Reviewer evaluation endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.schemas.evaluations import (
    EvaluationContextRead,
    EvaluationDraftRequest,
    EvaluationRead,
    EvaluationSubmitRequest,
    OwnerEvaluationsRead,
)
from funding_review.services.evaluations import (
    get_evaluation_context,
    owner_evaluations,
    save_draft,
    submit_evaluation,
    to_evaluation_read,
)

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/proposals/{proposal_id}", tags=["evaluations"])


@router.get("/evaluation", response_model=EvaluationContextRead)
async def evaluation_context(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> EvaluationContextRead:
    """Criteria, draft state and score preview for the caller."""
    return await get_evaluation_context(session, actor=actor, proposal_id=proposal_id)


@router.put("/evaluation/draft", response_model=EvaluationRead)
async def put_draft(
    proposal_id: UUID,
    payload: EvaluationDraftRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> EvaluationRead:
    """Save rubric progress without submitting."""
    evaluation = await save_draft(session, actor=actor, proposal_id=proposal_id, payload=payload)
    return to_evaluation_read(evaluation)


@router.post("/evaluation/submit", response_model=EvaluationRead)
async def post_submit(
    proposal_id: UUID,
    payload: EvaluationSubmitRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> EvaluationRead:
    """Validate and freeze the caller's evaluation."""
    evaluation = await submit_evaluation(
        session,
        actor=actor,
        proposal_id=proposal_id,
        payload=payload,
    )
    return to_evaluation_read(evaluation)


@router.get("/owner-evaluations", response_model=OwnerEvaluationsRead)
async def get_owner_evaluations(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> OwnerEvaluationsRead:
    return await owner_evaluations(session, actor=actor, proposal_id=proposal_id)
