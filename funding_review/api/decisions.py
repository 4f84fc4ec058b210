"""Evaluation summary and funding decision endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.core.errors import ValidationError
from funding_review.schemas.decisions import DecisionRead, DecisionRequest, EvaluationSummaryRead
from funding_review.services.decisions import finalize_decision, get_evaluation_summary
from funding_review.services.policy import DECISION_FINALIZE, authorize

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/proposals/{proposal_id}", tags=["decisions"])


@router.get("/evaluation-summary", response_model=EvaluationSummaryRead)
async def evaluation_summary(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> EvaluationSummaryRead:
    """Aggregate review state for a proposal."""
    return await get_evaluation_summary(session, actor=actor, proposal_id=proposal_id)


@router.post("/decision", response_model=DecisionRead)
async def post_decision(
    proposal_id: UUID,
    payload: DecisionRequest,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> DecisionRead:
    """Finalize the funding decision; requires `confirm: true`."""
    authorize(actor, DECISION_FINALIZE)
    if not payload.confirm:
        raise ValidationError("Decision must be explicitly confirmed")
    return await finalize_decision(
        session,
        actor=actor,
        proposal_id=proposal_id,
        decision=payload.decision,
        note=payload.note,
    )
