"""Match matrix endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.schemas.matrix import AssignmentCoverage, MatrixFilter, MatrixRead
from funding_review.services.matrix import compute_matrix

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/matrix", tags=["matrix"])
CALL_IDS_QUERY = Query(default=None, alias="call_id")
STATUS_QUERY = Query(default=None, alias="proposal_status")


@router.get("", response_model=MatrixRead)
async def get_matrix(
    call_ids: list[UUID] | None = CALL_IDS_QUERY,
    proposal_statuses: list[str] | None = STATUS_QUERY,
    evaluator_campus: str | None = None,
    evaluator_department: str | None = None,
    evaluator_expertise: str | None = None,
    show_only_available: bool = False,
    assignment_status: AssignmentCoverage | None = None,
    as_of: datetime | None = None,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> MatrixRead:
    """Compute match cells for every filtered proposal and evaluator."""
    filters = MatrixFilter.model_validate(
        {
            "call_ids": call_ids or [],
            "proposal_statuses": proposal_statuses or [],
            "evaluator_campus": evaluator_campus,
            "evaluator_department": evaluator_department,
            "evaluator_expertise": evaluator_expertise,
            "show_only_available": show_only_available,
            "assignment_status": assignment_status,
            "as_of": as_of,
        },
    )
    return await compute_matrix(session, actor=actor, filters=filters)
