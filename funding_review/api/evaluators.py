"""Evaluator workload endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.schemas.assignments import WorkloadOverviewRead
from funding_review.services.workload import workload_overview

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/evaluators", tags=["evaluators"])


@router.get("/workload", response_model=WorkloadOverviewRead)
async def get_workload(
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> WorkloadOverviewRead:
    """Lane counts and utilization for every evaluator."""
    return await workload_overview(session, actor=actor)
