"""Read-only directory lookups: evaluator identity, capacity and workload."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from sqlmodel import col, func, select

from funding_review.core.config import settings
from funding_review.core.errors import NotFoundError
from funding_review.models.assignments import ACTIVE_STATUSES, Assignment
from funding_review.models.evaluator_profiles import EvaluatorProfile

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

EVALUATOR_ROLES = ("evaluator",)


def capacity_for(profile: EvaluatorProfile) -> int:
    """Configured capacity of `profile`, or the service default."""
    if profile.max_capacity is None:
        return settings.default_evaluator_capacity
    return profile.max_capacity


async def get_profile(session: AsyncSession, evaluator_id: UUID) -> EvaluatorProfile:
    profile = await EvaluatorProfile.objects.by_id(evaluator_id).first(session)
    if profile is None:
        raise NotFoundError("Evaluator not found", details={"evaluator_id": str(evaluator_id)})
    return profile


async def list_evaluators(session: AsyncSession) -> list[EvaluatorProfile]:
    """Active profiles that can receive review assignments, ordered by name."""
    return await (
        EvaluatorProfile.objects.filter(
            col(EvaluatorProfile.role).in_(EVALUATOR_ROLES),
            col(EvaluatorProfile.is_active).is_(True),
        )
        .order_by(col(EvaluatorProfile.name))
        .all(session)
    )


async def active_workloads(
    session: AsyncSession,
    evaluator_ids: Iterable[UUID] | None = None,
) -> Counter[UUID]:
    """Count pending+accepted assignments per evaluator."""
    statement = (
        select(Assignment.evaluator_id, func.count())
        .where(col(Assignment.status).in_(ACTIVE_STATUSES))
        .group_by(col(Assignment.evaluator_id))
    )
    if evaluator_ids is not None:
        statement = statement.where(col(Assignment.evaluator_id).in_(list(evaluator_ids)))
    rows = await session.exec(statement)
    return Counter({evaluator_id: int(count) for evaluator_id, count in rows})


async def active_workload(session: AsyncSession, evaluator_id: UUID) -> int:
    return (await active_workloads(session, [evaluator_id]))[evaluator_id]
