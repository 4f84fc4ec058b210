"""Activity log listing endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query
from fastapi_pagination.limit_offset import LimitOffsetPage
from sqlmodel import col, select

from funding_review.api.deps import ACTOR_DEP, SESSION_DEP
from funding_review.db.pagination import paginate
from funding_review.models.activity import ActivityEntry
from funding_review.schemas.activity import ActivityEntryRead
from funding_review.services.policy import ACTIVITY_READ, authorize

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

router = APIRouter(prefix="/activity", tags=["activity"])
ENTITY_ID_QUERY = Query(default=None)
ACTION_QUERY = Query(default=None)


@router.get("", response_model=LimitOffsetPage[ActivityEntryRead])
async def list_activity(
    entity_id: UUID | None = ENTITY_ID_QUERY,
    action: str | None = ACTION_QUERY,
    session: AsyncSession = SESSION_DEP,
    actor: EvaluatorProfile = ACTOR_DEP,
) -> LimitOffsetPage[ActivityEntryRead]:
    """Newest-first audit trail, optionally narrowed to one entity or action."""
    authorize(actor, ACTIVITY_READ)
    statement = select(ActivityEntry)
    if entity_id is not None:
        statement = statement.where(col(ActivityEntry.entity_id) == entity_id)
    if action:
        statement = statement.where(col(ActivityEntry.action) == action)
    statement = statement.order_by(col(ActivityEntry.created_at).desc())
    return await paginate(session, statement)
