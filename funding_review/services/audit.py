"""Append-only activity log writes for review workflow actions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from funding_review.core.time import utcnow
from funding_review.models.activity import ActivityEntry

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession


async def record_activity(
    session: AsyncSession,
    *,
    actor_id: UUID | None,
    action: str,
    entity_type: str = "",
    entity_id: UUID | None = None,
    details: dict[str, object] | None = None,
) -> ActivityEntry:
    """Stage an activity entry in the caller's transaction."""
    entry = ActivityEntry(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        created_at=utcnow(),
    )
    session.add(entry)
    return entry
