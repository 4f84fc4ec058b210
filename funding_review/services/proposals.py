"""Proposal lookups and review-status progression."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from weakref import WeakValueDictionary

from sqlalchemy import update
from sqlmodel import col, select

from funding_review.core.errors import ConflictError, NotFoundError
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.models.proposals import Proposal

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

_PROPOSAL_LOCKS: WeakValueDictionary[UUID, asyncio.Lock] = WeakValueDictionary()


def proposal_lock(proposal_id: UUID) -> asyncio.Lock:
    """In-process lock serialising assignment writes for one proposal."""
    lock = _PROPOSAL_LOCKS.get(proposal_id)
    if lock is None:
        lock = asyncio.Lock()
        _PROPOSAL_LOCKS[proposal_id] = lock
    return lock


async def get_proposal(session: AsyncSession, proposal_id: UUID) -> Proposal:
    proposal = await Proposal.objects.by_id(proposal_id).first(session)
    if proposal is None:
        raise NotFoundError("Proposal not found", details={"proposal_id": str(proposal_id)})
    return proposal


async def lock_proposal_row(session: AsyncSession, proposal_id: UUID) -> None:
    # Row lock for databases that support it; SQLite ignores FOR UPDATE.
    await session.exec(
        select(Proposal.id).where(col(Proposal.id) == proposal_id).with_for_update(),
    )


async def claim_assignment_revisions(
    session: AsyncSession,
    *,
    proposal: Proposal,
    evaluators: list[EvaluatorProfile],
    now: datetime,
) -> None:
    """Compare-and-set the assignment revision of every touched entity.

    Fails with ConflictError, after rolling back, if any revision moved since
    the rows were read.
    """
    targets: list[tuple[type[Proposal] | type[EvaluatorProfile], UUID, int]] = [
        (Proposal, proposal.id, proposal.assignment_revision),
    ]
    seen = set()
    for profile in evaluators:
        if profile.id not in seen:
            seen.add(profile.id)
            targets.append((EvaluatorProfile, profile.id, profile.assignment_revision))

    for model, row_id, expected in targets:
        result = await session.exec(
            update(model)
            .where(col(model.id) == row_id, col(model.assignment_revision) == expected)
            .values(assignment_revision=expected + 1, last_assignment_at=now)
            .execution_options(synchronize_session="fetch"),
        )
        if result.rowcount != 1:
            await session.rollback()
            raise ConflictError(
                "Assignments changed concurrently; reload and retry",
                details={"entity": model.__tablename__, "id": str(row_id)},
            )


def mark_under_review(proposal: Proposal, now: datetime) -> bool:
    """Move a submitted proposal into review; return whether it changed."""
    if proposal.status != "submitted":
        return False
    proposal.status = "under_review"
    proposal.updated_at = now
    return True
