"""Assignment lifecycle: admission-gated creation, responses, removal and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from funding_review.core.errors import ConflictError, NotFoundError
from funding_review.core.logging import get_logger
from funding_review.core.time import utcnow
from funding_review.models.assignments import ACTIVE_STATUSES, Assignment
from funding_review.models.evaluations import Evaluation
from funding_review.services.audit import record_activity
from funding_review.services.directory import active_workload, capacity_for, get_profile
from funding_review.services.matching import SEVERITY_BLOCKING, evaluate_pair
from funding_review.services.policy import (
    ASSIGNMENT_RESPOND,
    ASSIGNMENT_WRITE,
    authorize,
    role_allows,
)
from funding_review.services.proposals import (
    claim_assignment_revisions,
    get_proposal,
    lock_proposal_row,
    proposal_lock,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile
    from funding_review.models.proposals import Proposal
    from funding_review.schemas.assignments import AssignmentResponseRequest

logger = get_logger(__name__)


@dataclass
class AssignmentSetResult:
    """Outcome of reconciling a proposal's evaluators."""

    proposal_id: UUID
    active: list[Assignment]
    created: list[UUID] = field(default_factory=list)
    removed: list[UUID] = field(default_factory=list)
    unchanged: list[UUID] = field(default_factory=list)


async def get_assignment(session: AsyncSession, assignment_id: UUID) -> Assignment:
    assignment = await Assignment.objects.by_id(assignment_id).first(session)
    if assignment is None:
        raise NotFoundError("Assignment not found", details={"assignment_id": str(assignment_id)})
    return assignment


async def active_assignments_for(session: AsyncSession, proposal_id: UUID) -> list[Assignment]:
    return await (
        Assignment.objects.filter(
            col(Assignment.proposal_id) == proposal_id,
            col(Assignment.status).in_(ACTIVE_STATUSES),
        )
        .order_by(col(Assignment.assigned_at))
        .all(session)
    )


async def find_active_assignment(
    session: AsyncSession,
    *,
    proposal_id: UUID,
    evaluator_id: UUID,
) -> Assignment | None:
    return await Assignment.objects.filter(
        col(Assignment.proposal_id) == proposal_id,
        col(Assignment.evaluator_id) == evaluator_id,
        col(Assignment.status).in_(ACTIVE_STATUSES),
    ).first(session)


async def _submitted_evaluator_ids(
    session: AsyncSession,
    proposal_id: UUID,
    evaluator_ids: list[UUID],
) -> set[UUID]:
    if not evaluator_ids:
        return set()
    rows = await Evaluation.objects.filter(
        col(Evaluation.proposal_id) == proposal_id,
        col(Evaluation.evaluator_id).in_(evaluator_ids),
        col(Evaluation.completed_at).is_not(None),
    ).all(session)
    return {row.evaluator_id for row in rows}


async def check_admission(
    session: AsyncSession,
    *,
    proposal: Proposal,
    profile: EvaluatorProfile,
) -> None:
    """Reject a new assignment the evaluator could never take on.

    Covers an inactive or non-reviewing profile, a duplicate pair, full
    capacity and a blocking conflict of interest.
    """
    if not profile.is_active or not role_allows(profile.role, ASSIGNMENT_RESPOND):
        logger.info(
            "assignment.admission.rejected reason=ineligible evaluator_id=%s role=%s active=%s",
            profile.id,
            profile.role,
            profile.is_active,
        )
        raise ConflictError(
            f"{profile.name} cannot take evaluation assignments",
            details={
                "evaluator_id": str(profile.id),
                "role": profile.role,
                "is_active": profile.is_active,
            },
        )

    existing = await find_active_assignment(
        session,
        proposal_id=proposal.id,
        evaluator_id=profile.id,
    )
    if existing is not None:
        logger.info(
            "assignment.admission.rejected reason=duplicate proposal_id=%s evaluator_id=%s",
            proposal.id,
            profile.id,
        )
        raise ConflictError(
            "Evaluator is already assigned to this proposal",
            details={"assignment_id": str(existing.id), "status": existing.status},
        )

    load = await active_workload(session, profile.id)
    capacity = capacity_for(profile)
    if load >= capacity:
        logger.info(
            "assignment.admission.rejected reason=capacity evaluator_id=%s load=%s capacity=%s",
            profile.id,
            load,
            capacity,
        )
        raise ConflictError(
            f"Evaluator {profile.name} is at capacity ({load}/{capacity})",
            details={"evaluator_id": str(profile.id), "load": load, "capacity": capacity},
        )

    cell = await evaluate_pair(session, proposal, profile)
    if cell.conflict_severity == SEVERITY_BLOCKING:
        logger.info(
            "assignment.admission.rejected reason=conflict proposal_id=%s evaluator_id=%s flags=%s",
            proposal.id,
            profile.id,
            ",".join(cell.conflict_flags),
        )
        raise ConflictError(
            f"Evaluator {profile.name} has a blocking conflict of interest",
            details={"evaluator_id": str(profile.id), "conflict_flags": cell.conflict_flags},
        )


async def _commit_assignment_write(session: AsyncSession) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Evaluator is already assigned to this proposal") from exc


async def quick_assign(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
    evaluator_id: UUID,
    method: str = "manual",
) -> Assignment:
    """Create one pending assignment after the admission checks pass."""
    authorize(actor, ASSIGNMENT_WRITE)
    async with proposal_lock(proposal_id):
        proposal = await get_proposal(session, proposal_id)
        profile = await get_profile(session, evaluator_id)
        await lock_proposal_row(session, proposal.id)
        await check_admission(session, proposal=proposal, profile=profile)

        now = utcnow()
        await claim_assignment_revisions(session, proposal=proposal, evaluators=[profile], now=now)
        assignment = Assignment(
            proposal_id=proposal.id,
            evaluator_id=profile.id,
            assigned_by=actor.id,
            method=method,
            status="pending",
            assigned_at=now,
        )
        session.add(assignment)
        await record_activity(
            session,
            actor_id=actor.id,
            action="assignment.created",
            entity_type="assignment",
            entity_id=assignment.id,
            details={
                "proposal_id": str(proposal.id),
                "evaluator_id": str(profile.id),
                "method": method,
            },
        )
        await _commit_assignment_write(session)

    logger.info(
        "assignment.created proposal_id=%s evaluator_id=%s method=%s",
        proposal_id,
        evaluator_id,
        method,
    )
    return assignment


async def set_assigned_evaluators(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
    evaluator_ids: list[UUID],
    method: str = "manual",
) -> AssignmentSetResult:
    """Reconcile active assignments to exactly `evaluator_ids`.

    Existing active assignments in the set are left alone, missing ones are
    created through the admission checks, and the rest are marked removed.
    Removing an evaluator who already submitted fails the whole call.
    """
    authorize(actor, ASSIGNMENT_WRITE)
    requested = list(dict.fromkeys(evaluator_ids))
    async with proposal_lock(proposal_id):
        proposal = await get_proposal(session, proposal_id)
        await lock_proposal_row(session, proposal.id)
        current = await active_assignments_for(session, proposal.id)
        current_by_evaluator = {row.evaluator_id: row for row in current}

        to_remove = [row for row in current if row.evaluator_id not in requested]
        submitted = await _submitted_evaluator_ids(
            session,
            proposal.id,
            [row.evaluator_id for row in to_remove],
        )
        if submitted:
            raise ConflictError(
                "Cannot unassign evaluators who already submitted an evaluation",
                details={"evaluator_ids": sorted(str(item) for item in submitted)},
            )

        to_add = [
            await get_profile(session, evaluator_id)
            for evaluator_id in requested
            if evaluator_id not in current_by_evaluator
        ]
        for profile in to_add:
            await check_admission(session, proposal=proposal, profile=profile)

        result = AssignmentSetResult(
            proposal_id=proposal.id,
            active=[],
            unchanged=[row.evaluator_id for row in current if row.evaluator_id in requested],
        )
        if not to_add and not to_remove:
            result.active = current
            return result

        now = utcnow()
        removed_profiles = [await get_profile(session, row.evaluator_id) for row in to_remove]
        await claim_assignment_revisions(
            session,
            proposal=proposal,
            evaluators=[*to_add, *removed_profiles],
            now=now,
        )
        for row in to_remove:
            row.status = "removed"
            row.removed_at = now
            session.add(row)
            result.removed.append(row.evaluator_id)
        for profile in to_add:
            session.add(
                Assignment(
                    proposal_id=proposal.id,
                    evaluator_id=profile.id,
                    assigned_by=actor.id,
                    method=method,
                    status="pending",
                    assigned_at=now,
                ),
            )
            result.created.append(profile.id)
        await record_activity(
            session,
            actor_id=actor.id,
            action="proposal.evaluators_updated",
            entity_type="proposal",
            entity_id=proposal.id,
            details={
                "added": [str(item) for item in result.created],
                "removed": [str(item) for item in result.removed],
                "method": method,
            },
        )
        await _commit_assignment_write(session)
        result.active = await active_assignments_for(session, proposal.id)

    logger.info(
        "proposal.evaluators_updated proposal_id=%s added=%s removed=%s",
        proposal_id,
        len(result.created),
        len(result.removed),
    )
    return result


async def respond_to_assignment(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    assignment_id: UUID,
    payload: AssignmentResponseRequest,
) -> Assignment:
    """Accept or decline a pending assignment on the evaluator's behalf."""
    assignment = await get_assignment(session, assignment_id)
    authorize(actor, ASSIGNMENT_RESPOND, assignment)
    if payload.decision == "accept" and payload.coi_declared:
        raise ConflictError(
            "A declared conflict of interest requires declining the assignment",
            details={"assignment_id": str(assignment.id)},
        )

    async with proposal_lock(assignment.proposal_id):
        await session.refresh(assignment)
        if assignment.status != "pending":
            raise ConflictError(
                f"Assignment is already {assignment.status}",
                details={"assignment_id": str(assignment.id), "status": assignment.status},
            )
        proposal = await get_proposal(session, assignment.proposal_id)
        now = utcnow()
        await claim_assignment_revisions(session, proposal=proposal, evaluators=[actor], now=now)
        assignment.status = "accepted" if payload.decision == "accept" else "declined"
        assignment.responded_at = now
        if assignment.status == "declined":
            assignment.decline_reason = (payload.reason or "").strip() or None
            assignment.decline_comment = (payload.comment or "").strip() or None
        if payload.coi_declared:
            assignment.coi_declared = True
            assignment.coi_details = (payload.coi_details or "").strip() or None
        session.add(assignment)
        await record_activity(
            session,
            actor_id=actor.id,
            action="assignment.responded",
            entity_type="assignment",
            entity_id=assignment.id,
            details={
                "status": assignment.status,
                "reason": assignment.decline_reason,
                "coi_declared": assignment.coi_declared,
            },
        )
        await session.commit()

    logger.info(
        "assignment.responded assignment_id=%s status=%s",
        assignment.id,
        assignment.status,
    )
    return assignment


async def remove_assignment(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    assignment_id: UUID,
) -> Assignment:
    """Admin removal; the record stays with status `removed`."""
    authorize(actor, ASSIGNMENT_WRITE)
    assignment = await get_assignment(session, assignment_id)
    if assignment.status not in ACTIVE_STATUSES:
        raise ConflictError(
            f"Assignment is already {assignment.status}",
            details={"assignment_id": str(assignment.id), "status": assignment.status},
        )

    async with proposal_lock(assignment.proposal_id):
        proposal = await get_proposal(session, assignment.proposal_id)
        submitted = await _submitted_evaluator_ids(
            session,
            proposal.id,
            [assignment.evaluator_id],
        )
        if submitted:
            raise ConflictError(
                "Cannot unassign an evaluator who already submitted an evaluation",
                details={"evaluator_id": str(assignment.evaluator_id)},
            )
        profile = await get_profile(session, assignment.evaluator_id)
        now = utcnow()
        await claim_assignment_revisions(session, proposal=proposal, evaluators=[profile], now=now)
        assignment.status = "removed"
        assignment.removed_at = now
        session.add(assignment)
        await record_activity(
            session,
            actor_id=actor.id,
            action="assignment.removed",
            entity_type="assignment",
            entity_id=assignment.id,
            details={"proposal_id": str(proposal.id), "evaluator_id": str(profile.id)},
        )
        await session.commit()

    logger.info("assignment.removed assignment_id=%s", assignment.id)
    return assignment
