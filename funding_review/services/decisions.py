"""Per-proposal evaluation summary and the gated funding decision."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING
from uuid import UUID

from funding_review.core.errors import ValidationError
from funding_review.core.logging import get_logger
from funding_review.core.time import utcnow
from funding_review.models.calls import Criterion
from funding_review.models.evaluations import Evaluation
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.schemas.decisions import (
    CriterionAverageRead,
    DecisionRead,
    EvaluationSummaryRead,
    PendingEvaluatorRead,
)
from funding_review.services.assignments import active_assignments_for
from funding_review.services.audit import record_activity
from funding_review.services.criteria import get_call, required_evaluators_for
from funding_review.services.evaluations import average_score, recommendation_counts
from funding_review.services.policy import DECISION_FINALIZE, SUMMARY_READ, authorize
from funding_review.services.proposals import get_proposal

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.assignments import Assignment
    from funding_review.models.proposals import Proposal

logger = get_logger(__name__)

THRESHOLD_DECISIONS = frozenset({"approved", "rejected"})
DECISIONS = THRESHOLD_DECISIONS | {"revise_and_resubmit"}


def criterion_averages(
    evaluations: Sequence[Evaluation],
    criteria: Sequence[Criterion],
) -> list[CriterionAverageRead]:
    """Mean score per criterion across submitted rubrics, in criteria order."""
    scores: dict[str, list[float]] = defaultdict(list)
    for evaluation in evaluations:
        for entry in evaluation.rubric:
            score = entry.get("score")
            if score is not None:
                scores[str(entry.get("criterion_id"))].append(float(score))  # type: ignore[arg-type]
    rows: list[CriterionAverageRead] = []
    for criterion in criteria:
        values = scores.get(str(criterion.id), [])
        rows.append(
            CriterionAverageRead(
                criterion_id=criterion.id,
                name=criterion.name,
                average_score=round(sum(values) / len(values), 2) if values else None,
                max_score=criterion.max_score,
                count=len(values),
            ),
        )
    return rows


def decision_read(proposal: Proposal) -> DecisionRead:
    return DecisionRead(
        proposal_id=proposal.id,
        status=proposal.status,
        decided_by=proposal.decided_by,
        decided_at=proposal.decided_at,
        note=proposal.decision_note,
    )


def build_summary(
    *,
    proposal: Proposal,
    required: int,
    assignments: Sequence[Assignment],
    evaluations: Sequence[Evaluation],
    criteria: Sequence[Criterion],
    names: dict[UUID, str],
) -> EvaluationSummaryRead:
    """Aggregate review state from already-loaded rows."""
    submitted = [row for row in evaluations if row.completed_at is not None]
    submitted_by = {row.evaluator_id for row in submitted}
    drafting = {row.evaluator_id for row in evaluations if row.completed_at is None}

    pending = [row for row in assignments if row.status == "pending"]
    in_progress = [
        row
        for row in assignments
        if row.status == "accepted" and row.evaluator_id not in submitted_by
    ]
    outstanding = [row for row in assignments if row.evaluator_id not in submitted_by]

    return EvaluationSummaryRead(
        proposal_id=proposal.id,
        required_evaluations=required,
        assigned_count=len(assignments),
        in_progress_count=len(in_progress),
        submitted_count=len(submitted),
        pending_count=len(pending),
        criterion_averages=criterion_averages(submitted, criteria),
        average_score=average_score(list(submitted)),
        pending_evaluators=[
            PendingEvaluatorRead(
                evaluator_id=row.evaluator_id,
                name=names.get(row.evaluator_id, ""),
                assignment_status=row.status,
                has_draft=row.evaluator_id in drafting,
            )
            for row in outstanding
        ],
        recommendation_counts=recommendation_counts(list(submitted)),
        threshold_met=len(submitted) >= required,
        decision=decision_read(proposal),
    )


async def _summary_criteria(
    session: AsyncSession,
    call_id: UUID,
    evaluations: Sequence[Evaluation],
) -> list[Criterion]:
    # Include every criterion version any submitted rubric was scored against.
    pinned = {
        UUID(str(entry["criterion_id"]))
        for row in evaluations
        if row.completed_at is not None
        for entry in row.rubric
    }
    rows = await Criterion.objects.filter_by(call_id=call_id, is_active=True).all(session)
    known = {row.id for row in rows}
    if pinned - known:
        rows.extend(await Criterion.objects.by_ids(pinned - known).all(session))
    return sorted(rows, key=lambda row: (-row.version, row.position))


async def load_summary(session: AsyncSession, proposal: Proposal) -> EvaluationSummaryRead:
    call = await get_call(session, proposal.call_id)
    assignments = await active_assignments_for(session, proposal.id)
    evaluations = await Evaluation.objects.filter_by(proposal_id=proposal.id).all(session)
    criteria = await _summary_criteria(session, call.id, evaluations)
    profiles = await EvaluatorProfile.objects.by_ids(
        {row.evaluator_id for row in assignments},
    ).all(session)
    return build_summary(
        proposal=proposal,
        required=required_evaluators_for(call),
        assignments=assignments,
        evaluations=evaluations,
        criteria=criteria,
        names={profile.id: profile.name for profile in profiles},
    )


async def get_evaluation_summary(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
) -> EvaluationSummaryRead:
    authorize(actor, SUMMARY_READ)
    proposal = await get_proposal(session, proposal_id)
    return await load_summary(session, proposal)


async def finalize_decision(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
    decision: str,
    note: str = "",
) -> DecisionRead:
    """Write the proposal's decision slot, enforcing the submission threshold.

    Approve and reject need at least the call's required number of submitted
    evaluations; revise_and_resubmit does not. A later finalize overwrites the
    earlier one, and each is kept in the activity log.
    """
    authorize(actor, DECISION_FINALIZE)
    if decision not in DECISIONS:
        raise ValidationError(
            f"Unknown decision '{decision}'",
            details={"allowed": sorted(DECISIONS)},
        )
    proposal = await get_proposal(session, proposal_id)
    summary = await load_summary(session, proposal)

    if decision in THRESHOLD_DECISIONS and summary.submitted_count < summary.required_evaluations:
        missing = summary.required_evaluations - summary.submitted_count
        logger.info(
            "decision.finalize.rejected proposal_id=%s submitted=%s required=%s",
            proposal.id,
            summary.submitted_count,
            summary.required_evaluations,
        )
        raise ValidationError(
            f"At least {summary.required_evaluations} completed evaluations are required "
            f"before this decision; {missing} more needed",
            details={
                "required": summary.required_evaluations,
                "submitted": summary.submitted_count,
                "missing": missing,
            },
        )

    previous = proposal.status
    now = utcnow()
    proposal.status = decision
    proposal.decided_by = actor.id
    proposal.decided_at = now
    proposal.decision_note = note.strip() or None
    proposal.updated_at = now
    session.add(proposal)
    await record_activity(
        session,
        actor_id=actor.id,
        action="proposal.decision_finalized",
        entity_type="proposal",
        entity_id=proposal.id,
        details={
            "decision": decision,
            "previous_status": previous,
            "note": proposal.decision_note,
            "submitted": summary.submitted_count,
            "required": summary.required_evaluations,
        },
    )
    await session.commit()
    logger.info(
        "decision.finalized proposal_id=%s decision=%s previous=%s",
        proposal.id,
        decision,
        previous,
    )
    return decision_read(proposal)
