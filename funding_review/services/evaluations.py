"""Reviewer drafts, submissions and evaluation read views."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from funding_review.core.errors import AuthorizationError, ConflictError, ValidationError
from funding_review.core.logging import get_logger
from funding_review.core.time import utcnow
from funding_review.models.calls import Criterion
from funding_review.models.evaluations import Evaluation
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.schemas.criteria import CriterionRead
from funding_review.schemas.evaluations import (
    EvaluationContextRead,
    EvaluationRead,
    OwnerEvaluationRead,
    OwnerEvaluationsRead,
    RubricEntryRead,
)
from funding_review.services.assignments import find_active_assignment
from funding_review.services.audit import record_activity
from funding_review.services.criteria import get_call, list_active_criteria
from funding_review.services.policy import (
    EVALUATION_READ_OWN,
    EVALUATION_WRITE,
    OWNER_VIEW_READ,
    authorize,
)
from funding_review.services.proposals import get_proposal, mark_under_review
from funding_review.services.scoring import merge_rubric, missing_scores, score_stored_rubric

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.assignments import Assignment
    from funding_review.models.proposals import Proposal
    from funding_review.schemas.evaluations import EvaluationDraftRequest, EvaluationSubmitRequest

logger = get_logger(__name__)

ANONYMOUS_REVIEWER = "Anonymous Reviewer"
HIDDEN_FROM_OWNER_STATUSES = frozenset({"draft"})


async def get_evaluation(
    session: AsyncSession,
    *,
    proposal_id: UUID,
    evaluator_id: UUID,
) -> Evaluation | None:
    return await Evaluation.objects.filter_by(
        proposal_id=proposal_id,
        evaluator_id=evaluator_id,
    ).first(session)


async def _reviewer_context(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
) -> tuple[Proposal, Assignment, list[Criterion]]:
    proposal = await get_proposal(session, proposal_id)
    assignment = await find_active_assignment(
        session,
        proposal_id=proposal.id,
        evaluator_id=actor.id,
    )
    authorize(actor, EVALUATION_WRITE, assignment)
    criteria = await list_active_criteria(session, proposal.call_id)
    return proposal, assignment, criteria  # type: ignore[return-value]


async def _guarded_update(
    session: AsyncSession,
    evaluation: Evaluation,
    values: dict[str, Any],
) -> None:
    # Only an unsubmitted row at the revision we read may be written.
    result = await session.exec(
        update(Evaluation)
        .where(
            col(Evaluation.id) == evaluation.id,
            col(Evaluation.revision) == evaluation.revision,
            col(Evaluation.completed_at).is_(None),
        )
        .values(revision=evaluation.revision + 1, **values)
        .execution_options(synchronize_session="fetch"),
    )
    if result.rowcount != 1:
        await session.rollback()
        raise ConflictError(
            "Evaluation was submitted or changed by another save; reload and retry",
            details={"evaluation_id": str(evaluation.id)},
        )


async def _write_evaluation(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal: Proposal,
    existing: Evaluation | None,
    values: dict[str, Any],
    action: str,
) -> Evaluation:
    now = utcnow()
    values = {**values, "updated_at": now}
    if existing is None:
        evaluation = Evaluation(
            proposal_id=proposal.id,
            evaluator_id=actor.id,
            created_at=now,
            revision=1,
            **values,
        )
        session.add(evaluation)
    else:
        evaluation = existing
        await _guarded_update(session, evaluation, values)

    if mark_under_review(proposal, now):
        session.add(proposal)
    await record_activity(
        session,
        actor_id=actor.id,
        action=action,
        entity_type="evaluation",
        entity_id=evaluation.id,
        details={"proposal_id": str(proposal.id), "revision": evaluation.revision},
    )
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Evaluation was created by another save; reload and retry") from exc
    await session.refresh(evaluation)
    return evaluation


async def save_draft(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
    payload: EvaluationDraftRequest,
) -> Evaluation:
    """Upsert the caller's draft; rejected once the evaluation is submitted."""
    proposal, _assignment, criteria = await _reviewer_context(
        session,
        actor=actor,
        proposal_id=proposal_id,
    )
    existing = await get_evaluation(session, proposal_id=proposal.id, evaluator_id=actor.id)
    if existing is not None and existing.completed_at is not None:
        raise ConflictError(
            "Evaluation has already been submitted",
            details={"evaluation_id": str(existing.id)},
        )

    rubric = merge_rubric(existing.rubric if existing else [], payload.rubric, criteria)
    values: dict[str, Any] = {
        "rubric": rubric,
        "public_comments": payload.public_comments.strip(),
        "confidential_comments": payload.confidential_comments.strip(),
        "ai_assistance_used": payload.ai_assistance_used,
        "recommendation": payload.recommendation
        or (existing.recommendation if existing else None),
    }
    evaluation = await _write_evaluation(
        session,
        actor=actor,
        proposal=proposal,
        existing=existing,
        values=values,
        action="evaluation.draft_created" if existing is None else "evaluation.draft_updated",
    )
    logger.info(
        "evaluation.draft_saved proposal_id=%s evaluator_id=%s revision=%s",
        proposal.id,
        actor.id,
        evaluation.revision,
    )
    return evaluation


async def submit_evaluation(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
    payload: EvaluationSubmitRequest,
) -> Evaluation:
    """Validate and freeze the caller's evaluation, persisting its overall score."""
    proposal, _assignment, criteria = await _reviewer_context(
        session,
        actor=actor,
        proposal_id=proposal_id,
    )
    if not criteria:
        raise ValidationError("This call has no evaluation criteria configured")
    existing = await get_evaluation(session, proposal_id=proposal.id, evaluator_id=actor.id)
    if existing is not None and existing.completed_at is not None:
        raise ConflictError(
            "Evaluation has already been submitted",
            details={"evaluation_id": str(existing.id)},
        )

    rubric = merge_rubric(existing.rubric if existing else [], payload.rubric, criteria)
    missing = set(missing_scores(rubric))
    if missing:
        names = [criterion.name for criterion in criteria if criterion.id in missing]
        raise ValidationError(
            f"Missing scores for: {', '.join(names)}",
            details={"missing_criteria": [str(item) for item in sorted(missing, key=str)]},
        )
    recommendation = payload.recommendation or (existing.recommendation if existing else None)
    if recommendation is None:
        raise ValidationError("A recommendation is required to submit")

    now = utcnow()
    values: dict[str, Any] = {
        "rubric": rubric,
        "overall_score": score_stored_rubric(rubric),
        "recommendation": recommendation,
        "public_comments": payload.public_comments.strip(),
        "confidential_comments": payload.confidential_comments.strip(),
        "ai_assistance_used": payload.ai_assistance_used,
        "completed_at": now,
    }
    evaluation = await _write_evaluation(
        session,
        actor=actor,
        proposal=proposal,
        existing=existing,
        values=values,
        action="evaluation.submitted",
    )
    logger.info(
        "evaluation.submitted proposal_id=%s evaluator_id=%s overall_score=%s",
        proposal.id,
        actor.id,
        evaluation.overall_score,
    )
    return evaluation


def to_evaluation_read(evaluation: Evaluation) -> EvaluationRead:
    return EvaluationRead.model_validate(
        {
            **evaluation.model_dump(),
            "rubric": [RubricEntryRead.model_validate(entry) for entry in evaluation.rubric],
        },
    )


async def _criteria_for_evaluation(
    session: AsyncSession,
    evaluation: Evaluation | None,
    call_id: UUID,
) -> list[Criterion]:
    # Submitted evaluations show the criterion versions they were scored against.
    if evaluation is None or evaluation.completed_at is None:
        return await list_active_criteria(session, call_id)
    ids = [UUID(str(entry["criterion_id"])) for entry in evaluation.rubric]
    pinned = await Criterion.objects.by_ids(ids).all(session)
    order = {str(item): index for index, item in enumerate(ids)}
    return sorted(pinned, key=lambda row: order.get(str(row.id), len(order)))


async def get_evaluation_context(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
) -> EvaluationContextRead:
    """Criteria, current draft and score preview for the caller's review."""
    authorize(actor, EVALUATION_READ_OWN)
    proposal = await get_proposal(session, proposal_id)
    assignment = await find_active_assignment(
        session,
        proposal_id=proposal.id,
        evaluator_id=actor.id,
    )
    if assignment is None:
        raise AuthorizationError("You are not assigned to this proposal")
    evaluation = await get_evaluation(session, proposal_id=proposal.id, evaluator_id=actor.id)
    criteria = await _criteria_for_evaluation(session, evaluation, proposal.call_id)
    rubric = evaluation.rubric if evaluation is not None else []
    if evaluation is None:
        missing = [criterion.id for criterion in criteria]
    else:
        missing = missing_scores(rubric)
    return EvaluationContextRead(
        proposal_id=proposal.id,
        proposal_title=proposal.title,
        assignment_id=assignment.id,
        assignment_status=assignment.status,
        criteria=[CriterionRead.model_validate(row, from_attributes=True) for row in criteria],
        evaluation=to_evaluation_read(evaluation) if evaluation is not None else None,
        missing_scores=missing,
        preview_score=score_stored_rubric(rubric) if rubric else None,
    )


async def submitted_evaluations(session: AsyncSession, proposal_id: UUID) -> list[Evaluation]:
    return await (
        Evaluation.objects.filter(
            col(Evaluation.proposal_id) == proposal_id,
            col(Evaluation.completed_at).is_not(None),
        )
        .order_by(col(Evaluation.completed_at))
        .all(session)
    )


def average_score(evaluations: list[Evaluation]) -> float | None:
    scores = [row.overall_score for row in evaluations if row.overall_score is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 2)


def recommendation_counts(evaluations: list[Evaluation]) -> dict[str, int]:
    return dict(Counter(row.recommendation for row in evaluations if row.recommendation))


async def owner_evaluations(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    proposal_id: UUID,
) -> OwnerEvaluationsRead:
    """Author-facing review outcome: public comments only, anonymised for blind calls."""
    proposal = await get_proposal(session, proposal_id)
    authorize(actor, OWNER_VIEW_READ, proposal)
    call = await get_call(session, proposal.call_id)

    rows: list[Evaluation] = []
    if proposal.status not in HIDDEN_FROM_OWNER_STATUSES:
        rows = await submitted_evaluations(session, proposal.id)
    names: dict[UUID, str] = {}
    if not call.blind_review and rows:
        profiles = await EvaluatorProfile.objects.by_ids(
            {row.evaluator_id for row in rows},
        ).all(session)
        names = {profile.id: profile.name for profile in profiles}

    return OwnerEvaluationsRead(
        proposal_id=proposal.id,
        status=proposal.status,
        evaluations=[
            OwnerEvaluationRead(
                evaluator_name=names.get(row.evaluator_id, ANONYMOUS_REVIEWER),
                overall_score=row.overall_score,
                recommendation=row.recommendation,
                public_comments=row.public_comments,
                completed_at=row.completed_at,
                rubric=[RubricEntryRead.model_validate(entry) for entry in row.rubric],
            )
            for row in rows
        ],
        recommendation_counts=recommendation_counts(rows),
        average_score=average_score(rows),
        decision_note=proposal.decision_note,
        decided_at=proposal.decided_at,
    )
