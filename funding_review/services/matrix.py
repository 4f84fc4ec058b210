"""Bulk proposals × evaluators matrix with filters and summary counts."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from sqlmodel import col, func, select

from funding_review.core.logging import get_logger
from funding_review.core.time import utcnow
from funding_review.models.assignments import ACTIVE_STATUSES, Assignment
from funding_review.models.calls import Call
from funding_review.models.proposals import Proposal
from funding_review.schemas.matrix import (
    MatchCellRead,
    MatrixEvaluatorRead,
    MatrixFilter,
    MatrixFilterOptionsRead,
    MatrixProposalRead,
    MatrixRead,
    MatrixSummaryRead,
)
from funding_review.services.criteria import required_evaluators_for
from funding_review.services.directory import capacity_for, list_evaluators
from funding_review.services.matching import compute_match_cell, load_match_context
from funding_review.services.policy import MATRIX_READ, authorize

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

logger = get_logger(__name__)

REVIEWABLE_STATUSES = ("submitted", "under_review")


def coverage_status(assigned: int, required: int) -> str:
    """Classify a proposal as needs_assignment, partial or complete."""
    if assigned == 0:
        return "needs_assignment"
    if assigned < required:
        return "partial"
    return "complete"


def _matches_text(value: str | None, wanted: str | None) -> bool:
    if not wanted:
        return True
    return (value or "").strip().lower() == wanted.strip().lower()


def _has_expertise(profile: EvaluatorProfile, wanted: str | None) -> bool:
    if not wanted:
        return True
    needle = wanted.strip().lower()
    return any(needle in area.lower() for area in profile.expertise)


async def active_counts_by_proposal(
    session: AsyncSession,
    proposal_ids: list[UUID],
) -> Counter[UUID]:
    if not proposal_ids:
        return Counter()
    statement = (
        select(Assignment.proposal_id, func.count())
        .where(
            col(Assignment.proposal_id).in_(proposal_ids),
            col(Assignment.status).in_(ACTIVE_STATUSES),
        )
        .group_by(col(Assignment.proposal_id))
    )
    return Counter({proposal_id: int(count) for proposal_id, count in await session.exec(statement)})


def _filter_options(calls: list[Call], evaluators: list[EvaluatorProfile]) -> MatrixFilterOptionsRead:
    return MatrixFilterOptionsRead(
        calls=[{"id": str(call.id), "title": call.title} for call in calls],
        campuses=sorted({profile.campus for profile in evaluators if profile.campus}),
        departments=sorted({profile.department for profile in evaluators if profile.department}),
        expertise=sorted({area for profile in evaluators for area in profile.expertise if area}),
    )


async def compute_matrix(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    filters: MatrixFilter | None = None,
) -> MatrixRead:
    """Compute every match cell for the filtered proposals and evaluators."""
    authorize(actor, MATRIX_READ)
    filters = filters or MatrixFilter()
    computed_at = utcnow()

    calls = await Call.objects.all().order_by(col(Call.title)).all(session)
    calls_by_id = {call.id: call for call in calls}

    statuses = filters.proposal_statuses or list(REVIEWABLE_STATUSES)
    proposal_query = Proposal.objects.filter(col(Proposal.status).in_(statuses))
    if filters.call_ids:
        proposal_query = proposal_query.filter(col(Proposal.call_id).in_(filters.call_ids))
    proposals = await proposal_query.order_by(col(Proposal.created_at)).all(session)

    all_evaluators = await list_evaluators(session)
    evaluators = [
        profile
        for profile in all_evaluators
        if _matches_text(profile.campus, filters.evaluator_campus)
        and _matches_text(profile.department, filters.evaluator_department)
        and _has_expertise(profile, filters.evaluator_expertise)
    ]

    context = await load_match_context(
        session,
        proposals=proposals,
        evaluators=evaluators,
        as_of=filters.as_of,
    )
    if filters.show_only_available:
        evaluators = [
            profile
            for profile in evaluators
            if context.workloads[profile.id] < capacity_for(profile)
        ]

    assigned_counts = await active_counts_by_proposal(session, [p.id for p in proposals])
    rows: list[MatrixProposalRead] = []
    for proposal in proposals:
        call = calls_by_id.get(proposal.call_id)
        required = required_evaluators_for(call) if call is not None else 0
        assigned = assigned_counts[proposal.id]
        rows.append(
            MatrixProposalRead(
                id=proposal.id,
                call_id=proposal.call_id,
                title=proposal.title,
                status=proposal.status,
                department=proposal.department,
                required=required,
                assigned=assigned,
                coverage=coverage_status(assigned, required),
            ),
        )
    if filters.assignment_status is not None:
        rows = [row for row in rows if row.coverage == filters.assignment_status]
    kept = {row.id for row in rows}
    proposals = [proposal for proposal in proposals if proposal.id in kept]

    columns = [
        MatrixEvaluatorRead(
            id=profile.id,
            name=profile.name,
            department=profile.department,
            campus=profile.campus,
            expertise=list(profile.expertise),
            workload=context.workloads[profile.id],
            capacity=capacity_for(profile),
            available=context.workloads[profile.id] < capacity_for(profile),
        )
        for profile in evaluators
    ]
    cells = [
        [
            MatchCellRead.model_validate(
                compute_match_cell(proposal, profile, context=context),
                from_attributes=True,
            )
            for profile in evaluators
        ]
        for proposal in proposals
    ]

    coverage = Counter(row.coverage for row in rows)
    available_count = sum(1 for column in columns if column.available)
    summary = MatrixSummaryRead(
        total_proposals=len(rows),
        total_evaluators=len(columns),
        needs_assignment=coverage["needs_assignment"],
        partial=coverage["partial"],
        fully_assigned=coverage["complete"],
        available_evaluators=available_count,
        at_capacity=len(columns) - available_count,
    )
    logger.info(
        "matrix.computed proposals=%s evaluators=%s",
        len(rows),
        len(columns),
    )
    return MatrixRead(
        computed_at=computed_at,
        proposals=rows,
        evaluators=columns,
        cells=cells,
        summary=summary,
        filter_options=_filter_options(calls, all_evaluators),
    )
