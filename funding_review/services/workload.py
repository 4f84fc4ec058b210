"""Workload lanes and assignment coverage views."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from funding_review.models.assignments import ACTIVE_STATUSES, Assignment
from funding_review.models.evaluations import Evaluation
from funding_review.models.proposals import Proposal
from funding_review.schemas.assignments import (
    CallAssignmentOverviewRead,
    CallProposalAssignmentRead,
    EvaluatorWorkloadRead,
    MyAssignmentRead,
    WorkloadOverviewRead,
)
from funding_review.services.criteria import get_call, required_evaluators_for
from funding_review.services.directory import capacity_for, list_evaluators
from funding_review.services.matrix import coverage_status
from funding_review.services.policy import ASSIGNMENT_READ_OWN, WORKLOAD_READ, authorize

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile

LANE_PENDING = "pending"
LANE_IN_PROGRESS = "in_progress"
LANE_SUBMITTED = "submitted"


def assignment_lane(assignment: Assignment, submitted: bool) -> str:
    """Workload lane of an active assignment."""
    if assignment.status == "pending":
        return LANE_PENDING
    if submitted:
        return LANE_SUBMITTED
    return LANE_IN_PROGRESS


async def _submitted_pairs(
    session: AsyncSession,
    assignments: list[Assignment],
) -> set[tuple[UUID, UUID]]:
    if not assignments:
        return set()
    rows = await Evaluation.objects.filter(
        col(Evaluation.proposal_id).in_({row.proposal_id for row in assignments}),
        col(Evaluation.completed_at).is_not(None),
    ).all(session)
    return {(row.proposal_id, row.evaluator_id) for row in rows}


async def list_my_assignments(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
) -> list[MyAssignmentRead]:
    """The caller's active assignments with proposal titles and lanes."""
    authorize(actor, ASSIGNMENT_READ_OWN)
    assignments = await (
        Assignment.objects.filter(
            col(Assignment.evaluator_id) == actor.id,
            col(Assignment.status).in_(ACTIVE_STATUSES),
        )
        .order_by(col(Assignment.assigned_at))
        .all(session)
    )
    proposals = await Proposal.objects.by_ids({row.proposal_id for row in assignments}).all(session)
    titles = {proposal.id: proposal.title for proposal in proposals}
    submitted = await _submitted_pairs(session, assignments)
    return [
        MyAssignmentRead.model_validate(
            {
                **row.model_dump(),
                "proposal_title": titles.get(row.proposal_id, ""),
                "lane": assignment_lane(row, (row.proposal_id, row.evaluator_id) in submitted),
            },
        )
        for row in assignments
    ]


async def workload_overview(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
) -> WorkloadOverviewRead:
    """Per-evaluator lane counts and utilization, plus spread statistics."""
    authorize(actor, WORKLOAD_READ)
    evaluators = await list_evaluators(session)
    assignments = await Assignment.objects.filter(
        col(Assignment.status).in_(ACTIVE_STATUSES),
    ).all(session)
    submitted = await _submitted_pairs(session, assignments)

    lanes: dict[UUID, dict[str, int]] = {
        profile.id: {LANE_PENDING: 0, LANE_IN_PROGRESS: 0, LANE_SUBMITTED: 0}
        for profile in evaluators
    }
    for row in assignments:
        if row.evaluator_id in lanes:
            lane = assignment_lane(row, (row.proposal_id, row.evaluator_id) in submitted)
            lanes[row.evaluator_id][lane] += 1

    rows: list[EvaluatorWorkloadRead] = []
    for profile in evaluators:
        counts = lanes[profile.id]
        active = sum(counts.values())
        capacity = capacity_for(profile)
        rows.append(
            EvaluatorWorkloadRead(
                evaluator_id=profile.id,
                name=profile.name,
                department=profile.department,
                campus=profile.campus,
                active=active,
                pending=counts[LANE_PENDING],
                in_progress=counts[LANE_IN_PROGRESS],
                completed=counts[LANE_SUBMITTED],
                capacity=capacity,
                utilization=round(active / capacity * 100, 2) if capacity > 0 else 100.0,
            ),
        )
    loads = [row.active for row in rows]
    return WorkloadOverviewRead(
        evaluators=rows,
        average_workload=round(sum(loads) / len(loads), 2) if loads else 0.0,
        max_workload=max(loads, default=0),
        min_workload=min(loads, default=0),
    )


async def call_assignment_overview(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    call_id: UUID,
) -> CallAssignmentOverviewRead:
    """Assigned versus required evaluators for every proposal in a call."""
    authorize(actor, WORKLOAD_READ)
    call = await get_call(session, call_id)
    required = required_evaluators_for(call)
    proposals = await (
        Proposal.objects.filter(
            col(Proposal.call_id) == call.id,
            col(Proposal.status) != "draft",
        )
        .order_by(col(Proposal.created_at))
        .all(session)
    )
    assignments: list[Assignment] = []
    if proposals:
        assignments = await Assignment.objects.filter(
            col(Assignment.proposal_id).in_([proposal.id for proposal in proposals]),
            col(Assignment.status).in_(ACTIVE_STATUSES),
        ).all(session)
    by_proposal: dict[UUID, list[UUID]] = {proposal.id: [] for proposal in proposals}
    for row in assignments:
        by_proposal[row.proposal_id].append(row.evaluator_id)

    rows = [
        CallProposalAssignmentRead(
            proposal_id=proposal.id,
            title=proposal.title,
            status=proposal.status,
            evaluator_ids=by_proposal[proposal.id],
            assigned=len(by_proposal[proposal.id]),
            required=required,
        )
        for proposal in proposals
    ]
    return CallAssignmentOverviewRead(
        call_id=call.id,
        required=required,
        proposals=rows,
        fully_assigned=sum(
            1 for row in rows if coverage_status(row.assigned, required) == "complete"
        ),
        needs_assignment=sum(
            1 for row in rows if coverage_status(row.assigned, required) == "needs_assignment"
        ),
    )
