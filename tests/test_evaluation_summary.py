# ruff: noqa

from __future__ import annotations

from uuid import uuid4

from funding_review.core.time import utcnow
from funding_review.models.assignments import Assignment
from funding_review.models.calls import Criterion
from funding_review.models.evaluations import Evaluation
from funding_review.models.proposals import Proposal
from funding_review.services.decisions import build_summary, criterion_averages


def _rubric(criteria: list[Criterion], scores: list[float | None]) -> list[dict[str, object]]:
    return [
        {
            "criterion_id": str(criterion.id),
            "score": score,
            "comments": "",
            "strengths": [],
            "weaknesses": [],
            "weight": criterion.weight,
            "max_score": criterion.max_score,
        }
        for criterion, score in zip(criteria, scores)
    ]


def test_summary_counts_lanes_and_threshold() -> None:
    call_id = uuid4()
    proposal = Proposal(call_id=call_id, title="Wetland survey", status="under_review")
    criteria = [
        Criterion(call_id=call_id, name="Impact", weight=50, max_score=5, position=0),
        Criterion(call_id=call_id, name="Feasibility", weight=50, max_score=5, position=1),
    ]
    done, drafting, waiting = uuid4(), uuid4(), uuid4()
    assignments = [
        Assignment(proposal_id=proposal.id, evaluator_id=done, status="accepted"),
        Assignment(proposal_id=proposal.id, evaluator_id=drafting, status="accepted"),
        Assignment(proposal_id=proposal.id, evaluator_id=waiting, status="pending"),
    ]
    evaluations = [
        Evaluation(
            proposal_id=proposal.id,
            evaluator_id=done,
            rubric=_rubric(criteria, [4, 3]),
            overall_score=70.0,
            recommendation="approve",
            completed_at=utcnow(),
        ),
        Evaluation(
            proposal_id=proposal.id,
            evaluator_id=drafting,
            rubric=_rubric(criteria, [5, None]),
        ),
    ]

    summary = build_summary(
        proposal=proposal,
        required=2,
        assignments=assignments,
        evaluations=evaluations,
        criteria=criteria,
        names={done: "Ada", drafting: "Ben", waiting: "Cy"},
    )

    assert summary.assigned_count == 3
    assert summary.submitted_count == 1
    assert summary.in_progress_count == 1
    assert summary.pending_count == 1
    assert summary.threshold_met is False
    assert summary.average_score == 70.0
    assert summary.recommendation_counts == {"approve": 1}
    # Draft scores never leak into the averages.
    assert [row.average_score for row in summary.criterion_averages] == [4.0, 3.0]
    pending = {row.name: row for row in summary.pending_evaluators}
    assert set(pending) == {"Ben", "Cy"}
    assert pending["Ben"].has_draft is True
    assert pending["Cy"].assignment_status == "pending"
    assert summary.decision.status == "under_review"


def test_criterion_averages_without_scores() -> None:
    call_id = uuid4()
    criteria = [Criterion(call_id=call_id, name="Budget", weight=100, max_score=10)]
    rows = criterion_averages([], criteria)
    assert rows[0].average_score is None
    assert rows[0].count == 0
    assert rows[0].max_score == 10
