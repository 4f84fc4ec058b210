# ruff: noqa

from __future__ import annotations

from collections import Counter
from datetime import timedelta
from uuid import uuid4

import pytest

from funding_review.core.time import utcnow
from funding_review.models.assignments import Assignment
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.models.proposals import Proposal
from funding_review.services.matching import (
    MatchContext,
    availability,
    blend_match_score,
    build_collaboration_index,
    compute_match_cell,
    conflict_severity,
    detect_conflicts,
    expertise_score,
    load_match_context,
    parse_conflict_policies,
)


def _proposal(**overrides: object) -> Proposal:
    values: dict[str, object] = {
        "call_id": uuid4(),
        "title": "Coastal flood modelling",
        "project_type": "research",
        "keywords": ["Climate", "Hydrology"],
        "department": "Geography",
    }
    values.update(overrides)
    return Proposal(**values)


def _evaluator(**overrides: object) -> EvaluatorProfile:
    values: dict[str, object] = {
        "name": "Dana Reviewer",
        "expertise": ["climate"],
        "department": "Physics",
        "campus": "North",
    }
    values.update(overrides)
    return EvaluatorProfile(**values)


def _context(**overrides: object) -> MatchContext:
    values: dict[str, object] = {"workloads": Counter()}
    values.update(overrides)
    return MatchContext(**values)


def test_expertise_counts_share_of_proposal_tags() -> None:
    score, matched = expertise_score(_evaluator(), _proposal())
    # tags: climate, hydrology, research
    assert matched == ["climate"]
    assert score == pytest.approx(33.33)


def test_expertise_matches_whole_words_case_insensitively() -> None:
    profile = _evaluator(expertise=["Hydrology and water", "CLIMATE"], department="Research Office")
    score, matched = expertise_score(profile, _proposal())
    assert matched == ["climate", "hydrology", "research"]
    assert score == 100.0


def test_expertise_ignores_fragments_inside_other_words() -> None:
    profile = _evaluator(expertise=["Sustainability"], department="")
    score, matched = expertise_score(profile, _proposal(keywords=["AI"], project_type=""))
    assert matched == []
    assert score == 10.0


def test_expertise_matches_multi_word_tags_by_word_set() -> None:
    profile = _evaluator(expertise=["Machine learning"], department="")
    score, matched = expertise_score(
        profile,
        _proposal(keywords=["learning", "Machine-Learning", "learning analytics"], project_type=""),
    )
    assert matched == ["learning", "machine-learning"]
    assert score == pytest.approx(66.67)


def test_expertise_is_floored_at_baseline() -> None:
    profile = _evaluator(expertise=["medieval poetry"], department="Literature")
    score, matched = expertise_score(profile, _proposal())
    assert matched == []
    assert score == 10.0


def test_expertise_without_proposal_tags_is_baseline() -> None:
    proposal = _proposal(keywords=[], project_type=None)
    assert expertise_score(_evaluator(), proposal) == (10.0, [])


def test_availability_headroom() -> None:
    assert availability(0, 5) == (True, 100.0)
    assert availability(2, 4) == (True, 50.0)
    assert availability(5, 5) == (False, 0.0)
    assert availability(7, 5) == (False, 0.0)
    assert availability(0, 0) == (False, 0.0)


def test_blend_weights_expertise_and_headroom() -> None:
    assert blend_match_score(expertise=100, headroom=100, available=True, advisory_count=0) == 100.0
    assert blend_match_score(expertise=50, headroom=0, available=True, advisory_count=0) == 40.0


def test_blend_applies_penalties_and_clamps() -> None:
    assert blend_match_score(expertise=100, headroom=50, available=True, advisory_count=2) == 70.0
    assert blend_match_score(expertise=10, headroom=0, available=False, advisory_count=0) == 0.0


def test_author_is_always_blocking() -> None:
    profile = _evaluator()
    proposal = _proposal(author_ids=[str(profile.id)])
    flags = detect_conflicts(
        profile, proposal, policy=parse_conflict_policies([]), context=_context()
    )
    assert [flag.rule for flag in flags] == ["author"]
    assert conflict_severity(flags) == "blocking"


def test_declared_conflict_is_blocking() -> None:
    profile = _evaluator()
    proposal = _proposal()
    context = _context(declared_coi={(proposal.id, profile.id)})
    flags = detect_conflicts(profile, proposal, policy=parse_conflict_policies([]), context=context)
    assert [flag.rule for flag in flags] == ["declared_coi"]
    assert conflict_severity(flags) == "blocking"


def test_same_department_is_advisory_by_default() -> None:
    profile = _evaluator(department="geography ")
    flags = detect_conflicts(
        profile, _proposal(), policy=parse_conflict_policies([]), context=_context()
    )
    assert [(flag.rule, flag.severity) for flag in flags] == [("same_department", "advisory")]


def test_hard_policy_escalates_department_rule() -> None:
    profile = _evaluator(department="Geography")
    flags = detect_conflicts(
        profile,
        _proposal(),
        policy=parse_conflict_policies(["hard:same_department"]),
        context=_context(),
    )
    assert conflict_severity(flags) == "blocking"


def test_same_campus_only_when_enabled() -> None:
    author = _evaluator(name="Author", campus="North")
    profile = _evaluator(campus="north")
    proposal = _proposal(author_ids=[str(author.id)])
    context = _context(author_campuses={str(author.id): author.campus})

    default = detect_conflicts(profile, proposal, policy=parse_conflict_policies([]), context=context)
    opted_in = detect_conflicts(
        profile,
        proposal,
        policy=parse_conflict_policies(["same_campus", "not_a_rule"]),
        context=context,
    )
    assert default == []
    assert [flag.rule for flag in opted_in] == ["same_campus"]


def test_prior_collaboration_from_shared_proposals() -> None:
    author = uuid4()
    profile = _evaluator()
    index = build_collaboration_index([[str(author), str(profile.id)], [str(uuid4())]])
    proposal = _proposal(author_ids=[str(author)])
    flags = detect_conflicts(
        profile,
        proposal,
        policy=parse_conflict_policies([]),
        context=_context(collaborators=index),
    )
    assert [(flag.rule, flag.severity) for flag in flags] == [("prior_collaboration", "advisory")]


def test_collaboration_index_is_symmetric() -> None:
    index = build_collaboration_index([["a", "b", "c"], ["c", "d"]])
    assert index["a"] == {"b", "c"}
    assert index["c"] == {"a", "b", "d"}
    assert index["d"] == {"c"}


def test_blocked_cell_keeps_score_but_is_not_assignable() -> None:
    profile = _evaluator()
    proposal = _proposal(author_ids=[str(profile.id)])
    cell = compute_match_cell(proposal, profile, context=_context())
    assert cell.conflict_severity == "blocking"
    assert cell.match_score > 0
    assert cell.assignable is False
    assert "blocking" in cell.reasoning


def test_cell_for_available_evaluator() -> None:
    profile = _evaluator(max_capacity=4)
    proposal = _proposal()
    cell = compute_match_cell(proposal, profile, context=_context(workloads=Counter({profile.id: 2})))
    assert cell.available is True
    assert cell.availability_score == 50.0
    assert cell.match_score == pytest.approx(0.8 * 33.33 + 0.2 * 50, abs=0.01)
    assert cell.assignable is True
    assert "load 2/4" in cell.reasoning


def test_cell_at_capacity_is_not_assignable() -> None:
    profile = _evaluator(max_capacity=1)
    cell = compute_match_cell(
        _proposal(), profile, context=_context(workloads=Counter({profile.id: 1}))
    )
    assert cell.available is False
    assert cell.assignable is False
    assert "at capacity" in cell.reasoning


def test_cell_reports_existing_assignment() -> None:
    profile = _evaluator()
    proposal = _proposal()
    assignment = Assignment(proposal_id=proposal.id, evaluator_id=profile.id, status="accepted")
    cell = compute_match_cell(
        proposal,
        profile,
        context=_context(active_assignments={(proposal.id, profile.id): assignment}),
    )
    assert cell.assignable is False
    assert cell.assignment_id == assignment.id
    assert cell.assignment_status == "accepted"


def test_cell_is_stale_after_newer_assignment_write() -> None:
    now = utcnow()
    profile = _evaluator(last_assignment_at=now)
    proposal = _proposal()
    stale = compute_match_cell(
        proposal, profile, context=_context(as_of=now - timedelta(seconds=5))
    )
    fresh = compute_match_cell(proposal, profile, context=_context(as_of=now))
    assert stale.stale is True
    assert fresh.stale is False


@pytest.mark.asyncio
async def test_context_only_loads_coauthors_of_batch_authors(session, world) -> None:
    author, reviewer = str(world.author.id), str(world.reviewers[0].id)
    strangers = [str(uuid4()), str(uuid4())]
    session.add(Proposal(call_id=world.call.id, title="Tidal gauges", author_ids=[author, reviewer]))
    session.add(Proposal(call_id=world.call.id, title="Soil carbon", author_ids=strangers))
    await session.commit()

    context = await load_match_context(
        session, proposals=[world.proposal], evaluators=world.reviewers
    )

    assert context.collaborators[author] == {reviewer}
    assert context.collaborators[reviewer] == {author}
    assert not set(strangers) & set(context.collaborators)
    cell = compute_match_cell(world.proposal, world.reviewers[0], context=context)
    assert "prior_collaboration" in cell.conflict_flags
