# ruff: noqa

from __future__ import annotations

from uuid import uuid4

import pytest

from funding_review.core.errors import AuthorizationError
from funding_review.models.assignments import Assignment
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.models.proposals import Proposal
from funding_review.services.policy import (
    ACTIVITY_READ,
    ASSIGNMENT_RESPOND,
    ASSIGNMENT_WRITE,
    CRITERIA_READ,
    DECISION_FINALIZE,
    EVALUATION_WRITE,
    MATRIX_READ,
    OWNER_VIEW_READ,
    authorize,
    role_allows,
)


def _actor(role: str) -> EvaluatorProfile:
    return EvaluatorProfile(name=f"{role} user", role=role)


@pytest.mark.parametrize("role", ["sysadmin", "admin"])
def test_admin_roles_manage_review(role: str) -> None:
    for operation in (MATRIX_READ, ASSIGNMENT_WRITE, DECISION_FINALIZE, ACTIVITY_READ):
        assert role_allows(role, operation)


@pytest.mark.parametrize("role", ["evaluator", "faculty", "finance", "observer"])
def test_non_admin_roles_cannot_assign_or_decide(role: str) -> None:
    actor = _actor(role)
    with pytest.raises(AuthorizationError):
        authorize(actor, ASSIGNMENT_WRITE)
    with pytest.raises(AuthorizationError):
        authorize(actor, DECISION_FINALIZE)
    authorize(actor, CRITERIA_READ)


def test_unknown_role_is_denied() -> None:
    assert role_allows("guest", CRITERIA_READ) is False


def test_respond_requires_own_assignment() -> None:
    actor = _actor("evaluator")
    own = Assignment(proposal_id=uuid4(), evaluator_id=actor.id)
    other = Assignment(proposal_id=uuid4(), evaluator_id=uuid4())

    authorize(actor, ASSIGNMENT_RESPOND, own)
    with pytest.raises(AuthorizationError, match="not assigned"):
        authorize(actor, ASSIGNMENT_RESPOND, other)
    with pytest.raises(AuthorizationError):
        authorize(actor, ASSIGNMENT_RESPOND, None)


def test_evaluation_write_requires_accepted_assignment() -> None:
    actor = _actor("evaluator")
    pending = Assignment(proposal_id=uuid4(), evaluator_id=actor.id, status="pending")
    accepted = Assignment(proposal_id=uuid4(), evaluator_id=actor.id, status="accepted")

    with pytest.raises(AuthorizationError, match="accepted assignment"):
        authorize(actor, EVALUATION_WRITE, pending)
    authorize(actor, EVALUATION_WRITE, accepted)


def test_owner_view_limited_to_authors() -> None:
    author = _actor("faculty")
    stranger = _actor("faculty")
    proposal = Proposal(call_id=uuid4(), title="Soil carbon", author_ids=[str(author.id)])

    authorize(author, OWNER_VIEW_READ, proposal)
    authorize(_actor("admin"), OWNER_VIEW_READ, proposal)
    with pytest.raises(AuthorizationError, match="authors"):
        authorize(stranger, OWNER_VIEW_READ, proposal)
    with pytest.raises(AuthorizationError):
        authorize(_actor("evaluator"), OWNER_VIEW_READ, proposal)
