"""Central role/operation authorization policy.

Every service entry point calls `authorize` before reading or writing state.
Role grants come from `ROLE_PERMISSIONS`; a handful of operations also require
the caller to own the target (their own assignment, their own proposal).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from funding_review.core.errors import AuthorizationError
from funding_review.models.assignments import Assignment
from funding_review.models.proposals import Proposal

if TYPE_CHECKING:
    from funding_review.models.evaluator_profiles import EvaluatorProfile

ADMIN_ROLES = frozenset({"sysadmin", "admin"})

MATRIX_READ = "matrix.read"
ASSIGNMENT_WRITE = "assignment.write"
ASSIGNMENT_RESPOND = "assignment.respond"
ASSIGNMENT_READ_OWN = "assignment.read_own"
EVALUATION_WRITE = "evaluation.write"
EVALUATION_READ_OWN = "evaluation.read_own"
SUMMARY_READ = "summary.read"
DECISION_FINALIZE = "decision.finalize"
CRITERIA_WRITE = "criteria.write"
CRITERIA_READ = "criteria.read"
WORKLOAD_READ = "workload.read"
OWNER_VIEW_READ = "owner_view.read"
ACTIVITY_READ = "activity.read"

_REVIEWER_OPERATIONS = {
    ASSIGNMENT_RESPOND,
    ASSIGNMENT_READ_OWN,
    EVALUATION_WRITE,
    EVALUATION_READ_OWN,
}

ROLE_PERMISSIONS: dict[str, set[str]] = {
    "sysadmin": {"*"},
    "admin": {
        MATRIX_READ,
        ASSIGNMENT_WRITE,
        SUMMARY_READ,
        DECISION_FINALIZE,
        CRITERIA_WRITE,
        CRITERIA_READ,
        WORKLOAD_READ,
        OWNER_VIEW_READ,
        ACTIVITY_READ,
        *_REVIEWER_OPERATIONS,
    },
    "evaluator": {CRITERIA_READ, *_REVIEWER_OPERATIONS},
    "faculty": {CRITERIA_READ, OWNER_VIEW_READ, *_REVIEWER_OPERATIONS},
    "finance": {CRITERIA_READ},
    "observer": {CRITERIA_READ},
}


def role_allows(role: str, operation: str) -> bool:
    """Return whether `role` is granted `operation` by the role table."""
    granted = ROLE_PERMISSIONS.get(role, set())
    return "*" in granted or operation in granted


def _require_own_assignment(actor: EvaluatorProfile, target: object, *, accepted: bool) -> None:
    if not isinstance(target, Assignment) or target.evaluator_id != actor.id:
        raise AuthorizationError("You are not assigned to this proposal")
    if accepted and target.status != "accepted":
        raise AuthorizationError("An accepted assignment is required to evaluate this proposal")


def authorize(actor: EvaluatorProfile, operation: str, target: object | None = None) -> None:
    """Raise AuthorizationError unless `actor` may perform `operation` on `target`."""
    if not role_allows(actor.role, operation):
        raise AuthorizationError(f"Role '{actor.role}' may not perform {operation}")

    if operation == ASSIGNMENT_RESPOND:
        _require_own_assignment(actor, target, accepted=False)
    elif operation == EVALUATION_WRITE:
        _require_own_assignment(actor, target, accepted=True)
    elif operation == OWNER_VIEW_READ and actor.role not in ADMIN_ROLES:
        if not isinstance(target, Proposal) or str(actor.id) not in target.author_ids:
            raise AuthorizationError("Only the proposal's authors may view its evaluations")
