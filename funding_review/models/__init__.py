"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from funding_review.models.activity import ActivityEntry
from funding_review.models.assignments import Assignment
from funding_review.models.calls import Call, Criterion
from funding_review.models.evaluations import Evaluation
from funding_review.models.evaluator_profiles import EvaluatorProfile
from funding_review.models.proposals import Proposal

__all__ = [
    "ActivityEntry",
    "Assignment",
    "Call",
    "Criterion",
    "Evaluation",
    "EvaluatorProfile",
    "Proposal",
]
