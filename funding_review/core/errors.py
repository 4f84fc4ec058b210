"""Domain error taxonomy raised by services and mapped to HTTP responses."""

from __future__ import annotations


class ReviewEngineError(Exception):
    """Base class for errors surfaced verbatim to callers."""

    code = "review_engine_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ReviewEngineError):
    """Missing or out-of-range input, or a decision below the submission threshold."""

    code = "validation_error"
    status_code = 422


class ConflictError(ReviewEngineError):
    """The write conflicts with current state; nothing was changed."""

    code = "conflict"
    status_code = 409


class AuthorizationError(ReviewEngineError):
    """The caller's role does not permit the operation."""

    code = "forbidden"
    status_code = 403


class NotFoundError(ReviewEngineError):
    """A referenced proposal, evaluator, assignment, call or criterion is missing."""

    code = "not_found"
    status_code = 404


class StaleDataWarning(UserWarning):
    """Advises recomputing a match cell; surfaced as the cell's `stale` flag."""
