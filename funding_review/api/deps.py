"""Shared FastAPI dependencies for route handlers."""

from __future__ import annotations

from fastapi import Depends

from funding_review.core.auth import AuthContext, get_auth_context
from funding_review.db.session import get_session
from funding_review.models.evaluator_profiles import EvaluatorProfile

AUTH_DEP = Depends(get_auth_context)
SESSION_DEP = Depends(get_session)


def get_actor(auth: AuthContext = AUTH_DEP) -> EvaluatorProfile:
    """Directory profile of the authenticated caller."""
    return auth.actor


ACTOR_DEP = Depends(get_actor)
