"""Caller resolution: shared bearer token plus a directory actor id."""

from __future__ import annotations

from dataclasses import dataclass
from hmac import compare_digest
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from funding_review.core.auth_mode import AuthMode
from funding_review.core.config import settings
from funding_review.core.logging import get_logger
from funding_review.db.session import get_session
from funding_review.models.evaluator_profiles import EvaluatorProfile

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
SESSION_DEP = Depends(get_session)
ACTOR_ID_HEADER = "X-Actor-Id"


@dataclass
class AuthContext:
    """Authenticated caller resolved to a directory profile."""

    actor: EvaluatorProfile

    @property
    def role(self) -> str:
        return self.actor.role


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


def _parse_actor_id(raw: str | None) -> UUID | None:
    if not raw or not raw.strip():
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def _token_is_valid(request: Request) -> bool:
    token = _extract_bearer_token(request.headers.get("Authorization"))
    expected = settings.local_auth_token.strip()
    return token is not None and bool(expected) and compare_digest(token, expected)


async def get_auth_context(
    request: Request,
    session: AsyncSession = SESSION_DEP,
) -> AuthContext:
    """Resolve the caller for the configured auth mode or fail with 401."""
    if settings.auth_mode == AuthMode.LOCAL and not _token_is_valid(request):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    actor_id = _parse_actor_id(request.headers.get(ACTOR_ID_HEADER))
    if actor_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{ACTOR_ID_HEADER} header is required",
        )
    actor = await EvaluatorProfile.objects.by_id(actor_id).first(session)
    if actor is None or not actor.is_active:
        logger.info("auth.actor.unknown actor_id=%s", actor_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return AuthContext(actor=actor)
