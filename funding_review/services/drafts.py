"""Client-side helpers for debounced draft saves and stale-read protection.

`DraftAutosaver` buffers edits and flushes the newest one after a quiescence
window. Each edit replaces the session token, so a pending flush for an older
edit never runs, and `invalidate()` cancels everything once the evaluation is
submitted. `VersionedCache` keeps the latest value seen and ignores reads that
are not strictly newer.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import uuid4

from funding_review.core.config import settings
from funding_review.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

PayloadT = TypeVar("PayloadT")
ValueT = TypeVar("ValueT")

logger = get_logger(__name__)


class DraftAutosaver(Generic[PayloadT]):
    """Debounced, cancelable flush of the latest draft payload."""

    def __init__(
        self,
        flush: Callable[[PayloadT], Awaitable[object]],
        *,
        quiescence_seconds: float | None = None,
    ) -> None:
        self._flush = flush
        self._delay = (
            settings.draft_autosave_quiescence_seconds
            if quiescence_seconds is None
            else quiescence_seconds
        )
        self._token: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def edit(self, payload: PayloadT) -> str:
        """Record an edit and schedule its flush, superseding any earlier one."""
        if self._closed:
            raise RuntimeError("Autosaver is closed; the evaluation was submitted")
        self._cancel_task()
        token = uuid4().hex
        self._token = token
        self._task = asyncio.get_running_loop().create_task(self._run(token, payload))
        return token

    async def _run(self, token: str, payload: PayloadT) -> None:
        await asyncio.sleep(self._delay)
        if self._closed or token != self._token:
            return
        try:
            await self._flush(payload)
        except Exception:
            # Draft saves are retried on the next edit cycle.
            logger.warning("drafts.autosave.flush_failed token=%s", token, exc_info=True)

    async def flush_now(self) -> None:
        """Wait for the pending flush, if any."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def invalidate(self) -> None:
        """Cancel pending work and refuse further edits."""
        self._closed = True
        self._token = None
        self._cancel_task()

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


@dataclass
class _Versioned(Generic[ValueT]):
    revision: int
    value: ValueT


class VersionedCache(Generic[ValueT]):
    """Hold the newest value by revision; older or equal revisions are ignored."""

    def __init__(self) -> None:
        self._current: _Versioned[ValueT] | None = None

    @property
    def revision(self) -> int | None:
        return self._current.revision if self._current is not None else None

    @property
    def value(self) -> ValueT | None:
        return self._current.value if self._current is not None else None

    def offer(self, revision: int, value: ValueT) -> bool:
        """Store `value` if `revision` is strictly newer; return whether it was stored."""
        if self._current is not None and revision <= self._current.revision:
            return False
        self._current = _Versioned(revision=revision, value=value)
        return True
