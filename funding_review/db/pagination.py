"""Limit/offset pagination for SQLModel select statements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi_pagination.ext.sqlmodel import paginate as _paginate

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar


async def paginate(session: AsyncSession, statement: SelectOfScalar[Any]) -> Any:
    """Run `statement` with the request's limit/offset params."""
    return await _paginate(session, statement)
