"""Base model class shared by all persisted tables."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from funding_review.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """SQLModel base carrying the `objects` query manager."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
