"""Model-bound query manager exposed as `Model.objects`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import false
from sqlmodel import col

from funding_review.db.queryset import QuerySet, qs

if TYPE_CHECKING:
    from collections.abc import Iterable

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class ModelManager(Generic[ModelT]):
    """Entry points for building querysets against one model."""

    model: type[ModelT]

    def all(self) -> QuerySet[ModelT]:
        return qs(self.model)

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **kwargs: object) -> QuerySet[ModelT]:
        criteria = [getattr(self.model, key) == value for key, value in kwargs.items()]
        return self.filter(*criteria)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        return self.filter(getattr(self.model, "id") == obj_id)

    def by_ids(self, obj_ids: Iterable[object]) -> QuerySet[ModelT]:
        ids = list(obj_ids)
        if not ids:
            return self.filter(false())
        return self.filter(col(getattr(self.model, "id")).in_(ids))


class ManagerDescriptor:
    """Build a fresh `ModelManager` for the class it is accessed on."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
