"""Rubric normalisation and weighted score computation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from funding_review.core.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from funding_review.models.calls import Criterion
    from funding_review.schemas.evaluations import RubricEntryInput


class WeightedCriterion(Protocol):
    weight: float
    max_score: float


def _clamp(value: float, upper: float) -> float:
    return min(max(value, 0.0), upper)


def weighted_score_of_pairs(
    entries: Iterable[tuple[float | None, WeightedCriterion]],
) -> float | None:
    """Weighted 0-100 score over (score, criterion) pairs.

    Each score is clamped into [0, max_score], normalised and multiplied by its
    criterion's weight; the sum is divided by the weights actually present.
    When those weights sum to zero the raw sum / max sum ratio is used instead.
    Unscored entries and criteria with a non-positive max are skipped.
    Returns None when nothing is scorable.
    """
    weighted = 0.0
    weight_total = 0.0
    raw = 0.0
    raw_max = 0.0
    for score, criterion in entries:
        if score is None or criterion.max_score <= 0:
            continue
        clamped = _clamp(float(score), criterion.max_score)
        weighted += clamped / criterion.max_score * criterion.weight
        weight_total += criterion.weight
        raw += clamped
        raw_max += criterion.max_score

    if weight_total > 0:
        return round(weighted / weight_total * 100, 2)
    if raw_max > 0:
        return round(raw / raw_max * 100, 2)
    return None


def compute_weighted_score(
    entries: Iterable[RubricEntryInput],
    criteria: Sequence[Criterion],
) -> float | None:
    """Weighted score of rubric input entries against a call's criteria."""
    by_id = {criterion.id: criterion for criterion in criteria}
    return weighted_score_of_pairs(
        (entry.score, by_id[entry.criterion_id]) for entry in entries if entry.criterion_id in by_id
    )


class _Snapshot:
    __slots__ = ("max_score", "weight")

    def __init__(self, weight: float, max_score: float) -> None:
        self.weight = weight
        self.max_score = max_score


def score_stored_rubric(rubric: Sequence[Mapping[str, object]]) -> float | None:
    """Weighted score of a stored rubric using its snapshotted weights."""
    return weighted_score_of_pairs(
        (
            _as_score(entry.get("score")),
            _Snapshot(
                weight=float(entry.get("weight") or 0),  # type: ignore[arg-type]
                max_score=float(entry.get("max_score") or 0),  # type: ignore[arg-type]
            ),
        )
        for entry in rubric
    )


def _as_score(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


def _clean_list(values: Iterable[str]) -> list[str]:
    return [text for text in (value.strip() for value in values) if text]


def _entry_from_input(entry: RubricEntryInput, criterion: Criterion) -> dict[str, object]:
    if entry.score is not None and not 0 <= entry.score <= criterion.max_score:
        raise ValidationError(
            f"Score for '{criterion.name}' must be between 0 and {criterion.max_score:g}",
            details={"criterion_id": str(criterion.id), "score": entry.score},
        )
    return {
        "criterion_id": str(criterion.id),
        "score": entry.score,
        "comments": entry.comments.strip(),
        "strengths": _clean_list(entry.strengths),
        "weaknesses": _clean_list(entry.weaknesses),
        "weight": criterion.weight,
        "max_score": criterion.max_score,
    }


def _blank_entry(criterion: Criterion) -> dict[str, object]:
    return {
        "criterion_id": str(criterion.id),
        "score": None,
        "comments": "",
        "strengths": [],
        "weaknesses": [],
        "weight": criterion.weight,
        "max_score": criterion.max_score,
    }


def merge_rubric(
    existing: Sequence[Mapping[str, object]],
    updates: Sequence[RubricEntryInput],
    criteria: Sequence[Criterion],
) -> list[dict[str, object]]:
    """Overlay `updates` onto a stored rubric, aligned to `criteria` order.

    Entries for criteria outside the list are rejected; stored entries for
    criteria no longer current are dropped. Every entry snapshots the
    criterion's weight and max score.
    """
    by_id = {criterion.id: criterion for criterion in criteria}
    incoming: dict[UUID, RubricEntryInput] = {}
    for entry in updates:
        if entry.criterion_id not in by_id:
            raise ValidationError(
                "Rubric entry references a criterion that is not part of this call",
                details={"criterion_id": str(entry.criterion_id)},
            )
        if entry.criterion_id in incoming:
            raise ValidationError(
                "Rubric contains more than one entry for a criterion",
                details={"criterion_id": str(entry.criterion_id)},
            )
        incoming[entry.criterion_id] = entry

    stored = {str(entry.get("criterion_id")): entry for entry in existing}
    merged: list[dict[str, object]] = []
    for criterion in criteria:
        update = incoming.get(criterion.id)
        if update is not None:
            merged.append(_entry_from_input(update, criterion))
            continue
        previous = stored.get(str(criterion.id))
        if previous is None:
            merged.append(_blank_entry(criterion))
        else:
            merged.append({**previous, "weight": criterion.weight, "max_score": criterion.max_score})
    return merged


def missing_scores(rubric: Sequence[Mapping[str, object]]) -> list[UUID]:
    return [UUID(str(entry["criterion_id"])) for entry in rubric if entry.get("score") is None]
