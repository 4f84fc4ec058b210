# ruff: noqa

from __future__ import annotations

from uuid import uuid4

import pytest

from funding_review.core.errors import ValidationError
from funding_review.models.calls import Criterion
from funding_review.schemas.evaluations import RubricEntryInput
from funding_review.services.scoring import (
    compute_weighted_score,
    merge_rubric,
    missing_scores,
    score_stored_rubric,
    weighted_score_of_pairs,
)


def _criteria(weights: list[float], max_score: float = 5.0) -> list[Criterion]:
    call_id = uuid4()
    return [
        Criterion(
            call_id=call_id,
            name=f"c{index}",
            weight=weight,
            max_score=max_score,
            position=index,
        )
        for index, weight in enumerate(weights)
    ]


def _entries(criteria: list[Criterion], scores: list[float | None]) -> list[RubricEntryInput]:
    return [
        RubricEntryInput(criterion_id=criterion.id, score=score)
        for criterion, score in zip(criteria, scores)
    ]


def test_equal_weights_scenario_scores_seventy() -> None:
    criteria = _criteria([25, 25, 25, 25])
    assert compute_weighted_score(_entries(criteria, [4, 4, 3, 3]), criteria) == 70.0


def test_weights_favour_heavier_criteria() -> None:
    criteria = _criteria([75, 25])
    # (5/5 * 75 + 0/5 * 25) / 100
    assert compute_weighted_score(_entries(criteria, [5, 0]), criteria) == 75.0


def test_zero_weights_fall_back_to_raw_ratio() -> None:
    criteria = _criteria([0, 0, 0])
    assert compute_weighted_score(_entries(criteria, [5, 2, 3]), criteria) == pytest.approx(
        66.67
    )


def test_scores_are_clamped_into_range() -> None:
    criteria = _criteria([50, 50])
    assert compute_weighted_score(_entries(criteria, [9, -3]), criteria) == 50.0


@pytest.mark.parametrize("weights", [[100], [10, 90], [33.3, 33.3, 33.4], [0, 0]])
def test_score_is_bounded(weights: list[float]) -> None:
    criteria = _criteria(weights)
    top = compute_weighted_score(_entries(criteria, [5] * len(weights)), criteria)
    bottom = compute_weighted_score(_entries(criteria, [0] * len(weights)), criteria)
    assert top == 100.0
    assert bottom == 0.0


def test_unscored_and_zero_max_entries_are_skipped() -> None:
    criteria = _criteria([50, 50])
    criteria[1].max_score = 0
    assert compute_weighted_score(_entries(criteria, [4, 5]), criteria) == 80.0
    assert compute_weighted_score(_entries(criteria, [None, None]), criteria) is None


def test_pairs_helper_matches_entry_api() -> None:
    criteria = _criteria([40, 60])
    pairs = list(zip([2.0, 4.0], criteria))
    assert weighted_score_of_pairs(pairs) == compute_weighted_score(
        _entries(criteria, [2, 4]), criteria
    )


def test_merge_rubric_aligns_to_criteria_and_snapshots_weights() -> None:
    criteria = _criteria([60, 40])
    merged = merge_rubric(
        [],
        [
            RubricEntryInput(
                criterion_id=criteria[1].id,
                score=3,
                comments="  solid plan  ",
                strengths=[" clear ", ""],
                weaknesses=["   "],
            )
        ],
        criteria,
    )
    assert [entry["criterion_id"] for entry in merged] == [str(c.id) for c in criteria]
    assert merged[0]["score"] is None
    assert merged[1]["comments"] == "solid plan"
    assert merged[1]["strengths"] == ["clear"]
    assert merged[1]["weaknesses"] == []
    assert merged[1]["weight"] == 40
    assert merged[1]["max_score"] == 5.0
    assert missing_scores(merged) == [criteria[0].id]


def test_merge_rubric_keeps_previous_entries() -> None:
    criteria = _criteria([50, 50])
    first = merge_rubric([], _entries(criteria[:1], [2]), criteria)
    second = merge_rubric(first, _entries(criteria[1:], [4]), criteria)
    assert [entry["score"] for entry in second] == [2, 4]
    assert score_stored_rubric(second) == 60.0


def test_merge_rubric_rejects_unknown_criterion() -> None:
    criteria = _criteria([100])
    with pytest.raises(ValidationError, match="not part of this call"):
        merge_rubric([], [RubricEntryInput(criterion_id=uuid4(), score=1)], criteria)


def test_merge_rubric_rejects_duplicate_entries() -> None:
    criteria = _criteria([100])
    entries = _entries(criteria, [1]) + _entries(criteria, [2])
    with pytest.raises(ValidationError, match="more than one entry"):
        merge_rubric([], entries, criteria)


def test_merge_rubric_rejects_out_of_range_score() -> None:
    criteria = _criteria([100])
    with pytest.raises(ValidationError, match="between 0 and 5"):
        merge_rubric([], _entries(criteria, [6]), criteria)
