"""Criteria registry: versioned rubric definitions per call."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col

from funding_review.core.config import settings
from funding_review.core.errors import NotFoundError, ValidationError
from funding_review.core.logging import get_logger
from funding_review.core.time import utcnow
from funding_review.models.calls import Call, Criterion
from funding_review.services.audit import record_activity
from funding_review.services.policy import CRITERIA_READ, CRITERIA_WRITE, authorize

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from funding_review.models.evaluator_profiles import EvaluatorProfile
    from funding_review.schemas.criteria import CriterionCreate

logger = get_logger(__name__)

CRITERION_CATEGORIES = frozenset(
    {
        "innovation",
        "feasibility",
        "impact",
        "methodology",
        "budget",
        "team",
        "sustainability",
    },
)
TOTAL_WEIGHT = 100.0
WEIGHT_TOLERANCE = 0.5


async def get_call(session: AsyncSession, call_id: UUID) -> Call:
    call = await Call.objects.by_id(call_id).first(session)
    if call is None:
        raise NotFoundError("Call not found", details={"call_id": str(call_id)})
    return call


def required_evaluators_for(call: Call) -> int:
    """Submitted evaluations a call needs before approve/reject."""
    if call.required_evaluators is None:
        return settings.default_required_evaluators
    return call.required_evaluators


def validate_criteria(criteria: list[CriterionCreate]) -> None:
    """Raise ValidationError describing every problem in a rubric definition."""
    problems: list[str] = []
    if not criteria:
        problems.append("At least one criterion is required")
    seen: set[str] = set()
    for index, criterion in enumerate(criteria):
        label = criterion.name.strip() or f"#{index + 1}"
        if not criterion.name.strip():
            problems.append(f"Criterion {label} needs a name")
        elif label.lower() in seen:
            problems.append(f"Criterion '{label}' is defined more than once")
        seen.add(label.lower())
        if criterion.max_score <= 0:
            problems.append(f"Criterion '{label}' must have a max score greater than 0")
        if criterion.weight < 0 or criterion.weight > TOTAL_WEIGHT:
            problems.append(f"Criterion '{label}' weight must be between 0 and 100")
        if criterion.category not in CRITERION_CATEGORIES:
            problems.append(f"Criterion '{label}' has unknown category '{criterion.category}'")
    total = sum(criterion.weight for criterion in criteria)
    if criteria and abs(total - TOTAL_WEIGHT) > WEIGHT_TOLERANCE:
        problems.append(f"Criterion weights must sum to 100 (got {total:g})")
    if problems:
        raise ValidationError("Invalid rubric definition", details={"errors": problems})


async def list_active_criteria(session: AsyncSession, call_id: UUID) -> list[Criterion]:
    """Current rubric version of a call in display order."""
    return await (
        Criterion.objects.filter_by(call_id=call_id, is_active=True)
        .order_by(col(Criterion.position))
        .all(session)
    )


async def list_criteria(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    call_id: UUID,
) -> list[Criterion]:
    authorize(actor, CRITERIA_READ)
    await get_call(session, call_id)
    return await list_active_criteria(session, call_id)


async def replace_criteria(
    session: AsyncSession,
    *,
    actor: EvaluatorProfile,
    call_id: UUID,
    criteria: list[CriterionCreate],
) -> list[Criterion]:
    """Publish a new rubric version; earlier rows stay for historical evaluations."""
    authorize(actor, CRITERIA_WRITE)
    call = await get_call(session, call_id)
    validate_criteria(criteria)

    previous = await Criterion.objects.filter_by(call_id=call.id).all(session)
    version = max((row.version for row in previous), default=0) + 1
    for row in previous:
        if row.is_active:
            row.is_active = False
            session.add(row)

    now = utcnow()
    created: list[Criterion] = []
    for position, entry in enumerate(criteria):
        row = Criterion(
            call_id=call.id,
            name=entry.name.strip(),
            description=entry.description.strip(),
            weight=entry.weight,
            max_score=entry.max_score,
            scale=[level.model_dump() for level in entry.scale],
            category=entry.category,
            position=position,
            version=version,
            is_active=True,
            created_at=now,
        )
        session.add(row)
        created.append(row)
    call.updated_at = now
    session.add(call)
    await session.flush()

    await record_activity(
        session,
        actor_id=actor.id,
        action="criteria.replaced",
        entity_type="call",
        entity_id=call.id,
        details={"version": version, "criteria": [str(row.id) for row in created]},
    )
    await session.commit()
    logger.info("criteria.replaced call_id=%s version=%s count=%s", call.id, version, len(created))
    return created
