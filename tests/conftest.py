# ruff: noqa: INP001
"""Pytest configuration shared across service tests."""

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Deterministic settings for import-time initialization, regardless of shell env.
os.environ["AUTH_MODE"] = "local"
os.environ["LOCAL_AUTH_TOKEN"] = "test-local-token-0123456789-0123456789-0123456789x"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"


from collections.abc import AsyncIterator, Awaitable, Callable  # noqa: E402
from dataclasses import dataclass  # noqa: E402

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from funding_review.db.session import build_engine  # noqa: E402
from funding_review.models.calls import Call, Criterion  # noqa: E402
from funding_review.models.evaluator_profiles import EvaluatorProfile  # noqa: E402
from funding_review.models.proposals import Proposal  # noqa: E402
from funding_review.schemas.criteria import CriterionCreate  # noqa: E402
from funding_review.services.criteria import replace_criteria  # noqa: E402


async def make_engine() -> AsyncEngine:
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@dataclass
class ReviewWorld:
    """A call with a four-criterion rubric, one proposal and three reviewers."""

    admin: EvaluatorProfile
    author: EvaluatorProfile
    reviewers: list[EvaluatorProfile]
    call: Call
    proposal: Proposal
    criteria: list[Criterion]


async def seed_world(
    session: AsyncSession,
    *,
    required: int = 2,
    blind_review: bool = False,
    capacity: int | None = None,
) -> ReviewWorld:
    admin = EvaluatorProfile(name="Avery Admin", role="admin")
    author = EvaluatorProfile(
        name="Fran Faculty",
        role="faculty",
        department="Geography",
        campus="North",
    )
    reviewers = [
        EvaluatorProfile(
            name=f"Reviewer {index}",
            role="evaluator",
            department="Physics",
            campus="South",
            expertise=["climate"],
            max_capacity=capacity,
        )
        for index in range(3)
    ]
    call = Call(title="Seed grants", required_evaluators=required, blind_review=blind_review)
    session.add_all([admin, author, *reviewers, call])
    await session.commit()

    proposal = Proposal(
        call_id=call.id,
        title="Coastal flood modelling",
        project_type="research",
        keywords=["climate"],
        department="Geography",
        author_ids=[str(author.id)],
    )
    session.add(proposal)
    await session.commit()

    criteria = await replace_criteria(
        session,
        actor=admin,
        call_id=call.id,
        criteria=[
            CriterionCreate(name=name, weight=25, max_score=5)
            for name in ("Impact", "Feasibility", "Team", "Budget")
        ],
    )
    return ReviewWorld(
        admin=admin,
        author=author,
        reviewers=reviewers,
        call=call,
        proposal=proposal,
        criteria=criteria,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    db_engine = await make_engine()
    try:
        yield db_engine
    finally:
        await db_engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as db_session:
        yield db_session


@pytest_asyncio.fixture
async def world(session: AsyncSession) -> ReviewWorld:
    return await seed_world(session)


@pytest_asyncio.fixture
async def seed(session: AsyncSession) -> Callable[..., Awaitable[ReviewWorld]]:
    async def _seed(**options: object) -> ReviewWorld:
        return await seed_world(session, **options)  # type: ignore[arg-type]

    return _seed
