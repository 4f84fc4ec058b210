# ruff: noqa: INP001
"""HTTP-level tests for the review engine routes with local bearer auth."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import APIRouter, FastAPI
from fastapi_pagination import add_pagination
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from funding_review.api.activity import router as activity_router
from funding_review.api.assignments import router as assignments_router
from funding_review.api.criteria import router as criteria_router
from funding_review.api.decisions import router as decisions_router
from funding_review.api.evaluations import router as evaluations_router
from funding_review.api.evaluators import router as evaluators_router
from funding_review.api.matrix import router as matrix_router
from funding_review.core import auth as auth_module
from funding_review.core.auth import ACTOR_ID_HEADER
from funding_review.core.auth_mode import AuthMode
from funding_review.core.config import settings
from funding_review.core.error_handling import install_error_handling
from funding_review.db.session import get_session

TOKEN = "integration-token-0123456789-0123456789-0123456789"


def _build_test_app(session_maker: async_sessionmaker[AsyncSession]) -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    api_v1 = APIRouter(prefix="/api/v1")
    for router in (
        matrix_router,
        assignments_router,
        evaluations_router,
        decisions_router,
        criteria_router,
        evaluators_router,
        activity_router,
    ):
        api_v1.include_router(router)
    app.include_router(api_v1)
    add_pagination(app)

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[auth_module.get_session] = _override_get_session
    return app


@pytest.fixture
def local_auth(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "auth_mode", AuthMode.LOCAL)
    monkeypatch.setattr(settings, "local_auth_token", TOKEN)


def _headers(actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {TOKEN}", ACTOR_ID_HEADER: str(actor.id)}


def _client(engine: AsyncEngine) -> AsyncClient:
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return AsyncClient(
        transport=ASGITransport(app=_build_test_app(session_maker)),
        base_url="http://testserver",
    )


@pytest.mark.asyncio
async def test_requests_need_token_and_known_actor(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        missing = await client.get("/api/v1/matrix")
        assert missing.status_code == 401

        wrong = await client.get(
            "/api/v1/matrix",
            headers={"Authorization": "Bearer wrong", ACTOR_ID_HEADER: str(world.admin.id)},
        )
        assert wrong.status_code == 401

        no_actor = await client.get(
            "/api/v1/matrix",
            headers={"Authorization": f"Bearer {TOKEN}"},
        )
        assert no_actor.status_code == 401
        assert no_actor.json()["detail"] == "X-Actor-Id header is required"

        unknown = await client.get(
            "/api/v1/matrix",
            headers={"Authorization": f"Bearer {TOKEN}", ACTOR_ID_HEADER: "not-a-uuid"},
        )
        assert unknown.status_code == 401

        ok = await client.get("/api/v1/matrix", headers=_headers(world.admin))
        assert ok.status_code == 200
        assert ok.json()["summary"]["total_proposals"] == 1


@pytest.mark.asyncio
async def test_role_policy_is_enforced(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        resp = await client.get("/api/v1/matrix", headers=_headers(world.reviewers[0]))
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_unconfirmed_decision_by_non_admin_is_forbidden(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        resp = await client.post(
            f"/api/v1/proposals/{world.proposal.id}/decision",
            headers=_headers(world.reviewers[0]),
            json={"decision": "approved"},
        )
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_assignment_review_and_decision_over_http(engine, seed, local_auth) -> None:
    world = await seed(required=1)
    reviewer = world.reviewers[0]
    proposal_url = f"/api/v1/proposals/{world.proposal.id}"

    async with _client(engine) as client:
        created = await client.post(
            f"{proposal_url}/assignments",
            json={"evaluator_id": str(reviewer.id)},
            headers=_headers(world.admin),
        )
        assert created.status_code == 201
        assignment_id = created.json()["id"]

        duplicate = await client.post(
            f"{proposal_url}/assignments",
            json={"evaluator_id": str(reviewer.id)},
            headers=_headers(world.admin),
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["message"] == "Evaluator is already assigned to this proposal"

        accepted = await client.post(
            f"/api/v1/assignments/{assignment_id}/respond",
            json={"decision": "accept"},
            headers=_headers(reviewer),
        )
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "accepted"

        mine = await client.get("/api/v1/assignments/me", headers=_headers(reviewer))
        assert [row["lane"] for row in mine.json()] == ["in_progress"]

        submitted = await client.post(
            f"{proposal_url}/evaluation/submit",
            json={
                "rubric": [
                    {"criterion_id": str(criterion.id), "score": score}
                    for criterion, score in zip(world.criteria, [4, 4, 3, 3])
                ],
                "recommendation": "approve",
            },
            headers=_headers(reviewer),
        )
        assert submitted.status_code == 200
        assert submitted.json()["overall_score"] == 70.0

        summary = await client.get(
            f"{proposal_url}/evaluation-summary", headers=_headers(world.admin)
        )
        assert summary.json()["threshold_met"] is True

        unconfirmed = await client.post(
            f"{proposal_url}/decision",
            json={"decision": "approved"},
            headers=_headers(world.admin),
        )
        assert unconfirmed.status_code == 422
        assert unconfirmed.json()["detail"] == "Decision must be explicitly confirmed"

        decided = await client.post(
            f"{proposal_url}/decision",
            json={"decision": "approved", "confirm": True},
            headers=_headers(world.admin),
        )
        assert decided.status_code == 200
        assert decided.json()["status"] == "approved"

        activity = await client.get(
            "/api/v1/activity",
            params={"entity_id": str(world.proposal.id)},
            headers=_headers(world.admin),
        )
        assert activity.status_code == 200
        assert [item["action"] for item in activity.json()["items"]] == [
            "proposal.decision_finalized",
        ]


@pytest.mark.asyncio
async def test_decision_below_threshold_over_http(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        resp = await client.post(
            f"/api/v1/proposals/{world.proposal.id}/decision",
            json={"decision": "rejected", "confirm": True},
            headers=_headers(world.admin),
        )
    assert resp.status_code == 422
    assert resp.json()["detail"]["missing"] == 2


@pytest.mark.asyncio
async def test_criteria_routes(engine, world, local_auth) -> None:
    url = f"/api/v1/calls/{world.call.id}/criteria"
    async with _client(engine) as client:
        listed = await client.get(url, headers=_headers(world.reviewers[0]))
        assert [row["name"] for row in listed.json()] == ["Impact", "Feasibility", "Team", "Budget"]

        forbidden = await client.post(
            url,
            json={"criteria": [{"name": "Impact", "weight": 100, "max_score": 5}]},
            headers=_headers(world.reviewers[0]),
        )
        assert forbidden.status_code == 403

        invalid = await client.post(
            url,
            json={"criteria": [{"name": "Impact", "weight": 40, "max_score": 5}]},
            headers=_headers(world.admin),
        )
        assert invalid.status_code == 422
        assert invalid.json()["detail"]["errors"]

        replaced = await client.post(
            url,
            json={"criteria": [{"name": "Impact", "weight": 100, "max_score": 10}]},
            headers=_headers(world.admin),
        )
        assert replaced.status_code == 200
        assert [row["version"] for row in replaced.json()] == [2]


@pytest.mark.asyncio
async def test_matrix_rejects_unknown_coverage_filter(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        resp = await client.get(
            "/api/v1/matrix",
            params={"assignment_status": "bogus"},
            headers=_headers(world.admin),
        )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unknown_proposal_is_404(engine, world, local_auth) -> None:
    async with _client(engine) as client:
        resp = await client.get(
            f"/api/v1/proposals/{world.call.id}/evaluation-summary",
            headers=_headers(world.admin),
        )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"
