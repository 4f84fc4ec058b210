"""FastAPI application entrypoint and router wiring."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination

from funding_review.api.activity import router as activity_router
from funding_review.api.assignments import router as assignments_router
from funding_review.api.criteria import router as criteria_router
from funding_review.api.decisions import router as decisions_router
from funding_review.api.evaluations import router as evaluations_router
from funding_review.api.evaluators import router as evaluators_router
from funding_review.api.matrix import router as matrix_router
from funding_review.core.config import settings
from funding_review.core.error_handling import install_error_handling
from funding_review.core.logging import configure_logging, get_logger
from funding_review.db.session import init_db
from funding_review.schemas.errors import ErrorResponse
from funding_review.schemas.health import HealthStatusResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

configure_logging()
logger = get_logger(__name__)
OPENAPI_TAGS = [
    {"name": "health", "description": "Service liveness/readiness probes."},
    {"name": "matrix", "description": "Proposals × evaluators match matrix."},
    {"name": "assignments", "description": "Evaluator assignment lifecycle."},
    {"name": "evaluations", "description": "Rubric drafts, submissions and author views."},
    {"name": "decisions", "description": "Evaluation summaries and funding decisions."},
    {"name": "calls", "description": "Rubric criteria and call-level assignment coverage."},
    {"name": "evaluators", "description": "Evaluator workload distribution."},
    {"name": "activity", "description": "Append-only audit trail of review writes."},
]
ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ErrorResponse}
    for code in (
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
        status.HTTP_404_NOT_FOUND,
        status.HTTP_409_CONFLICT,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize application resources before serving requests."""
    logger.info(
        "app.lifecycle.starting environment=%s db_auto_migrate=%s",
        settings.environment,
        settings.db_auto_migrate,
    )
    await init_db()
    logger.info("app.lifecycle.started")
    try:
        yield
    finally:
        logger.info("app.lifecycle.stopped")


app = FastAPI(
    title="Funding Review API",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )
    logger.info("app.cors.enabled origins_count=%s", len(origins))
else:
    logger.info("app.cors.disabled")

install_error_handling(app)


@app.get("/health", tags=["health"], response_model=HealthStatusResponse)
def health() -> HealthStatusResponse:
    """Lightweight liveness probe endpoint."""
    return HealthStatusResponse(ok=True)


@app.get("/healthz", tags=["health"], response_model=HealthStatusResponse)
def healthz() -> HealthStatusResponse:
    """Alias liveness probe endpoint for platform compatibility."""
    return HealthStatusResponse(ok=True)


@app.get("/readyz", tags=["health"], response_model=HealthStatusResponse)
def readyz() -> HealthStatusResponse:
    """Readiness probe endpoint for service orchestration checks."""
    return HealthStatusResponse(ok=True)


api_v1 = APIRouter(prefix="/api/v1", responses=ERROR_RESPONSES)
api_v1.include_router(matrix_router)
api_v1.include_router(assignments_router)
api_v1.include_router(evaluations_router)
api_v1.include_router(decisions_router)
api_v1.include_router(criteria_router)
api_v1.include_router(evaluators_router)
api_v1.include_router(activity_router)
app.include_router(api_v1)

add_pagination(app)
logger.debug("app.routes.registered count=%s", len(app.routes))
