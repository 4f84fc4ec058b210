"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error envelope returned for every non-2xx response."""

    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message, or a structured payload with a `message` key.",
        examples=[
            "Evaluator is at capacity",
            {"message": "At least 1 more completed evaluation is required", "missing": 1},
        ],
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable error class.",
        examples=["validation_error", "conflict", "forbidden", "not_found"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
