# ruff: noqa

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel
from starlette.requests import Request

from funding_review.core import error_handling
from funding_review.core.config import settings
from funding_review.core.errors import ConflictError, NotFoundError, ValidationError
from funding_review.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _http_exception_exception_handler,
    _request_validation_exception_handler,
    _review_engine_exception_handler,
    install_error_handling,
)


def _app() -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    return app


def test_request_validation_error_includes_request_id():
    app = _app()

    @app.get("/needs-int")
    def needs_int(limit: int) -> dict[str, int]:
        return {"limit": limit}

    resp = TestClient(app).get("/needs-int?limit=abc")

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body.get("detail"), list)
    assert isinstance(body.get("request_id"), str) and body["request_id"]
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_request_validation_error_handles_bytes_input_without_500():
    class Payload(BaseModel):
        content: str

    app = _app()

    @app.put("/needs-object")
    def needs_object(payload: Payload) -> dict[str, str]:
        return {"content": payload.content}

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.put(
        "/needs-object",
        content=b"plain-text-body",
        headers={"content-type": "text/plain"},
    )

    assert resp.status_code == 422
    assert isinstance(resp.json().get("detail"), list)


def test_domain_errors_map_to_status_and_code():
    app = _app()

    @app.get("/conflict")
    def conflict() -> None:
        raise ConflictError("Evaluator is already assigned to this proposal")

    @app.get("/missing")
    def missing() -> None:
        raise NotFoundError("Proposal not found")

    client = TestClient(app)
    resp = client.get("/conflict")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Evaluator is already assigned to this proposal"
    assert resp.json()["code"] == "conflict"

    resp = client.get("/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_domain_error_details_are_merged_into_detail():
    app = _app()

    @app.get("/threshold")
    def threshold() -> None:
        raise ValidationError(
            "At least 3 completed evaluations are required before this decision; 2 more needed",
            details={"required": 3, "submitted": 1, "missing": 2},
        )

    resp = TestClient(app).get("/threshold")

    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["message"].endswith("2 more needed")
    assert (detail["required"], detail["submitted"], detail["missing"]) == (3, 1, 2)


def test_http_exception_includes_request_id():
    app = _app()

    @app.get("/nope")
    def nope() -> None:
        raise HTTPException(status_code=404, detail="nope")

    resp = TestClient(app).get("/nope")

    assert resp.status_code == 404
    body = resp.json()
    assert body["detail"] == "nope"
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_incoming_request_id_is_echoed():
    app = _app()

    @app.get("/ok")
    def ok() -> dict[str, bool]:
        return {"ok": True}

    resp = TestClient(app).get("/ok", headers={REQUEST_ID_HEADER: "req-123"})
    assert resp.headers[REQUEST_ID_HEADER] == "req-123"


def test_unhandled_error_returns_500_with_request_id():
    app = _app()

    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("boom")

    resp = TestClient(app, raise_server_exceptions=False).get("/boom")
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"


def test_slow_requests_are_logged(monkeypatch, caplog):
    monkeypatch.setattr(settings, "request_log_slow_ms", 0)
    app = _app()

    @app.get("/ok")
    def ok() -> dict[str, bool]:
        return {"ok": True}

    with caplog.at_level("INFO", logger=error_handling.__name__):
        TestClient(app).get("/ok")
    messages = [record.getMessage() for record in caplog.records]
    assert "http.request.completed" in messages
    # A zero threshold disables slow-request logging.
    assert "http.request.slow" not in messages

    monkeypatch.setattr(settings, "request_log_slow_ms", 1)
    monkeypatch.setattr(error_handling, "perf_counter", iter([0.0, 5.0]).__next__)
    caplog.clear()
    with caplog.at_level("INFO", logger=error_handling.__name__):
        TestClient(app).get("/ok")
    slow = [record for record in caplog.records if record.getMessage() == "http.request.slow"]
    assert len(slow) == 1
    assert slow[0].slow_threshold_ms == 1


def test_error_payload_omits_missing_fields():
    assert _error_payload(detail="x", request_id=None) == {"detail": "x"}
    assert _error_payload(detail="x", request_id="r", code="conflict") == {
        "detail": "x",
        "code": "conflict",
        "request_id": "r",
    }


def test_get_request_id_ignores_blank_values():
    class _State:
        request_id = ""

    class _Req:
        state = _State()

    assert _get_request_id(_Req()) is None  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_handlers_reject_wrong_exception_types():
    request = Request({"type": "http", "headers": [], "state": {}})
    for handler, expected in (
        (_review_engine_exception_handler, "ReviewEngineError"),
        (_request_validation_exception_handler, "RequestValidationError"),
        (_http_exception_exception_handler, "StarletteHTTPException"),
    ):
        with pytest.raises(TypeError, match=expected):
            await handler(request, Exception("x"))
