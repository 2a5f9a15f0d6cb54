import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel

from caseprep.errors import (
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    code_for_status,
    register_error_handlers,
    status_code_for,
)


class Payload(BaseModel):
    name: str
    count: int


@pytest.fixture
def error_client():
    app = FastAPI()
    register_error_handlers(app)

    @app.middleware("http")
    async def request_id(request: Request, call_next):
        request.state.request_id = "req-123"
        return await call_next(request)

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Drill not found", {"drill_id": "x"})

    @app.get("/limited")
    async def limited():
        raise RateLimitError(retry_after=120)

    @app.get("/protected")
    async def protected():
        raise AuthenticationError()

    @app.post("/payload")
    async def payload(body: Payload):
        return body

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return TestClient(app, raise_server_exceptions=False)


def test_status_code_mapping():
    assert status_code_for("VALIDATION_ERROR") == 400
    assert status_code_for("RATE_LIMIT_ERROR") == 429
    assert status_code_for("SOMETHING_ELSE") == 500
    assert code_for_status(422) == "VALIDATION_ERROR"
    assert code_for_status(404) == "NOT_FOUND"
    assert code_for_status(503) == "INTERNAL_ERROR"


def test_error_carries_code_and_details():
    error = ValidationError("Bad input", {"field": "email"})
    assert error.status_code == 400
    body = error.to_dict("req-1")
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"] == {"field": "email"}
    assert body["request_id"] == "req-1"


def test_not_found_envelope(error_client):
    response = error_client.get("/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["data"] is None
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["error"]["details"] == {"drill_id": "x"}
    assert body["error"]["request_id"] == "req-123"
    assert response.headers["X-Request-ID"] == "req-123"


def test_rate_limit_sets_retry_after(error_client):
    response = error_client.get("/limited")

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "120"
    assert response.json()["error"]["details"]["retry_after"] == 120


def test_authentication_error_challenges_bearer(error_client):
    response = error_client.get("/protected")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_body_validation_maps_to_400(error_client):
    response = error_client.post("/payload", json={"name": "kelp", "count": "many"})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "count" in error["details"]["fields"]


def test_unknown_route_uses_envelope(error_client):
    response = error_client.get("/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_unhandled_exception_is_internal_error(error_client):
    response = error_client.get("/boom")

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "INTERNAL_ERROR"
    assert error["details"] == {"original_error": "RuntimeError"}


def test_health_reports_optional_services(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {"cache": False, "openai": False, "payments": False}
    assert response.headers["X-Request-ID"]
