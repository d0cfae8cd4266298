"""
Middleware chain tests: order, CORS, recovery and request logging.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from factories import StubStore, make_task
from task_api.auth import AuthGateMiddleware
from task_api.config import Settings
from task_api.main import create_app
from task_api.middleware import (
    OriginAllowListMiddleware,
    RecoveryMiddleware,
    RequestLoggingMiddleware,
    build_middleware,
)


def make_client(cors_origins="", **operations):
    settings = Settings(_env_file=None, database_url="sqlite://", cors_origins=cors_origins)
    store = StubStore(**operations)
    return TestClient(create_app(settings, store)), store


def boom(*args):
    raise RuntimeError("secret internal detail")


# -------------------------------------------------------------------
# Chain order
# -------------------------------------------------------------------

class TestChainOrder:

    def test_default_chain(self):
        chain = build_middleware(Settings(_env_file=None))
        assert [m.cls for m in chain] == [
            RecoveryMiddleware, OriginAllowListMiddleware, RequestLoggingMiddleware,
        ]

    def test_auth_gate_is_innermost(self):
        chain = build_middleware(Settings(_env_file=None, jwt_secret="k", auth_enabled=True))
        assert [m.cls for m in chain] == [
            RecoveryMiddleware, OriginAllowListMiddleware, RequestLoggingMiddleware, AuthGateMiddleware,
        ]

    def test_recovery_wraps_cors(self):
        """A recovered fault is answered outside CORS, so it carries no CORS headers"""
        client, _ = make_client(list_tasks=boom)

        response = client.get("/tasks", headers={"Origin": "http://a.example"})

        assert response.status_code == 500
        assert "access-control-allow-origin" not in response.headers

    def test_preflight_is_not_logged(self, caplog):
        caplog.set_level(logging.INFO, logger="task_api")
        client, _ = make_client()

        client.options("/tasks")

        assert "OPTIONS /tasks" not in caplog.text


# -------------------------------------------------------------------
# CORS
# -------------------------------------------------------------------

class TestCORS:

    @pytest.mark.parametrize("path", ["/tasks", "/tasks/1", "/nowhere"])
    def test_preflight_short_circuits(self, path):
        client, store = make_client()

        response = client.options(path)

        assert response.status_code == 204
        assert response.content == b""
        assert store.calls == []

    def test_preflight_with_allowed_origin(self):
        client, _ = make_client(cors_origins="http://a.example")

        response = client.options(
            "/tasks",
            headers={"Origin": "http://a.example", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "http://a.example"
        assert response.headers["access-control-allow-methods"] == "GET,POST,PUT,DELETE,OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type,Authorization"

    def test_allowed_origin_is_echoed(self):
        client, _ = make_client(
            cors_origins="http://a.example,http://b.example", list_tasks=lambda c: []
        )

        response = client.get("/tasks", headers={"Origin": "http://b.example"})

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://b.example"
        assert response.headers["access-control-allow-credentials"] == "true"
        assert response.headers["access-control-expose-headers"] == "Content-Type"
        assert response.headers["vary"] == "Origin"

    def test_wildcard_allows_any_origin(self):
        client, _ = make_client(list_tasks=lambda c: [])

        response = client.get("/tasks", headers={"Origin": "http://anywhere.example"})

        assert response.headers["access-control-allow-origin"] == "*"

    def test_unlisted_origin_passes_without_headers(self):
        client, _ = make_client(cors_origins="http://a.example", list_tasks=lambda c: [])

        response = client.get("/tasks", headers={"Origin": "http://evil.example"})

        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers

    def test_no_origin_no_headers(self):
        client, _ = make_client(list_tasks=lambda c: [])

        response = client.get("/tasks")

        assert "access-control-allow-origin" not in response.headers


# -------------------------------------------------------------------
# Recovery
# -------------------------------------------------------------------

class TestRecovery:

    @pytest.mark.parametrize("method, path, operation, kwargs", [
        ("get", "/tasks", "list_tasks", {}),
        ("get", "/tasks/1", "get_task", {}),
        ("post", "/tasks", "create_task", {"json": {"title": "x"}}),
        ("put", "/tasks/1", "update_task", {"json": {"title": "x"}}),
        ("delete", "/tasks/1", "delete_task", {}),
    ])
    def test_fault_becomes_500(self, method, path, operation, kwargs):
        client, _ = make_client(**{operation: boom})

        response = getattr(client, method)(path, **kwargs)

        assert response.status_code == 500
        assert response.json() == {"error": "internal error"}

    def test_fault_is_logged_not_leaked(self, caplog):
        client, _ = make_client(list_tasks=boom)

        response = client.get("/tasks")

        assert "secret internal detail" not in response.text
        assert "secret internal detail" in caplog.text
        assert "Unhandled error in GET /tasks" in caplog.text

    def test_service_keeps_serving_after_fault(self):
        calls = iter([boom, lambda c: [make_task()]])
        client, _ = make_client(list_tasks=lambda c: next(calls)(c))

        assert client.get("/tasks").status_code == 500
        assert client.get("/tasks").status_code == 200


# -------------------------------------------------------------------
# Request logging
# -------------------------------------------------------------------

class TestRequestLogging:

    def test_logs_method_path_status(self, caplog):
        caplog.set_level(logging.INFO, logger="task_api")
        client, _ = make_client(list_tasks=lambda c: [])

        client.get("/tasks")

        assert "GET /tasks -> 200 (" in caplog.text

    def test_logs_error_status(self, caplog):
        caplog.set_level(logging.INFO, logger="task_api")
        client, _ = make_client()

        client.get("/tasks/abc")

        assert "GET /tasks/abc -> 400 (" in caplog.text

    def test_response_body_untouched(self):
        client, _ = make_client(list_tasks=lambda c: [make_task(id=3)])

        response = client.get("/tasks")

        assert [t["id"] for t in response.json()] == [3]
