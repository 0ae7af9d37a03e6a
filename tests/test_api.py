from __future__ import annotations

from datetime import datetime, timezone

import pytest
from flask import Flask
from flask.testing import FlaskClient

from pastebin_lite import create_app
from pastebin_lite.clock import to_epoch_millis
from pastebin_lite.config import TestingConfig
from pastebin_lite.domain.errors import InvalidPasteParameters, PasteStorageError
from pastebin_lite.repositories.memory import InMemoryPasteStore
from pastebin_lite.services.paste_service import PasteService


T0 = datetime(2021, 1, 1, tzinfo=timezone.utc)
T0_MS = to_epoch_millis(T0)


class _BrokenStore(InMemoryPasteStore):
    def create(self, **kwargs):
        raise RuntimeError("unexpected failure")

    def consume_view(self, paste_id, now):
        raise RuntimeError("unexpected failure")


class _UnreachableStore(InMemoryPasteStore):
    def ping(self) -> None:
        raise PasteStorageError("Database is unreachable.")

    def consume_view(self, paste_id, now):
        raise PasteStorageError("Database is unreachable.")


@pytest.fixture
def app() -> Flask:
    app = create_app("testing")
    app.config.update(TEST_MODE=True)
    return app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


def _at(ms: int) -> dict[str, str]:
    return {"X-Test-Now-Ms": str(ms)}


def _create(client: FlaskClient, body: dict, headers: dict | None = None) -> str:
    response = client.post("/api/pastes", json=body, headers=headers or {})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["id"]


# ---------------------------------------------------------------------------
# Health endpoints.
# ---------------------------------------------------------------------------


def test_health(client: FlaskClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_healthz_checks_the_database(client: FlaskClient) -> None:
    response = client.get("/api/healthz")
    assert response.status_code == 200
    assert response.get_json() == {"ok": True}


def test_healthz_reports_unreachable_store() -> None:
    client = create_app("testing", store=_UnreachableStore()).test_client()

    response = client.get("/api/healthz")
    assert response.status_code == 503
    assert response.get_json() == {"ok": False}


# ---------------------------------------------------------------------------
# Creating pastes.
# ---------------------------------------------------------------------------


def test_create_returns_id_and_url(client: FlaskClient) -> None:
    response = client.post("/api/pastes", json={"content": "Hello, world!"})

    assert response.status_code == 201
    data = response.get_json()
    assert set(data) == {"id", "url"}
    assert data["url"] == f"http://localhost/p/{data['id']}"


def test_create_url_ignores_forwarded_headers_by_default(client: FlaskClient) -> None:
    response = client.post(
        "/api/pastes",
        json={"content": "no proxy configured"},
        headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "evil.example.com"},
    )

    data = response.get_json()
    assert data["url"] == f"http://localhost/p/{data['id']}"


def test_create_url_honors_forwarded_headers_when_trusted(monkeypatch) -> None:
    monkeypatch.setattr(TestingConfig, "TRUST_PROXY_HEADERS", True)
    client = create_app("testing").test_client()

    response = client.post(
        "/api/pastes",
        json={"content": "behind a proxy"},
        headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "paste.example.com"},
    )

    data = response.get_json()
    assert data["url"] == f"https://paste.example.com/p/{data['id']}"


def test_create_rejects_malformed_json(client: FlaskClient) -> None:
    response = client.post(
        "/api/pastes",
        data="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON body"}


@pytest.mark.parametrize(
    "body, field, message",
    [
        ({}, "content", "content is required"),
        ({"content": None}, "content", "content is required"),
        ({"content": ""}, "content", "content cannot be empty"),
        ({"content": 42}, "content", "content must be a string"),
        ({"content": "x", "ttl_seconds": 0}, "ttl_seconds", "ttl_seconds must be an integer >= 1"),
        ({"content": "x", "ttl_seconds": 1.5}, "ttl_seconds", "ttl_seconds must be an integer >= 1"),
        ({"content": "x", "max_views": "3"}, "max_views", "max_views must be an integer >= 1"),
        ({"content": "x", "max_views": True}, "max_views", "max_views must be an integer >= 1"),
        ({"content": "x", "max_views": -1}, "max_views", "max_views must be an integer >= 1"),
        (["content"], "body", "Request body must be an object"),
    ],
)
def test_create_validation_errors(client: FlaskClient, body, field: str, message: str) -> None:
    response = client.post("/api/pastes", json=body)

    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "Validation failed"
    assert {"field": field, "message": message} in data["details"]


def test_create_reports_every_invalid_field(client: FlaskClient) -> None:
    response = client.post("/api/pastes", json={"content": "", "ttl_seconds": 0, "max_views": 0})

    fields = [detail["field"] for detail in response.get_json()["details"]]
    assert sorted(fields) == ["content", "max_views", "ttl_seconds"]


def test_create_treats_null_limits_as_absent(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "nulls", "ttl_seconds": None, "max_views": None})

    data = client.get(f"/api/pastes/{paste_id}").get_json()
    assert data == {"content": "nulls", "remaining_views": None, "expires_at": None}


# ---------------------------------------------------------------------------
# Fetching pastes.
# ---------------------------------------------------------------------------


def test_ttl_expiry_with_time_override(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "Hello", "ttl_seconds": 60}, headers=_at(T0_MS))

    response = client.get(f"/api/pastes/{paste_id}", headers=_at(T0_MS + 30_000))
    assert response.status_code == 200
    assert response.get_json() == {
        "content": "Hello",
        "remaining_views": None,
        "expires_at": "2021-01-01T00:01:00.000Z",
    }

    response = client.get(f"/api/pastes/{paste_id}", headers=_at(T0_MS + 60_000))
    assert response.status_code == 404
    assert response.get_json() == {"error": "Paste not found"}


def test_time_override_is_ignored_outside_test_mode(app: Flask, client: FlaskClient) -> None:
    app.config.update(TEST_MODE=False)

    # Honoring the header would date this paste to 1970 and expire it at once.
    paste_id = _create(client, {"content": "real time", "ttl_seconds": 60}, headers=_at(0))

    response = client.get(f"/api/pastes/{paste_id}", headers=_at(0))
    assert response.status_code == 200


def test_malformed_time_override_is_rejected(client: FlaskClient) -> None:
    response = client.get("/api/pastes/whatever", headers={"X-Test-Now-Ms": "soon"})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid X-Test-Now-Ms header"}


def test_time_override_without_room_for_a_ttl_is_rejected(client: FlaskClient) -> None:
    # 9999-12-31T23:59:59Z: any TTL would overflow the datetime range.
    response = client.post(
        "/api/pastes",
        json={"content": "x", "ttl_seconds": 60},
        headers=_at(253402300799000),
    )

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid X-Test-Now-Ms header"}


def test_service_parameter_errors_are_bad_requests(client: FlaskClient, monkeypatch) -> None:
    def reject(self, **kwargs):
        raise InvalidPasteParameters("ttl_seconds is out of range.")

    monkeypatch.setattr(PasteService, "create_paste", reject)

    response = client.post("/api/pastes", json={"content": "x", "ttl_seconds": 60})
    assert response.status_code == 400
    assert response.get_json() == {"error": "ttl_seconds is out of range."}


def test_view_limit_is_enforced(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "X", "max_views": 2})

    first = client.get(f"/api/pastes/{paste_id}").get_json()
    second = client.get(f"/api/pastes/{paste_id}").get_json()
    assert [first["remaining_views"], second["remaining_views"]] == [1, 0]

    assert client.get(f"/api/pastes/{paste_id}").status_code == 404


def test_unknown_paste_is_not_found(client: FlaskClient) -> None:
    response = client.get("/api/pastes/never-created")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Paste not found"}


def test_storage_failure_is_an_internal_error() -> None:
    client = create_app("testing", store=_UnreachableStore()).test_client()

    response = client.get("/api/pastes/anything")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_correlation_id_is_propagated(client: FlaskClient) -> None:
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"

    generated = client.get("/health").headers["X-Correlation-ID"]
    assert generated


# ---------------------------------------------------------------------------
# HTML pages.
# ---------------------------------------------------------------------------


def test_paste_page_renders_escaped_content(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "<script>alert(1)</script>"})

    response = client.get(f"/p/{paste_id}")
    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "<script>alert(1)" not in html


def test_paste_page_consumes_a_view(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "once", "max_views": 1})

    assert client.get(f"/p/{paste_id}").status_code == 200
    assert client.get(f"/api/pastes/{paste_id}").status_code == 404
    assert client.get(f"/p/{paste_id}").status_code == 404


def test_paste_page_not_found(client: FlaskClient) -> None:
    response = client.get("/p/never-created")

    assert response.status_code == 404
    assert "Paste not found" in response.get_data(as_text=True)


def test_paste_page_storage_failure() -> None:
    client = create_app("testing", store=_UnreachableStore()).test_client()

    response = client.get("/p/anything")
    assert response.status_code == 500
    assert "Something went wrong" in response.get_data(as_text=True)


def test_paste_page_unexpected_error_renders_error_page() -> None:
    client = create_app("testing", store=_BrokenStore()).test_client()

    response = client.get("/p/anything")
    assert response.status_code == 500
    assert "Something went wrong" in response.get_data(as_text=True)


def test_form_unexpected_error_renders_error_page() -> None:
    client = create_app("testing", store=_BrokenStore()).test_client()

    response = client.post("/", data={"content": "x"})
    assert response.status_code == 500
    assert "Something went wrong" in response.get_data(as_text=True)


def test_form_page(client: FlaskClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert 'name="content"' in html
    assert 'name="ttl_seconds"' in html
    assert 'name="max_views"' in html


def test_form_creates_paste(client: FlaskClient) -> None:
    response = client.post("/", data={"content": "from the form", "ttl_seconds": "", "max_views": "2"})

    assert response.status_code == 201
    html = response.get_data(as_text=True)
    assert "Paste created successfully!" in html
    assert "http://localhost/p/" in html


def test_form_reports_validation_errors(client: FlaskClient) -> None:
    response = client.post("/", data={"content": "x", "ttl_seconds": "abc", "max_views": "0"})

    assert response.status_code == 400
    html = response.get_data(as_text=True)
    assert "ttl_seconds must be an integer &gt;= 1" in html
    assert "max_views must be an integer &gt;= 1" in html
