"""Tests for entry endpoints."""

from typing import Any

import pytest  # type: ignore[import-not-found]
from fastapi import FastAPI  # type: ignore[import-untyped]
from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from timeboard.core.errors import UpstreamError
from timeboard.core.storage import StorageManager


def add_manual(client: TestClient, headers: dict[str, str], **body: Any) -> Any:
    payload = {
        "member": "Ana",
        "start_at": "2024-01-01T08:00:00Z",
        "duration_minutes": 45,
        "description": "Standup",
        "project": "Ops",
        "tz_offset": 0,
    }
    payload.update(body)
    return client.post("/api/v1/entries/manual", json=payload, headers=headers)


def update_body(entry_id: int, **overrides: Any) -> dict[str, Any]:
    body = {
        "member": "Ana",
        "entry_id": entry_id,
        "start_at": "2024-01-01T09:00:00Z",
        "stop_at": "2024-01-01T09:30:00Z",
        "tz_offset": 0,
    }
    body.update(overrides)
    return body


class TestManualEntries:
    """Test POST /entries/manual."""

    def test_create_manual_entry(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = add_manual(client, auth_headers)

        assert response.status_code == 201
        entry = response.json()["entry"]
        assert entry["member"] == "Ana"
        assert entry["duration_seconds"] == 2700
        assert entry["start_at"] == "2024-01-01T08:00:00+00:00"
        assert entry["stop_at"] == "2024-01-01T08:45:00+00:00"
        assert entry["source_date"] == "2024-01-01"
        assert entry["project_name"] == "Ops"
        assert entry["is_running"] is False

    def test_manual_entry_is_bucketed_by_local_day(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        """Test a late-evening start west of UTC files under the previous day."""
        response = add_manual(client, auth_headers, start_at="2024-01-02T03:00:00Z", tz_offset=300)
        assert response.json()["entry"]["source_date"] == "2024-01-01"

    def test_missing_start(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = add_manual(client, auth_headers, start_at=None)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing start_at", "error_code": "VALIDATION_ERROR"}

    def test_non_positive_duration(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = add_manual(client, auth_headers, duration_minutes=0)

        assert response.status_code == 400
        assert response.json()["error"] == "duration must be > 0"


class TestUpdateEntry:
    """Test POST /entries/update."""

    def test_update_range(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]

        response = client.post(
            "/api/v1/entries/update",
            json=update_body(entry_id, description="Planning"),
            headers=auth_headers,
        )

        assert response.status_code == 200
        entry = response.json()["entry"]
        assert entry["duration_seconds"] == 1800
        assert entry["description"] == "Planning"
        assert entry["project_name"] == "Ops"

    def test_replay_returns_identical_bytes(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        app_storage: StorageManager,
    ) -> None:
        """Test a retried update with the same key writes once and replays the response."""
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]
        headers = {**auth_headers, "X-Idempotency-Key": "drag-1"}

        first = client.post("/api/v1/entries/update", json=update_body(entry_id), headers=headers)
        retry = client.post(
            "/api/v1/entries/update",
            json=update_body(entry_id, stop_at="2024-01-01T10:00:00Z"),
            headers=headers,
        )

        assert first.status_code == 200
        assert retry.status_code == 200
        assert retry.content == first.content
        assert retry.headers["X-Idempotent-Replay"] == "true"
        stored = app_storage.get_entry(entry_id)
        assert stored is not None
        assert stored.duration_seconds == 1800

    def test_replay_leaves_newer_edit_in_flight(
        self, client: TestClient, test_app: FastAPI, auth_headers: dict[str, str]
    ) -> None:
        """Test a late retry of a finished update does not cancel a newer edit."""
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]
        headers = {**auth_headers, "X-Idempotency-Key": "drag-3"}
        client.post("/api/v1/entries/update", json=update_body(entry_id), headers=headers)

        newer = test_app.state.write_registry.begin(("entry", "ana", entry_id))
        retry = client.post("/api/v1/entries/update", json=update_body(entry_id), headers=headers)

        assert retry.headers["X-Idempotent-Replay"] == "true"
        assert newer.cancelled is False
        assert test_app.state.write_registry.current(("entry", "ana", entry_id)) is newer

    def test_replayed_failure(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        """Test failures are cached too and replayed with their status."""
        headers = {**auth_headers, "X-Idempotency-Key": "drag-2"}

        first = client.post("/api/v1/entries/update", json=update_body(99), headers=headers)
        add_manual(client, auth_headers)
        retry = client.post("/api/v1/entries/update", json=update_body(1), headers=headers)

        assert first.status_code == 404
        assert retry.status_code == 404
        assert retry.content == first.content

    def test_stop_before_start(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]

        response = client.post(
            "/api/v1/entries/update",
            json=update_body(entry_id, stop_at="2024-01-01T08:59:00Z"),
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "stop must be after start"

    def test_invalid_instant(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]

        response = client.post(
            "/api/v1/entries/update",
            json=update_body(entry_id, start_at="yesterday-ish"),
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid start_at")

    def test_other_members_entry_is_forbidden(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]

        response = client.post(
            "/api/v1/entries/update",
            json=update_body(entry_id, member="Rehman"),
            headers=auth_headers,
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"


class TestDeleteEntry:
    """Test DELETE /entries/{id}."""

    def test_delete(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        entry_id = add_manual(client, auth_headers).json()["entry"]["id"]

        response = client.delete(f"/api/v1/entries/{entry_id}?member=Ana", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "deleted": entry_id, "was_running": False}

        again = client.delete(f"/api/v1/entries/{entry_id}?member=Ana", headers=auth_headers)
        assert again.status_code == 404

    def test_delete_running_entry(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        started = client.post(
            "/api/v1/timer/start", json={"member": "Rehman"}, headers=auth_headers
        ).json()
        entry_id = started["current"]["id"]

        response = client.delete(f"/api/v1/entries/{entry_id}?member=Rehman", headers=auth_headers)

        assert response.json()["was_running"] is True
        current = client.get("/api/v1/timer/current?member=Rehman", headers=auth_headers).json()
        assert current["current"] is None


class TestDayEntries:
    """Test GET /entries/day and /entries/week-total."""

    def test_day_view(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        add_manual(client, auth_headers)

        response = client.get(
            "/api/v1/entries/day?member=ana&date=2024-01-01&tz_offset=0", headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["member"] == "Ana"
        assert data["stale"] is False
        assert data["total_seconds"] == 2700
        assert data["current"] is None
        assert len(data["entries"]) == 1
        block = data["timeline"][0]
        assert block["time_range"] == "08:00 → 08:45"
        assert block["title"] == "Standup"
        assert block["project"] == "Ops"

    def test_day_view_other_day_is_empty(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        add_manual(client, auth_headers)
        data = client.get(
            "/api/v1/entries/day?member=Ana&date=2024-01-02&tz_offset=0", headers=auth_headers
        ).json()
        assert data["entries"] == []
        assert data["total_seconds"] == 0

    def test_bad_date(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        response = client.get("/api/v1/entries/day?member=Ana&date=01/02/2024", headers=auth_headers)
        assert response.status_code == 400

    def test_stale_snapshot_served_on_store_failure(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        app_storage: StorageManager,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test a failing store read falls back to the last good payload."""
        add_manual(client, auth_headers)
        url = "/api/v1/entries/day?member=Ana&date=2024-01-01&tz_offset=0"
        fresh = client.get(url, headers=auth_headers).json()

        def broken(*args: Any, **kwargs: Any) -> Any:
            raise UpstreamError("store unreachable")

        monkeypatch.setattr(app_storage, "load_entries", broken)
        response = client.get(url, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["stale"] is True
        assert data["entries"] == fresh["entries"]

    def test_store_failure_without_snapshot(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        app_storage: StorageManager,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def broken(*args: Any, **kwargs: Any) -> Any:
            raise UpstreamError("store unreachable")

        monkeypatch.setattr(app_storage, "load_entries", broken)
        response = client.get(
            "/api/v1/entries/day?member=Ana&date=2024-01-01&tz_offset=0", headers=auth_headers
        )

        assert response.status_code == 500
        data = response.json()
        assert data["stale"] is True
        assert data["entries"] == []
        assert data["error_code"] == "UPSTREAM_ERROR"

    def test_week_total(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        add_manual(client, auth_headers)
        add_manual(client, auth_headers, project="Fitness", start_at="2024-01-01T10:00:00Z")

        data = client.get(
            "/api/v1/entries/week-total?member=Ana&date=2024-01-01", headers=auth_headers
        ).json()

        assert data["start_date"] == "2023-12-26"
        assert data["total_seconds"] == 2700
        assert data["entry_count"] == 1
