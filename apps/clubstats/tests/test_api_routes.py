"""
Route tests using TestClient with the services monkeypatched.

The record store dependency is replaced by a placeholder object, so no
database is touched.
"""
import pytest
from fastapi.testclient import TestClient

from clubstats.api.dependencies import get_store
from clubstats.api.main import app
from clubstats.database.models import SessionStatus
from clubstats.models.schemas import (
    CheckInRecord,
    KPIMetricsWithDeltas,
    PlayerStatistics,
    SessionRecord,
    TrainingGroupAttendanceResult,
)
from clubstats.services import (
    attendance_service,
    check_in_service,
    kpi_service,
    player_stats_service,
    session_service,
    snapshot_service,
)
from clubstats.services.errors import NotFoundError, SessionNotEndedError, StoreError, ValidationError

FAKE_STORE = object()


@pytest.fixture
def client():
    app.dependency_overrides[get_store] = lambda: FAKE_STORE
    yield TestClient(app)
    app.dependency_overrides.clear()


def _session(status=SessionStatus.ACTIVE):
    return SessionRecord(id="s1", date="2024-03-06", status=status)


# ============================================================================
# Health and sessions
# ============================================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestSessionEndpoints:
    def test_get_active_session(self, client, monkeypatch):
        async def fake(store):
            assert store is FAKE_STORE
            return _session()

        monkeypatch.setattr(session_service, "get_active_session", fake, raising=True)
        response = client.get("/api/sessions/active")
        assert response.status_code == 200
        assert response.json()["id"] == "s1"
        assert response.json()["status"] == "active"

    def test_get_active_session_none(self, client, monkeypatch):
        async def fake(store):
            return None

        monkeypatch.setattr(session_service, "get_active_session", fake, raising=True)
        response = client.get("/api/sessions/active")
        assert response.status_code == 200
        assert response.json() is None

    def test_end_active_session_without_session(self, client, monkeypatch):
        async def fake(store):
            return None

        monkeypatch.setattr(session_service, "end_active_session", fake, raising=True)
        response = client.post("/api/sessions/active/end")
        assert response.status_code == 404

    def test_end_active_session(self, client, monkeypatch):
        async def fake(store):
            return _session(SessionStatus.ENDED)

        monkeypatch.setattr(session_service, "end_active_session", fake, raising=True)
        response = client.post("/api/sessions/active/end")
        assert response.status_code == 200
        assert response.json()["status"] == "ended"

    def test_snapshot_of_active_session_is_rejected(self, client, monkeypatch):
        async def fake(store, session_id):
            raise SessionNotEndedError(session_id)

        monkeypatch.setattr(snapshot_service, "snapshot_session", fake, raising=True)
        response = client.post("/api/sessions/s1/snapshot")
        assert response.status_code == 400
        assert "has not ended" in response.json()["detail"]

    def test_snapshot_of_missing_session(self, client, monkeypatch):
        async def fake(store, session_id):
            raise NotFoundError("Session", session_id)

        monkeypatch.setattr(snapshot_service, "snapshot_session", fake, raising=True)
        response = client.post("/api/sessions/missing/snapshot")
        assert response.status_code == 404

    def test_history_passes_filters(self, client, monkeypatch):
        seen = {}

        async def fake(store, filters):
            seen["filters"] = filters
            return []

        monkeypatch.setattr(snapshot_service, "get_session_history", fake, raising=True)
        response = client.get("/api/sessions/history?season=2023-2024&date_from=2024-03-01")
        assert response.status_code == 200
        assert seen["filters"].season == "2023-2024"
        assert seen["filters"].date_from.isoformat() == "2024-03-01"


# ============================================================================
# Check-ins
# ============================================================================

class TestCheckInEndpoints:
    def test_create_check_in(self, client, monkeypatch):
        async def fake(store, player_id, max_rounds=None, notes=None):
            return CheckInRecord(id="c1", session_id="s1", player_id=player_id,
                                 max_rounds=max_rounds, notes=notes)

        monkeypatch.setattr(check_in_service, "add_check_in", fake, raising=True)
        response = client.post("/api/check-ins", json={"playerId": "p1", "maxRounds": 3})
        assert response.status_code == 200
        assert response.json()["player_id"] == "p1"
        assert response.json()["max_rounds"] == 3

    def test_create_check_in_notes_too_long(self, client):
        response = client.post("/api/check-ins", json={"player_id": "p1", "notes": "x" * 501})
        assert response.status_code == 422

    def test_create_check_in_inactive_player(self, client, monkeypatch):
        async def fake(store, player_id, max_rounds=None, notes=None):
            raise ValidationError("Player P1 is not active")

        monkeypatch.setattr(check_in_service, "add_check_in", fake, raising=True)
        response = client.post("/api/check-ins", json={"player_id": "p1"})
        assert response.status_code == 400

    def test_update_check_in_only_sends_given_fields(self, client, monkeypatch):
        seen = {}

        async def fake(store, player_id, **fields):
            seen.update(fields)
            return CheckInRecord(id="c1", session_id="s1", player_id=player_id, notes=fields["notes"])

        monkeypatch.setattr(check_in_service, "update_check_in", fake, raising=True)
        response = client.patch("/api/check-ins/p1", json={"notes": "late"})
        assert response.status_code == 200
        assert seen == {"notes": "late"}

    def test_delete_check_in(self, client, monkeypatch):
        async def fake(store, player_id):
            return None

        monkeypatch.setattr(check_in_service, "remove_check_in", fake, raising=True)
        response = client.delete("/api/check-ins/p1")
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_delete_missing_check_in(self, client, monkeypatch):
        async def fake(store, player_id):
            raise NotFoundError("Check-in", player_id)

        monkeypatch.setattr(check_in_service, "remove_check_in", fake, raising=True)
        assert client.delete("/api/check-ins/p1").status_code == 404


# ============================================================================
# Statistics
# ============================================================================

class TestStatisticsEndpoints:
    def test_group_attendance_parses_groups(self, client, monkeypatch):
        seen = {}

        async def fake(store, date_from, date_to, group_names):
            seen["args"] = (date_from, date_to, group_names)
            return TrainingGroupAttendanceResult()

        monkeypatch.setattr(attendance_service, "get_training_group_attendance", fake, raising=True)
        response = client.get(
            "/api/statistics/attendance/groups?groups=U15,U17&groups=Adults&date_from=2024-03-01"
        )
        assert response.status_code == 200
        date_from, date_to, group_names = seen["args"]
        assert date_from.isoformat() == "2024-03-01"
        assert date_to is None
        assert group_names == ["U15", "U17", "Adults"]

    def test_kpis_resolve_builtin_period(self, client, monkeypatch):
        seen = {}

        async def fake(store, date_from, date_to, group_names, period_type):
            seen["args"] = (date_from, date_to, period_type)
            return KPIMetricsWithDeltas()

        monkeypatch.setattr(kpi_service, "get_kpis", fake, raising=True)
        response = client.get("/api/statistics/kpis?period=last7days")
        assert response.status_code == 200
        date_from, date_to, period_type = seen["args"]
        assert date_from is not None and date_to is not None
        assert period_type.value == "last7days"

    def test_kpis_invalid_range(self, client, monkeypatch):
        async def fake(store, date_from, date_to, group_names, period_type):
            raise ValidationError("date_to must not be before date_from")

        monkeypatch.setattr(kpi_service, "get_kpis", fake, raising=True)
        response = client.get("/api/statistics/kpis?date_from=2024-03-07&date_to=2024-03-01")
        assert response.status_code == 400

    def test_player_statistics(self, client, monkeypatch):
        async def fake(store, player_id, filters):
            return PlayerStatistics(player_id=player_id, player_name="Ann", total_matches=4)

        monkeypatch.setattr(player_stats_service, "get_player_statistics", fake, raising=True)
        response = client.get("/api/statistics/players/p1?season=2023-2024")
        assert response.status_code == 200
        assert response.json()["total_matches"] == 4

    def test_player_statistics_unknown_player(self, client, monkeypatch):
        async def fake(store, player_id, filters):
            raise NotFoundError("Player", player_id)

        monkeypatch.setattr(player_stats_service, "get_player_statistics", fake, raising=True)
        assert client.get("/api/statistics/players/nobody").status_code == 404

    def test_store_failure_is_500(self, client, monkeypatch):
        async def fake(store):
            raise StoreError("Record store failure while listing statistics_snapshots")

        monkeypatch.setattr(snapshot_service, "get_all_seasons", fake, raising=True)
        response = client.get("/api/statistics/seasons")
        assert response.status_code == 500

    def test_top_partners_limit_validation(self, client):
        response = client.get("/api/statistics/players/p1/partners?limit=0")
        assert response.status_code == 422
