"""
Tests for Sync and Alerts API
=============================

Queue status, manual drain, connectivity changes and the sweep triggers.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from config import Collections


# ==================== FIXTURES ====================

@pytest.fixture
def queued_patient(client: TestClient):
    client.post("/api/v1/patients", json={"id": "pat_1", "name": "Asha", "guardians": ["grd_1"]})


# ==================== SYNC TESTS ====================

class TestSyncEndpoints:

    @pytest.mark.api
    def test_status_counts_pending(self, client: TestClient, queued_patient):
        response = client.get("/api/v1/sync/status")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["online"] is True
        assert data["syncing"] is False
        assert data["pending"] == 1

    @pytest.mark.api
    def test_drain_pushes_to_remote(self, client: TestClient, queued_patient, remote_store):
        response = client.post("/api/v1/sync/drain")

        assert response.json()["applied"] == 1
        assert remote_store.snapshot(Collections.PATIENTS)["pat_1"]["name"] == "Asha"
        assert client.get("/api/v1/sync/status").json()["last_sync_at"] == "2024-03-06T08:10:00"

    @pytest.mark.api
    def test_offline_then_online(self, client: TestClient, remote_store):
        assert client.post("/api/v1/sync/connectivity", json={"online": False}).json() is None

        client.post("/api/v1/patients", json={"id": "pat_1", "name": "Asha"})
        assert client.post("/api/v1/sync/drain").json()["skipped"] is True

        response = client.post("/api/v1/sync/connectivity", json={"online": True})

        assert response.json()["applied"] == 1
        assert client.get("/api/v1/sync/status").json()["pending"] == 0

    @pytest.mark.api
    def test_flagged_items(self, client: TestClient, services, queued_patient, remote_store):
        remote_store.online = False
        services.sync_service.retry_threshold = 2

        client.post("/api/v1/sync/drain")
        client.post("/api/v1/sync/drain")
        flagged = client.get("/api/v1/sync/flagged").json()

        assert len(flagged) == 1
        assert flagged[0]["record_type"] == "patient"
        assert flagged[0]["retry_count"] == 2
        assert client.get("/api/v1/sync/status").json()["flagged"] == 1


# ==================== ALERT TESTS ====================

class TestAlertEndpoints:

    @pytest.mark.api
    def test_sweep_and_list(self, client: TestClient, queued_patient, alert_sink):
        client.post("/api/v1/medicines", json={
            "id": "med_1", "patient_id": "pat_1", "name": "Insulin",
            "schedule": [{"time": "07:00"}], "is_critical": True
        })

        first = client.post("/api/v1/alerts/sweep").json()
        second = client.post("/api/v1/alerts/sweep").json()

        assert first["patients"] == 1
        assert len(first["raised"]) == 1
        assert second["skipped"] == first["raised"]
        assert len(alert_sink.alerts) == 1

        alerts = client.get("/api/v1/patients/pat_1/alerts").json()
        assert [a["tier"] for a in alerts] == ["urgent"]
        assert alerts[0]["day"] == "2024-03-06"

    @pytest.mark.api
    def test_weekly_summary_skips_patients_without_doses(self, client: TestClient, queued_patient, alert_sink):
        report = client.post("/api/v1/alerts/weekly-summary").json()

        assert report["patients"] == 1
        assert report["raised"] == []
        assert alert_sink.alerts == []


class TestHealth:

    @pytest.mark.api
    def test_root(self, client: TestClient):
        assert client.get("/").json()["status"] == "healthy"

    @pytest.mark.api
    def test_health_reports_sync(self, client: TestClient, queued_patient):
        data = client.get("/health").json()
        assert data["checks"]["sync"]["pending"] == 1
        assert data["checks"]["sync"]["remote_configured"] is True
