"""
Tests for Patients API
=======================

Tests patient create, read, update and cascading delete.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient


# ==================== FIXTURES ====================

@pytest.fixture
def patient_create_data():
    """Sample data for creating a patient"""
    return {
        "id": "pat_1",
        "name": "Asha Rao",
        "phone": "+919876543210",
        "language": "hi",
        "guardians": ["grd_1", "grd_2"]
    }


# ==================== CREATE TESTS ====================

class TestCreatePatient:
    """Tests for patient creation endpoint"""

    @pytest.mark.api
    def test_create_patient_success(self, client: TestClient, patient_create_data):
        """Test successful patient creation"""
        response = client.post("/api/v1/patients", json=patient_create_data)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["id"] == "pat_1"
        assert data["name"] == "Asha Rao"
        assert data["guardians"] == ["grd_1", "grd_2"]
        assert data["created_at"] == "2024-03-06T08:10:00"

    @pytest.mark.api
    def test_create_patient_generates_id(self, client: TestClient):
        response = client.post("/api/v1/patients", json={"name": "Ravi"})

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["id"].startswith("pat_")
        assert response.json()["language"] == "en"

    @pytest.mark.api
    def test_create_patient_missing_name(self, client: TestClient):
        response = client.post("/api/v1/patients", json={"phone": "+911"})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.api
    def test_create_patient_blank_name(self, client: TestClient):
        response = client.post("/api/v1/patients", json={"name": "   "})
        assert response.status_code == status.HTTP_400_BAD_REQUEST


# ==================== READ / UPDATE TESTS ====================

class TestGetPatient:

    @pytest.mark.api
    def test_get_patient(self, client: TestClient, patient_create_data):
        client.post("/api/v1/patients", json=patient_create_data)

        response = client.get("/api/v1/patients/pat_1")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["phone"] == "+919876543210"

    @pytest.mark.api
    def test_get_patient_not_found(self, client: TestClient):
        response = client.get("/api/v1/patients/pat_missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] is True


class TestUpdatePatient:

    @pytest.mark.api
    def test_update_patient(self, client: TestClient, patient_create_data):
        client.post("/api/v1/patients", json=patient_create_data)

        response = client.put("/api/v1/patients/pat_1", json={"language": "en", "guardians": []})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["language"] == "en"
        assert data["guardians"] == []
        assert data["name"] == "Asha Rao"

    @pytest.mark.api
    def test_update_patient_not_found(self, client: TestClient):
        response = client.put("/api/v1/patients/pat_missing", json={"language": "en"})
        assert response.status_code == status.HTTP_404_NOT_FOUND


# ==================== DELETE TESTS ====================

class TestDeletePatient:

    @pytest.mark.api
    def test_delete_cascades(self, client: TestClient, patient_create_data):
        client.post("/api/v1/patients", json=patient_create_data)
        client.post("/api/v1/medicines", json={
            "id": "med_1", "patient_id": "pat_1", "name": "Metformin",
            "schedule": [{"time": "08:00"}]
        })
        client.post("/api/v1/adherence/log", json={
            "patient_id": "pat_1", "medicine_id": "med_1",
            "scheduled_time": "2024-03-06T08:00:00", "status": "taken"
        })

        response = client.delete("/api/v1/patients/pat_1")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"patient_id": "pat_1", "medicines": 1, "adherence_logs": 1}
        assert client.get("/api/v1/patients/pat_1").status_code == status.HTTP_404_NOT_FOUND
        assert client.get("/api/v1/medicines/med_1").status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_delete_patient_not_found(self, client: TestClient):
        response = client.delete("/api/v1/patients/pat_missing")
        assert response.status_code == status.HTTP_404_NOT_FOUND
