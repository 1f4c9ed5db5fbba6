"""
Tests for Medicines API
=======================

Tests medicine add, edit, delete and schedule validation.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient


# ==================== FIXTURES ====================

@pytest.fixture
def patient(client: TestClient):
    response = client.post("/api/v1/patients", json={"id": "pat_1", "name": "Asha"})
    return response.json()


@pytest.fixture
def medicine_data():
    return {
        "id": "med_1",
        "patient_id": "pat_1",
        "name": "Metformin",
        "dosage": "500mg",
        "schedule": [{"time": "20:00"}, {"time": "8:00"}],
        "is_critical": True,
        "days_remaining": 10
    }


# ==================== TESTS ====================

class TestAddMedicine:

    @pytest.mark.api
    def test_add_medicine(self, client: TestClient, patient, medicine_data, services):
        response = client.post("/api/v1/medicines", json=medicine_data)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert [s["time"] for s in data["schedule"]] == ["20:00", "08:00"]
        assert data["schedule"][1]["time_of_day"] == "morning"
        assert data["is_critical"] is True
        # Reminders are scheduled for today's doses from 08:10 onwards
        assert services.reminders.scheduled("pat_1")[0].target_time.hour == 20

    @pytest.mark.api
    def test_add_medicine_unknown_patient(self, client: TestClient, medicine_data):
        response = client.post("/api/v1/medicines", json=medicine_data)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_malformed_time_rejected(self, client: TestClient, patient, medicine_data):
        medicine_data["schedule"] = [{"time": "25:00"}]

        response = client.post("/api/v1/medicines", json=medicine_data)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "25:00" in response.json()["message"]

    @pytest.mark.api
    @pytest.mark.parametrize("days", [[9], [], [0, 1, 2, 3, 4, 5, 6, 0]])
    def test_invalid_weekdays_rejected(self, client: TestClient, patient, medicine_data, days):
        medicine_data["schedule"] = [{"time": "08:00", "days_of_week": days}]

        response = client.post("/api/v1/medicines", json=medicine_data)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    @pytest.mark.api
    def test_weekdays_accepted(self, client: TestClient, patient, medicine_data):
        medicine_data["schedule"] = [{"time": "08:00", "days_of_week": [4, 0]}]

        response = client.post("/api/v1/medicines", json=medicine_data)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["schedule"][0]["days_of_week"] == [0, 4]

    @pytest.mark.api
    def test_end_before_start_rejected(self, client: TestClient, patient, medicine_data):
        medicine_data.update({"start_date": "2024-03-10", "end_date": "2024-03-01"})
        response = client.post("/api/v1/medicines", json=medicine_data)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestEditMedicine:

    @pytest.mark.api
    def test_list_and_get(self, client: TestClient, patient, medicine_data):
        client.post("/api/v1/medicines", json=medicine_data)

        listed = client.get("/api/v1/patients/pat_1/medicines")
        single = client.get("/api/v1/medicines/med_1")

        assert [m["id"] for m in listed.json()] == ["med_1"]
        assert single.json()["name"] == "Metformin"

    @pytest.mark.api
    def test_update_schedule(self, client: TestClient, patient, medicine_data):
        client.post("/api/v1/medicines", json=medicine_data)

        response = client.put("/api/v1/medicines/med_1", json={"schedule": [{"time": "09:00"}], "dosage": "1g"})

        assert response.status_code == status.HTTP_200_OK
        assert [s["time"] for s in response.json()["schedule"]] == ["09:00"]
        assert response.json()["dosage"] == "1g"
        assert response.json()["is_critical"] is True

    @pytest.mark.api
    def test_update_unknown(self, client: TestClient):
        response = client.put("/api/v1/medicines/med_missing", json={"dosage": "1g"})
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_delete(self, client: TestClient, patient, medicine_data):
        client.post("/api/v1/medicines", json=medicine_data)

        response = client.delete("/api/v1/medicines/med_1")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get("/api/v1/medicines/med_1").status_code == status.HTTP_404_NOT_FOUND
        assert client.delete("/api/v1/medicines/med_1").status_code == status.HTTP_404_NOT_FOUND
