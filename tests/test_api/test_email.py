"""
Tests for Email Endpoints
=========================
"""

import pytest


REMINDER = {
    "caregiverEmail": "carer@example.com",
    "patientId": "U101",
    "doseType": "morning",
    "scheduledTime": "08:00",
    "morningPillCount": 12,
    "eveningPillCount": 3,
}


class TestReminderEmail:

    @pytest.mark.api
    def test_send(self, client, fake_email):
        response = client.post("/api/email/reminder", json=REMINDER)

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"id": "msg_1"}}
        assert fake_email.sent[0]["to"] == "carer@example.com"
        assert fake_email.sent[0]["subject"] == "💊 Medication Reminder: U101 - Morning Dose"

    @pytest.mark.api
    @pytest.mark.parametrize("field", ["caregiverEmail", "patientId", "doseType"])
    def test_missing_field(self, client, fake_email, field):
        payload = {k: v for k, v in REMINDER.items() if k != field}

        response = client.post("/api/email/reminder", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}
        assert fake_email.sent == []

    @pytest.mark.api
    def test_empty_field_counts_as_missing(self, client):
        response = client.post("/api/email/reminder", json={**REMINDER, "patientId": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

    @pytest.mark.api
    def test_bad_dose_type(self, client):
        response = client.post("/api/email/reminder", json={**REMINDER, "doseType": "noon"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
        assert response.json()["details"]

    @pytest.mark.api
    def test_provider_failure(self, client, fake_email):
        fake_email.fail = True

        response = client.post("/api/email/reminder", json=REMINDER)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Failed to send reminder email"
        assert body["details"] == "provider rejected message"


class TestDoseStatusEmail:

    @pytest.mark.api
    def test_missed(self, client, fake_email):
        response = client.post("/api/email/dose-status", json={
            "caregiverEmail": "carer@example.com",
            "patientId": "U101",
            "doseType": "evening",
            "status": "missed",
        })

        assert response.status_code == 200
        assert fake_email.sent[0]["subject"] == "PillWatch - MISSED: U101 - Evening Dose"
        assert "❌ MISSED" in fake_email.sent[0]["html"]

    @pytest.mark.api
    def test_status_required(self, client):
        response = client.post("/api/email/dose-status", json={
            "caregiverEmail": "carer@example.com",
            "patientId": "U101",
            "doseType": "evening",
        })

        assert response.status_code == 400


class TestLowStockEmail:

    @pytest.mark.api
    def test_zero_count_is_allowed(self, client, fake_email):
        response = client.post("/api/email/low-stock", json={
            "caregiverEmail": "carer@example.com",
            "patientId": "U101",
            "doseType": "morning",
            "currentCount": 0,
        })

        assert response.status_code == 200
        assert "Remaining Pills:</strong> 0" in fake_email.sent[0]["html"]

    @pytest.mark.api
    def test_negative_count_rejected(self, client):
        response = client.post("/api/email/low-stock", json={
            "caregiverEmail": "carer@example.com",
            "patientId": "U101",
            "doseType": "morning",
            "currentCount": -1,
        })

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
