"""Tests for the patient booking and engagement-status endpoints."""

import pytest

from tests.conftest import PARTNER_USER, apply_auth_override, new_id


def _booking(clinic, provider=None, start="2026-03-02T09:00:00"):
    return {
        "payer_id": str(clinic.payer.id),
        "provider_id": str((provider or clinic.resident).id),
        "patient_id": str(clinic.patient.id),
        "start": start,
    }


class TestBooking:
    @pytest.mark.asyncio
    async def test_book_supervised(self, client, clinic):
        response = await client.post("/api/patient-booking/book", json=_booking(clinic))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["network_status"] == "supervised"
        assert data["billing_provider_id"] == str(clinic.attending.id)
        assert data["rendering_provider_id"] == str(clinic.resident.id)

    @pytest.mark.asyncio
    async def test_double_booking_conflicts(self, client, clinic):
        await client.post("/api/patient-booking/book", json=_booking(clinic))
        response = await client.post("/api/patient-booking/book", json=_booking(clinic))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SLOT_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_not_bookable(self, client, clinic):
        response = await client.post(
            "/api/patient-booking/book", json=_booking(clinic, start="2024-06-03T09:00:00")
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NOT_BOOKABLE_FOR_PAYER"

    @pytest.mark.asyncio
    async def test_invalid_location_type(self, client, clinic):
        payload = _booking(clinic)
        payload["location_type"] = "home_visit"
        response = await client.post("/api/patient-booking/book", json=payload)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_slots_for_payer(self, client, clinic):
        response = await client.get("/api/patient-booking/slots-for-payer", params={
            "payer_id": str(clinic.payer.id), "start_date": "2026-03-02", "end_date": "2026-03-02",
        })

        slots = response.json()["data"]
        assert len(slots) == 6
        assert {s["path"] for s in slots} == {"direct", "supervised"}


class TestEngagement:
    @pytest.mark.asyncio
    async def test_default_active(self, client, clinic):
        response = await client.get(f"/api/patients/{clinic.patient.id}/engagement-status")

        data = response.json()["data"]
        assert data["status"] == "active"
        assert data["is_default"] is True

    @pytest.mark.asyncio
    async def test_partner_change_needs_notification(self, app, client, clinic):
        apply_auth_override(app, PARTNER_USER)

        response = await client.put(f"/api/patients/{clinic.patient.id}/engagement-status", json={
            "status": "discharged",
            "changed_by_email": PARTNER_USER.email,
            "change_reason": "Completed treatment",
            "changed_by_type": "admin",
        })

        data = response.json()["data"]
        assert data["changed"] is True
        assert data["needs_admin_notification"] is True
        # Email is disabled in tests.
        assert data["notification_sent"] is False

        history = await client.get(f"/api/patients/{clinic.patient.id}/engagement-status/history")
        [entry] = history.json()["data"]
        assert entry["changed_by_type"] == "partner_user"

    @pytest.mark.asyncio
    async def test_admin_change(self, client, clinic):
        response = await client.put(f"/api/patients/{clinic.patient.id}/engagement-status", json={
            "status": "inactive",
            "changed_by_email": "admin@clinic.example",
            "change_reason": "No contact in 90 days",
        })

        data = response.json()["data"]
        assert data["needs_admin_notification"] is False
        current = await client.get(f"/api/patients/{clinic.patient.id}/engagement-status")
        assert current.json()["data"]["status"] == "inactive"

    @pytest.mark.asyncio
    async def test_missing_reason(self, client, clinic):
        response = await client.put(f"/api/patients/{clinic.patient.id}/engagement-status", json={
            "status": "unresponsive", "changed_by_email": "admin@clinic.example",
        })
        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "change_reason"}

    @pytest.mark.asyncio
    async def test_same_status_is_no_op(self, client, clinic):
        response = await client.put(f"/api/patients/{clinic.patient.id}/engagement-status", json={
            "status": "active", "changed_by_email": "admin@clinic.example",
        })

        assert response.status_code == 200
        assert response.json()["data"]["changed"] is False
        history = await client.get(f"/api/patients/{clinic.patient.id}/engagement-status/history")
        assert history.json()["data"] == []

    @pytest.mark.asyncio
    async def test_unknown_patient(self, client):
        response = await client.get(f"/api/patients/{new_id()}/engagement-status")
        assert response.status_code == 404
