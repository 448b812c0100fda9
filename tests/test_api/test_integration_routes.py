"""Tests for the drafting, PracticeQ and finance admin endpoints."""

import csv
import io
from datetime import date, time
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from clinic_ops.core.models import Appointment
from clinic_ops.drafting import GeneratedArticle
from clinic_ops.integrations.practiceq import PracticeQClient
from clinic_ops.llm.base import ToolResult
from tests.conftest import make_settings, new_id


class TestDrafting:
    @pytest.mark.asyncio
    async def test_chat_then_fetch(self, app, client):
        llm = MagicMock()
        llm.complete_tool = AsyncMock(return_value=ToolResult(
            data=GeneratedArticle(reply="First pass ready.", title="Sleep and Mood", content="<p>Body</p>"),
            text="",
            model="claude-test",
        ))
        app.state.llm = llm

        response = await client.post("/api/admin/drafting/chat", json={"message": "Write about sleep"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["message"] == "First pass ready."
        fetched = await client.get(f"/api/admin/drafting/drafts/{data['draft_id']}")
        assert fetched.json()["data"]["title"] == "Sleep and Mood"

    @pytest.mark.asyncio
    async def test_chat_without_llm(self, client):
        response = await client.post("/api/admin/drafting/chat", json={"message": "Hello"})

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "LLM_NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_empty_message(self, client):
        response = await client.post("/api/admin/drafting/chat", json={"message": ""})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_draft(self, client):
        response = await client.get(f"/api/admin/drafting/drafts/{new_id()}")
        assert response.status_code == 404


class TestPracticeQ:
    @pytest.mark.asyncio
    async def test_not_configured(self, client):
        status = await client.get("/api/admin/practiceq/status")
        assert status.json()["data"] == {"configured": False, "connected": False}

        response = await client.get("/api/admin/practiceq/settings")
        assert response.status_code == 500
        assert response.json()["error"]["code"] == "PRACTICEQ_NOT_CONFIGURED"

    @pytest.mark.asyncio
    async def test_settings_proxied(self, app, client):
        def handler(request):
            if request.url.path.endswith("/appointments/settings"):
                return httpx.Response(200, json={"Locations": [{"Id": "loc-1", "Name": "Main"}]})
            return httpx.Response(200, json=[])

        app.state.practiceq = PracticeQClient(
            make_settings(practiceq_api_key="pq-key", max_retries=1), transport=httpx.MockTransport(handler)
        )

        response = await client.get("/api/admin/practiceq/settings")
        assert response.json()["data"]["locations"] == [{"id": "loc-1", "name": "Main"}]

        status = await client.get("/api/admin/practiceq/status")
        assert status.json()["data"] == {"configured": True, "connected": True}

    @pytest.mark.asyncio
    async def test_practitioners_mapped_to_providers(self, app, client, clinic):
        def handler(request):
            return httpx.Response(200, json=[
                {"Id": "pq-ada", "FirstName": "Ada", "LastName": "Attending", "Email": "ada@clinic.example"},
                {"Id": "pq-new", "FirstName": "Noor", "LastName": "Unmapped"},
            ])

        app.state.practiceq = PracticeQClient(
            make_settings(practiceq_api_key="pq-key", max_retries=1), transport=httpx.MockTransport(handler)
        )

        response = await client.get("/api/admin/practiceq/practitioners")

        assert response.status_code == 200
        mapped, unmapped = response.json()["data"]
        assert mapped["practitioner"]["first_name"] == "Ada"
        assert mapped["provider_id"] == str(clinic.attending.id)
        assert mapped["provider_name"] == "Ada Attending"
        assert unmapped["practitioner"]["id"] == "pq-new"
        assert unmapped["provider_id"] is None

    @pytest.mark.asyncio
    async def test_appointments_range_checked(self, client):
        response = await client.get(
            "/api/admin/practiceq/appointments", params={"start_date": "2026-03-09", "end_date": "2026-03-02"}
        )
        assert response.status_code == 400


class TestFinance:
    @pytest.mark.asyncio
    async def test_pay_period_csv(self, client, clinic, session):
        session.add_all([
            Appointment(provider_id=clinic.resident.id, appointment_date=date(2026, 3, d),
                        appointment_time=time(9), status="completed")
            for d in (2, 9)
        ])
        await session.commit()

        response = await client.get(
            "/api/admin/finance/pay-period.csv", params={"start": "2026-03-01", "end": "2026-03-15"}
        )

        assert response.status_code == 200
        assert 'filename="pay-period-2026-03-01-2026-03-15.csv"' in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[1] == ["Riley Resident", "", "2", "90.00", "180.00"]

    @pytest.mark.asyncio
    async def test_reversed_period(self, client):
        response = await client.get(
            "/api/admin/finance/pay-period.csv", params={"start": "2026-03-15", "end": "2026-03-01"}
        )
        assert response.status_code == 400
