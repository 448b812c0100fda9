"""Tests for the bookability and sanity-check endpoints."""

import csv
import io

import pytest

from tests.conftest import PARTNER_USER, apply_auth_override, new_id


class TestBookableProviders:
    @pytest.mark.asyncio
    async def test_example_scenario(self, app, client, clinic):
        # Any authenticated caller may read bookable providers.
        apply_auth_override(app, PARTNER_USER)

        response = await client.get(
            f"/api/payers/{clinic.payer.id}/bookable-providers", params={"date": "2025-06-01"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        by_name = {p["last_name"]: p for p in body["data"]}
        assert by_name["Resident"]["path"] == "supervised"
        assert by_name["Resident"]["supervising_attendings"] == ["Ada Attending"]
        assert by_name["Attending"]["path"] == "direct"

    @pytest.mark.asyncio
    async def test_before_effective_date(self, client, clinic):
        response = await client.get(
            f"/api/payers/{clinic.payer.id}/bookable-providers", params={"date": "2024-12-31"}
        )
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    async def test_unknown_payer(self, client):
        response = await client.get(f"/api/payers/{new_id()}/bookable-providers")
        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_bad_date(self, client, clinic):
        response = await client.get(
            f"/api/payers/{clinic.payer.id}/bookable-providers", params={"date": "June 1"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestRelationships:
    @pytest.mark.asyncio
    async def test_list(self, client, clinic):
        response = await client.get("/api/admin/bookability/relationships", params={"date": "2025-06-01"})

        rows = response.json()["data"]
        supervised = next(r for r in rows if r["network_status"] == "supervised")
        assert supervised["provider_name"] == "Riley Resident"
        assert supervised["billing_provider_id"] == str(clinic.attending.id)

    @pytest.mark.asyncio
    async def test_export_csv(self, client, clinic):
        response = await client.get("/api/admin/bookability/export.csv", params={"date": "2025-06-01"})

        assert response.status_code == 200
        assert 'filename="bookability-2025-06-01.csv"' in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "Payer"
        assert ["Blue Shield CA", "Riley Resident", "supervised", "Ada Attending"] in [r[:4] for r in rows]

    @pytest.mark.asyncio
    async def test_admin_only(self, app, client):
        apply_auth_override(app, PARTNER_USER)
        response = await client.get("/api/admin/bookability/relationships")
        assert response.status_code == 403


class TestSanityCheck:
    @pytest.mark.asyncio
    async def test_clean_payer(self, client, clinic):
        response = await client.get(
            f"/api/admin/payers/{clinic.payer.id}/sanity-check", params={"date": "2025-06-01"}
        )

        data = response.json()["data"]
        assert data["has_errors"] is False
        assert len(data["bookable_providers"]) == 2

    @pytest.mark.asyncio
    async def test_report_is_plain_text(self, client, clinic):
        response = await client.get(
            f"/api/admin/payers/{clinic.payer.id}/sanity-check/report", params={"date": "2025-06-01"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("=== Payer Contract Sanity Check Report ===")

    @pytest.mark.asyncio
    async def test_unknown_payer(self, client):
        response = await client.get(f"/api/admin/payers/{new_id()}/sanity-check")
        assert response.status_code == 404
