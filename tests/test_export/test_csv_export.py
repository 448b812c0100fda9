"""Tests for admin CSV exports."""

import csv
import io
import uuid
from datetime import date, time
from types import SimpleNamespace

import pytest

from clinic_ops.bookability.models import BookableRelationship, NetworkStatus
from clinic_ops.core.errors import ValidationFailedError
from clinic_ops.core.models import Appointment
from clinic_ops.export.csv_export import (
    bookability_csv,
    build_pay_period_rows,
    format_cell,
    pay_period_csv,
    pay_period_summary,
    providers_csv,
)


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


class TestFormatCell:
    def test_values(self):
        assert format_cell(None) == ""
        assert format_cell(True) == "Yes"
        assert format_cell(False) == "No"
        assert format_cell(["English", "Spanish"]) == "English; Spanish"
        assert format_cell(date(2026, 3, 2)) == "2026-03-02"
        assert format_cell(NetworkStatus.SUPERVISED) == "supervised"


def test_providers_csv_quotes_every_cell():
    provider = SimpleNamespace(
        first_name="Ada", last_name="Attending, MD", email="ada@clinic.example", role="Attending",
        title=None, npi="1234567890", is_active=True, is_bookable=True, accepts_new_patients=False,
        telehealth_enabled=True, languages=["English", "Spanish"],
    )
    text = providers_csv([provider])

    header, row = _rows(text)
    assert header[0] == "First Name"
    assert row[1] == "Attending, MD"
    assert row[8] == "No"
    assert row[10] == "English; Spanish"
    assert text.splitlines()[1].startswith('"Ada","Attending, MD"')


def test_bookability_csv_names_billing_provider():
    attending_id, resident_id = uuid.uuid4(), uuid.uuid4()
    rel = BookableRelationship(
        provider_id=resident_id,
        provider_name="Riley Resident",
        payer_id=uuid.uuid4(),
        payer_name="Blue Shield CA",
        network_status=NetworkStatus.SUPERVISED,
        billing_provider_id=attending_id,
        rendering_provider_id=resident_id,
        effective_date=date(2025, 1, 1),
    )
    _, row = _rows(bookability_csv([rel], {attending_id: "Ada Attending"}))
    assert row == ["Blue Shield CA", "Riley Resident", "supervised", "Ada Attending", "2025-01-01", "", ""]


def test_pay_period_rows_skip_idle_providers():
    busy = SimpleNamespace(id=uuid.uuid4(), first_name="Ada", last_name="Attending", npi="1", pay_rate_cents=15000)
    idle = SimpleNamespace(id=uuid.uuid4(), first_name="Bo", last_name="Idle", npi=None, pay_rate_cents=9000)
    unpaid = SimpleNamespace(id=uuid.uuid4(), first_name="Cy", last_name="Volunteer", npi=None, pay_rate_cents=None)

    rows = build_pay_period_rows([unpaid, idle, busy], {busy.id: 3, unpaid.id: 1})

    assert [r.provider_name for r in rows] == ["Ada Attending", "Cy Volunteer"]
    _, first, second = _rows(pay_period_csv(rows))
    assert first == ["Ada Attending", "1", "3", "150.00", "450.00"]
    assert second[3:] == ["", ""]


@pytest.mark.asyncio
async def test_pay_period_summary_counts_completed(session, clinic):
    for day, status in [(2, "completed"), (3, "completed"), (4, "cancelled"), (20, "completed")]:
        session.add(Appointment(
            provider_id=clinic.attending.id, appointment_date=date(2026, 3, day),
            appointment_time=time(9), status=status,
        ))
    await session.flush()

    rows = await pay_period_summary(session, date(2026, 3, 1), date(2026, 3, 15))

    assert [(r.provider_name, r.completed_appointments, r.total_cents) for r in rows] == [
        ("Ada Attending", 2, 30000),
    ]


@pytest.mark.asyncio
async def test_pay_period_rejects_reversed_range(session):
    with pytest.raises(ValidationFailedError):
        await pay_period_summary(session, date(2026, 3, 15), date(2026, 3, 1))
