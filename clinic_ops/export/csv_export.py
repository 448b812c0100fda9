"""CSV renderers for admin exports.

Every cell is quoted and list values are joined with "; ". Output is an
in-memory string; callers decide how to stream it.
"""

from __future__ import annotations

import csv
import io
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Sequence

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.bookability.models import BookableRelationship
from clinic_ops.core.errors import ValidationFailedError
from clinic_ops.core.repository import AppointmentRepository, ProviderRepository

LIST_SEPARATOR = "; "

PROVIDER_COLUMNS = [
    ("first_name", "First Name"),
    ("last_name", "Last Name"),
    ("email", "Email"),
    ("role", "Role"),
    ("title", "Title"),
    ("npi", "NPI"),
    ("is_active", "Active"),
    ("is_bookable", "Bookable"),
    ("accepts_new_patients", "Accepting New Patients"),
    ("telehealth_enabled", "Telehealth"),
    ("languages", "Languages"),
]

BOOKABILITY_COLUMNS = [
    ("payer_name", "Payer"),
    ("provider_name", "Provider"),
    ("network_status", "Network Status"),
    ("billing_provider_name", "Billing Provider"),
    ("effective_date", "Effective Date"),
    ("expiration_date", "Expiration Date"),
    ("bookable_from_date", "Bookable From"),
]

PAY_PERIOD_COLUMNS = [
    ("provider_name", "Provider"),
    ("npi", "NPI"),
    ("completed_appointments", "Completed Appointments"),
    ("pay_rate", "Pay Rate"),
    ("total_pay", "Total Pay"),
]


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple, set)):
        return LIST_SEPARATOR.join(format_cell(v) for v in value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _get(row: Any, key: str) -> Any:
    return row.get(key) if isinstance(row, dict) else getattr(row, key, None)


def to_csv(rows: Iterable[Any], columns: Sequence[tuple[str, str]]) -> str:
    """Render *rows* (dicts or objects) with a header row, quoting every cell."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow([label for _, label in columns])
    for row in rows:
        writer.writerow([format_cell(_get(row, key)) for key, _ in columns])
    return buffer.getvalue()


def providers_csv(providers: Iterable[Any]) -> str:
    return to_csv(providers, PROVIDER_COLUMNS)


def bookability_csv(
    relationships: Iterable[BookableRelationship], provider_names: dict[uuid.UUID, str]
) -> str:
    rows = []
    for rel in relationships:
        row = rel.model_dump()
        row["billing_provider_name"] = (
            provider_names.get(rel.billing_provider_id, "") if rel.billing_provider_id else ""
        )
        rows.append(row)
    return to_csv(rows, BOOKABILITY_COLUMNS)


def format_cents(cents: int | None) -> str:
    if cents is None:
        return ""
    return f"{cents / 100:.2f}"


class PayPeriodRow(BaseModel):
    provider_id: uuid.UUID
    provider_name: str
    npi: str | None = None
    completed_appointments: int
    pay_rate_cents: int | None = None
    total_cents: int | None = None

    @property
    def pay_rate(self) -> str:
        return format_cents(self.pay_rate_cents)

    @property
    def total_pay(self) -> str:
        return format_cents(self.total_cents)


def build_pay_period_rows(providers: Iterable[Any], counts: dict[uuid.UUID, int]) -> list[PayPeriodRow]:
    """One row per provider with completed appointments in the period."""
    rows = []
    for provider in providers:
        completed = counts.get(provider.id, 0)
        if completed == 0:
            continue
        rate = provider.pay_rate_cents
        rows.append(PayPeriodRow(
            provider_id=provider.id,
            provider_name=f"{provider.first_name} {provider.last_name}",
            npi=provider.npi,
            completed_appointments=completed,
            pay_rate_cents=rate,
            total_cents=rate * completed if rate is not None else None,
        ))
    rows.sort(key=lambda r: r.provider_name.lower())
    return rows


def pay_period_csv(rows: Iterable[PayPeriodRow]) -> str:
    return to_csv(rows, PAY_PERIOD_COLUMNS)


async def pay_period_summary(session: AsyncSession, start: date, end: date) -> list[PayPeriodRow]:
    if end < start:
        raise ValidationFailedError("end must be on or after start")
    counts = await AppointmentRepository(session).count_completed_by_provider(start, end)
    providers = await ProviderRepository(session).list_all()
    return build_pay_period_rows(providers, counts)
