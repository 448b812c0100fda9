"""PracticeQ proxy endpoints (admin only)."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import get_practiceq, require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.errors import UpstreamError, ValidationFailedError
from clinic_ops.core.repository import ProviderRepository
from clinic_ops.integrations.practiceq import BookingSettings, PQAppointment, PQPractitioner, PracticeQClient

router = APIRouter()


class PractitionerMapping(BaseModel):
    """A PracticeQ practitioner and the local provider mapped to it, if any."""

    practitioner: PQPractitioner
    provider_id: Optional[uuid.UUID] = None
    provider_name: Optional[str] = None


def _require_client(practiceq: Optional[PracticeQClient]) -> PracticeQClient:
    if practiceq is None:
        raise UpstreamError("PracticeQ API key not configured", code="PRACTICEQ_NOT_CONFIGURED")
    return practiceq


@router.get("/settings", response_model=ApiSuccess[BookingSettings])
async def get_booking_settings(
    admin: CurrentUser = Depends(require_admin),
    practiceq: Optional[PracticeQClient] = Depends(get_practiceq),
):
    """Locations, services and practitioners configured in PracticeQ."""
    settings = await _require_client(practiceq).get_booking_settings()
    return ApiSuccess(data=settings)


@router.get("/practitioners", response_model=ApiSuccess[list[PractitionerMapping]])
async def list_practitioners(
    admin: CurrentUser = Depends(require_admin),
    practiceq: Optional[PracticeQClient] = Depends(get_practiceq),
    db: AsyncSession = Depends(get_db),
):
    """PracticeQ practitioners joined to providers through ``intakeq_practitioner_id``."""
    practitioners = await _require_client(practiceq).list_practitioners()
    by_pq_id = {
        p.intakeq_practitioner_id: p
        for p in await ProviderRepository(db).list_all()
        if p.intakeq_practitioner_id
    }
    rows = []
    for practitioner in practitioners:
        provider = by_pq_id.get(practitioner.id)
        rows.append(PractitionerMapping(
            practitioner=practitioner,
            provider_id=provider.id if provider else None,
            provider_name=provider.full_name if provider else None,
        ))
    return ApiSuccess(data=rows)


@router.get("/appointments", response_model=ApiSuccess[list[PQAppointment]])
async def list_practiceq_appointments(
    start_date: date = Query(...),
    end_date: date = Query(...),
    practitioner_id: Optional[str] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    practiceq: Optional[PracticeQClient] = Depends(get_practiceq),
):
    if end_date < start_date:
        raise ValidationFailedError("end_date must be on or after start_date")
    appointments = await _require_client(practiceq).get_appointments(practitioner_id, start_date, end_date)
    return ApiSuccess(data=appointments)


@router.get("/status", response_model=ApiSuccess[dict])
async def connection_status(
    admin: CurrentUser = Depends(require_admin),
    practiceq: Optional[PracticeQClient] = Depends(get_practiceq),
):
    if practiceq is None:
        return ApiSuccess(data={"configured": False, "connected": False})
    return ApiSuccess(data={"configured": True, "connected": await practiceq.test_connection()})
