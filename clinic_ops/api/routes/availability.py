"""Provider availability endpoints: open slots, weekly template, exceptions."""

import uuid
from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.audit import record_admin_action
from clinic_ops.api.dependencies import get_current_user, require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.config import Settings, get_settings
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.errors import NotFoundError, ValidationFailedError
from clinic_ops.core.models import ExceptionType
from clinic_ops.core.repository import AvailabilityRepository, ProviderRepository
from clinic_ops.scheduling import AvailabilityReport, AvailabilityService, ExceptionSpec, WeeklyBlockSpec

router = APIRouter()

# Exception types that only make sense with a time window.
_TIMED_EXCEPTIONS = {ExceptionType.custom_hours, ExceptionType.partial_block}


class WeeklyBlockView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    provider_id: uuid.UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_recurring: bool


class ExceptionView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    provider_id: uuid.UUID
    exception_date: date
    end_date: Optional[date] = None
    exception_type: str
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None


async def _require_provider(db: AsyncSession, provider_id: uuid.UUID):
    provider = await ProviderRepository(db).get_by_id(provider_id)
    if provider is None:
        raise NotFoundError("Provider not found", details={"provider_id": str(provider_id)})
    return provider


def _validate_exception(payload: ExceptionSpec) -> None:
    if payload.end_date and payload.end_date < payload.exception_date:
        raise ValidationFailedError("end_date must be on or after exception_date")
    if (payload.start_time is None) != (payload.end_time is None):
        raise ValidationFailedError("start_time and end_time must be given together")
    if payload.start_time and payload.end_time and payload.end_time <= payload.start_time:
        raise ValidationFailedError("end_time must be after start_time")
    if payload.exception_type in _TIMED_EXCEPTIONS and payload.start_time is None:
        raise ValidationFailedError(f"{payload.exception_type.value} exceptions require start_time and end_time")


# ---------------------------------------------------------------------------
# Open slots
# ---------------------------------------------------------------------------

@router.get(
    "/providers/{provider_id}/available-slots",
    response_model=ApiSuccess[AvailabilityReport],
)
async def get_available_slots(
    provider_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    duration: Optional[int] = Query(None, ge=5, le=240),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Open slots for a provider over an inclusive date range."""
    service = AvailabilityService(db, settings)
    report = await service.get_available_slots(provider_id, start_date, end_date, duration)
    return ApiSuccess(data=report)


# ---------------------------------------------------------------------------
# Weekly template
# ---------------------------------------------------------------------------

@router.get(
    "/admin/providers/{provider_id}/availability",
    response_model=ApiSuccess[list[WeeklyBlockView]],
)
async def get_weekly_availability(
    provider_id: uuid.UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _require_provider(db, provider_id)
    rows = await AvailabilityRepository(db).get_weekly(provider_id)
    return ApiSuccess(data=[WeeklyBlockView.model_validate(r) for r in rows])


@router.put(
    "/admin/providers/{provider_id}/availability",
    response_model=ApiSuccess[list[WeeklyBlockView]],
)
async def replace_weekly_availability(
    provider_id: uuid.UUID,
    blocks: list[WeeklyBlockSpec],
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the provider's whole weekly template."""
    await _require_provider(db, provider_id)
    for block in blocks:
        if block.end_time <= block.start_time:
            raise ValidationFailedError(
                "end_time must be after start_time",
                details={"day_of_week": block.day_of_week},
            )

    rows = await AvailabilityRepository(db).replace_weekly(provider_id, [b.model_dump() for b in blocks])
    await record_admin_action(
        db, request, admin, "replace", "provider_availability", provider_id,
        changes={"blocks": [b.model_dump(mode="json") for b in blocks]},
    )
    return ApiSuccess(data=[WeeklyBlockView.model_validate(r) for r in rows])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

@router.get(
    "/admin/providers/{provider_id}/availability-exceptions",
    response_model=ApiSuccess[list[ExceptionView]],
)
async def list_availability_exceptions(
    provider_id: uuid.UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if end_date < start_date:
        raise ValidationFailedError("end_date must be on or after start_date")
    await _require_provider(db, provider_id)
    rows = await AvailabilityRepository(db).list_exceptions(provider_id, start_date, end_date)
    return ApiSuccess(data=[ExceptionView.model_validate(r) for r in rows])


@router.post(
    "/admin/providers/{provider_id}/availability-exceptions",
    response_model=ApiSuccess[ExceptionView],
    status_code=201,
)
async def create_availability_exception(
    provider_id: uuid.UUID,
    body: ExceptionSpec,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _require_provider(db, provider_id)
    _validate_exception(body)

    values = body.model_dump()
    values["exception_type"] = body.exception_type.value
    row = await AvailabilityRepository(db).create_exception(provider_id=provider_id, **values)
    await record_admin_action(
        db, request, admin, "create", "availability_exception", row.id,
        changes=body.model_dump(mode="json"),
    )
    return ApiSuccess(data=ExceptionView.model_validate(row))


@router.delete(
    "/admin/availability-exceptions/{exception_id}",
    response_model=ApiSuccess[dict],
)
async def delete_availability_exception(
    exception_id: uuid.UUID,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    deleted = await AvailabilityRepository(db).delete_exception(exception_id)
    if not deleted:
        raise NotFoundError("Availability exception not found")
    await record_admin_action(db, request, admin, "delete", "availability_exception", exception_id)
    return ApiSuccess(data={"deleted": True, "id": str(exception_id)})
