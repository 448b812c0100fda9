"""Provider roster administration endpoints."""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.audit import record_admin_action
from clinic_ops.api.dependencies import require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.errors import NotFoundError, ValidationFailedError
from clinic_ops.core.repository import ProviderRepository
from clinic_ops.export.csv_export import providers_csv

router = APIRouter()


class ProviderCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = None
    role: Optional[str] = None
    title: Optional[str] = None
    npi: Optional[str] = Field(None, pattern=r"^\d{10}$")
    is_bookable: bool = True
    accepts_new_patients: bool = True
    telehealth_enabled: bool = True
    languages: list[str] = ["English"]
    pay_rate_cents: Optional[int] = Field(None, ge=0)
    intakeq_practitioner_id: Optional[str] = None


class ProviderUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    role: Optional[str] = None
    title: Optional[str] = None
    npi: Optional[str] = Field(None, pattern=r"^\d{10}$")
    is_active: Optional[bool] = None
    is_bookable: Optional[bool] = None
    accepts_new_patients: Optional[bool] = None
    telehealth_enabled: Optional[bool] = None
    languages: Optional[list[str]] = None
    pay_rate_cents: Optional[int] = Field(None, ge=0)
    intakeq_practitioner_id: Optional[str] = None


class ProviderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    role: Optional[str] = None
    title: Optional[str] = None
    npi: Optional[str] = None
    is_active: bool
    is_bookable: bool
    accepts_new_patients: bool
    telehealth_enabled: bool
    languages: Optional[list[str]] = None
    pay_rate_cents: Optional[int] = None
    intakeq_practitioner_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@router.get("", response_model=ApiSuccess[list[ProviderResponse]])
async def list_providers(
    q: Optional[str] = Query(None, min_length=1, description="Name search"),
    active_only: bool = Query(False),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    repo = ProviderRepository(db)
    if q:
        providers = [p for p in await repo.search(q) if p.is_active or not active_only]
    else:
        providers = await repo.list_all(active_only=active_only)
    return ApiSuccess(data=[ProviderResponse.model_validate(p) for p in providers])


@router.get("/export.csv")
async def export_providers_csv(
    active_only: bool = Query(False),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Response:
    providers = await ProviderRepository(db).list_all(active_only=active_only)
    return Response(
        content=providers_csv(providers),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="providers-{date.today().isoformat()}.csv"'},
    )


@router.get("/{provider_id}", response_model=ApiSuccess[ProviderResponse])
async def get_provider(
    provider_id: uuid.UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await ProviderRepository(db).get_by_id(provider_id)
    if provider is None:
        raise NotFoundError("Provider not found")
    return ApiSuccess(data=ProviderResponse.model_validate(provider))


@router.post("", response_model=ApiSuccess[ProviderResponse], status_code=201)
async def create_provider(
    body: ProviderCreate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await ProviderRepository(db).create(**body.model_dump())
    await record_admin_action(
        db, request, admin, "create", "provider", provider.id, changes=body.model_dump(mode="json")
    )
    return ApiSuccess(data=ProviderResponse.model_validate(provider))


@router.patch("/{provider_id}", response_model=ApiSuccess[ProviderResponse])
async def update_provider(
    provider_id: uuid.UUID,
    body: ProviderUpdate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailedError("No fields to update")
    provider = await ProviderRepository(db).update(provider_id, **updates)
    if provider is None:
        raise NotFoundError("Provider not found")
    await record_admin_action(
        db, request, admin, "update", "provider", provider_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return ApiSuccess(data=ProviderResponse.model_validate(provider))


@router.post("/{provider_id}/deactivate", response_model=ApiSuccess[ProviderResponse])
async def deactivate_provider(
    provider_id: uuid.UUID,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft-deactivate; providers are never deleted."""
    provider = await ProviderRepository(db).deactivate(provider_id)
    if provider is None:
        raise NotFoundError("Provider not found")
    await record_admin_action(
        db, request, admin, "deactivate", "provider", provider_id,
        changes={"is_active": False, "is_bookable": False},
    )
    return ApiSuccess(data=ProviderResponse.model_validate(provider))
