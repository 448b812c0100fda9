"""Supervision relationship endpoints."""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.audit import record_admin_action
from clinic_ops.api.dependencies import require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.errors import ConflictError, NotFoundError, ValidationFailedError
from clinic_ops.core.repository import PayerRepository, ProviderRepository, SupervisionRepository

router = APIRouter()


class SupervisionCreate(BaseModel):
    supervisor_provider_id: uuid.UUID
    supervisee_provider_id: uuid.UUID
    payer_id: uuid.UUID
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None


class SupervisionUpdate(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class SupervisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    supervisor_provider_id: uuid.UUID
    supervisee_provider_id: uuid.UUID
    payer_id: uuid.UUID
    is_active: bool
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None
    supervisor_name: Optional[str] = None
    supervisee_name: Optional[str] = None
    created_at: Optional[datetime] = None


def _to_response(rel) -> SupervisionResponse:
    view = SupervisionResponse.model_validate(rel)
    view.supervisor_name = rel.supervisor.full_name if rel.supervisor else None
    view.supervisee_name = rel.supervisee.full_name if rel.supervisee else None
    return view


@router.get("", response_model=ApiSuccess[list[SupervisionResponse]])
async def list_supervision(
    payer_id: Optional[uuid.UUID] = Query(None),
    active_only: bool = Query(False),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rows = await SupervisionRepository(db).list_all(payer_id=payer_id, active_only=active_only)
    return ApiSuccess(data=[_to_response(r) for r in rows])


@router.post("", response_model=ApiSuccess[SupervisionResponse], status_code=201)
async def create_supervision(
    body: SupervisionCreate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if body.supervisor_provider_id == body.supervisee_provider_id:
        raise ValidationFailedError("A provider cannot supervise themselves")
    if body.end_date and body.end_date < body.start_date:
        raise ValidationFailedError("end_date must be on or after start_date")

    providers = ProviderRepository(db)
    for pid in (body.supervisor_provider_id, body.supervisee_provider_id):
        if await providers.get_by_id(pid) is None:
            raise NotFoundError("Provider not found", details={"provider_id": str(pid)})
    if await PayerRepository(db).get_by_id(body.payer_id) is None:
        raise NotFoundError("Payer not found")

    repo = SupervisionRepository(db)
    existing = await repo.find_existing(body.supervisor_provider_id, body.supervisee_provider_id, body.payer_id)
    if existing is not None:
        raise ConflictError(
            "An active supervision relationship already exists",
            details={"id": str(existing.id)},
        )

    rel = await repo.create(**body.model_dump())
    await record_admin_action(
        db, request, admin, "create", "supervision_relationship", rel.id,
        changes=body.model_dump(mode="json"),
    )
    return ApiSuccess(data=_to_response(rel))


@router.patch("/{relationship_id}", response_model=ApiSuccess[SupervisionResponse])
async def update_supervision(
    relationship_id: uuid.UUID,
    body: SupervisionUpdate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    repo = SupervisionRepository(db)
    rel = await repo.get_by_id(relationship_id)
    if rel is None:
        raise NotFoundError("Supervision relationship not found")

    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailedError("No fields to update")
    start = updates.get("start_date", rel.start_date)
    end = updates.get("end_date", rel.end_date)
    if start is None:
        raise ValidationFailedError("start_date is required")
    if end and end < start:
        raise ValidationFailedError("end_date must be on or after start_date")

    rel = await repo.update(relationship_id, **updates)
    await record_admin_action(
        db, request, admin, "update", "supervision_relationship", relationship_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return ApiSuccess(data=_to_response(rel))


@router.post("/{relationship_id}/deactivate", response_model=ApiSuccess[SupervisionResponse])
async def deactivate_supervision(
    relationship_id: uuid.UUID,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rel = await SupervisionRepository(db).deactivate(relationship_id)
    if rel is None:
        raise NotFoundError("Supervision relationship not found")
    await record_admin_action(
        db, request, admin, "deactivate", "supervision_relationship", relationship_id,
        changes={"is_active": False},
    )
    return ApiSuccess(data=_to_response(rel))
