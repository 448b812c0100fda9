"""Payer administration endpoints."""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.audit import record_admin_action
from clinic_ops.api.dependencies import require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.errors import NotFoundError, ValidationFailedError
from clinic_ops.core.repository import PayerRepository

router = APIRouter()


class PayerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    payer_type: Optional[str] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    status_code: Optional[str] = None
    effective_date: Optional[date] = None
    requires_attending: bool = False
    allows_supervised: bool = True
    intakeq_service_id: Optional[str] = None


class PayerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    payer_type: Optional[str] = None
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    status_code: Optional[str] = None
    effective_date: Optional[date] = None
    requires_attending: Optional[bool] = None
    allows_supervised: Optional[bool] = None
    intakeq_service_id: Optional[str] = None


class PayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    payer_type: Optional[str] = None
    state: Optional[str] = None
    status_code: Optional[str] = None
    effective_date: Optional[date] = None
    requires_attending: bool
    allows_supervised: bool
    intakeq_service_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@router.get("", response_model=ApiSuccess[list[PayerResponse]])
async def list_payers(
    state: Optional[str] = Query(None, min_length=2, max_length=2),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payers = await PayerRepository(db).list_all(state=state.upper() if state else None)
    return ApiSuccess(data=[PayerResponse.model_validate(p) for p in payers])


@router.get("/{payer_id}", response_model=ApiSuccess[PayerResponse])
async def get_payer(
    payer_id: uuid.UUID,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payer = await PayerRepository(db).get_by_id(payer_id)
    if payer is None:
        raise NotFoundError("Payer not found")
    return ApiSuccess(data=PayerResponse.model_validate(payer))


@router.post("", response_model=ApiSuccess[PayerResponse], status_code=201)
async def create_payer(
    body: PayerCreate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    values = body.model_dump()
    if values["state"]:
        values["state"] = values["state"].upper()
    payer = await PayerRepository(db).create(**values)
    await record_admin_action(db, request, admin, "create", "payer", payer.id, changes=body.model_dump(mode="json"))
    return ApiSuccess(data=PayerResponse.model_validate(payer))


@router.patch("/{payer_id}", response_model=ApiSuccess[PayerResponse])
async def update_payer(
    payer_id: uuid.UUID,
    body: PayerUpdate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailedError("No fields to update")
    if updates.get("state"):
        updates["state"] = updates["state"].upper()
    payer = await PayerRepository(db).update(payer_id, **updates)
    if payer is None:
        raise NotFoundError("Payer not found")
    await record_admin_action(
        db, request, admin, "update", "payer", payer_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return ApiSuccess(data=PayerResponse.model_validate(payer))
