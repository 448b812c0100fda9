"""Provider-payer network contract endpoints."""

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
from clinic_ops.core.errors import NotFoundError, ValidationFailedError
from clinic_ops.core.models import ContractStatus
from clinic_ops.core.repository import ContractRepository, PayerRepository, ProviderRepository

router = APIRouter()


class ContractCreate(BaseModel):
    provider_id: uuid.UUID
    payer_id: uuid.UUID
    status: ContractStatus = ContractStatus.in_network
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    effective_range_start: Optional[date] = None
    effective_range_end: Optional[date] = None
    bookable_from_date: Optional[date] = None
    notes: Optional[str] = None


class ContractUpdate(BaseModel):
    status: Optional[ContractStatus] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    effective_range_start: Optional[date] = None
    effective_range_end: Optional[date] = None
    bookable_from_date: Optional[date] = None
    notes: Optional[str] = None


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    provider_id: uuid.UUID
    payer_id: uuid.UUID
    status: str
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    effective_range_start: Optional[date] = None
    effective_range_end: Optional[date] = None
    bookable_from_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _check_dates(values: dict) -> None:
    """Expiration after effective date, range end after range start."""
    start, end = values.get("effective_date"), values.get("expiration_date")
    if start and end and end < start:
        raise ValidationFailedError("expiration_date must be on or after effective_date")
    range_start, range_end = values.get("effective_range_start"), values.get("effective_range_end")
    if range_start and range_end and range_end <= range_start:
        raise ValidationFailedError("effective_range_end must be after effective_range_start")


@router.get("", response_model=ApiSuccess[list[ContractResponse]])
async def list_contracts(
    payer_id: Optional[uuid.UUID] = Query(None),
    provider_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ContractStatus] = Query(None),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    contracts = await ContractRepository(db).list(
        payer_id=payer_id, provider_id=provider_id, status=status.value if status else None
    )
    return ApiSuccess(data=[ContractResponse.model_validate(c) for c in contracts])


@router.post("", response_model=ApiSuccess[ContractResponse], status_code=201)
async def create_contract(
    body: ContractCreate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    values = body.model_dump()
    _check_dates(values)
    if await ProviderRepository(db).get_by_id(body.provider_id) is None:
        raise NotFoundError("Provider not found")
    if await PayerRepository(db).get_by_id(body.payer_id) is None:
        raise NotFoundError("Payer not found")

    values["status"] = body.status.value
    contract = await ContractRepository(db).create(**values)
    await record_admin_action(
        db, request, admin, "create", "provider_payer_network", contract.id,
        changes=body.model_dump(mode="json"),
    )
    return ApiSuccess(data=ContractResponse.model_validate(contract))


@router.patch("/{contract_id}", response_model=ApiSuccess[ContractResponse])
async def update_contract(
    contract_id: uuid.UUID,
    body: ContractUpdate,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    repo = ContractRepository(db)
    contract = await repo.get_by_id(contract_id)
    if contract is None:
        raise NotFoundError("Contract not found")

    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailedError("No fields to update")
    merged = {
        name: updates.get(name, getattr(contract, name))
        for name in ("effective_date", "expiration_date", "effective_range_start", "effective_range_end")
    }
    _check_dates(merged)
    if updates.get("status") is not None:
        updates["status"] = updates["status"].value

    contract = await repo.update(contract_id, **updates)
    await record_admin_action(
        db, request, admin, "update", "provider_payer_network", contract_id,
        changes=body.model_dump(mode="json", exclude_unset=True),
    )
    return ApiSuccess(data=ContractResponse.model_validate(contract))


@router.delete("/{contract_id}", response_model=ApiSuccess[dict])
async def delete_contract(
    contract_id: uuid.UUID,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await ContractRepository(db).delete(contract_id):
        raise NotFoundError("Contract not found")
    await record_admin_action(db, request, admin, "delete", "provider_payer_network", contract_id)
    return ApiSuccess(data={"deleted": True, "id": str(contract_id)})
