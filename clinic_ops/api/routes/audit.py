"""Audit trail endpoints (admin only)."""

import uuid
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import require_admin
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.core.repository import AuditRepository

router = APIRouter()


class AuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    action: str
    resource_type: str
    resource_id: str
    performed_by: Optional[str] = None
    changes: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None


@router.get("", response_model=ApiSuccess[list[AuditEntry]])
async def list_audit_entries(
    resource_type: str = Query(..., min_length=1, description="e.g. provider, contract, supervision"),
    resource_id: str = Query(..., min_length=1),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Audit entries for one resource, newest first."""
    rows = await AuditRepository(db).list_for_resource(resource_type, resource_id)
    return ApiSuccess(data=[AuditEntry.model_validate(r) for r in rows])
