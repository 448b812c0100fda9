"""Patient engagement-status endpoints."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import get_current_user, get_email_service
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.engagement import (
    CurrentEngagement,
    EngagementService,
    StatusChangeRequest,
    StatusChangeResult,
)
from clinic_ops.engagement.models import HistoryEntry
from clinic_ops.integrations.email import EmailService

router = APIRouter()


@router.get("/{patient_id}/engagement-status", response_model=ApiSuccess[CurrentEngagement])
async def get_engagement_status(
    patient_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current status; patients without a record are implicitly active."""
    status = await EngagementService(db).get_status(patient_id)
    return ApiSuccess(data=status)


@router.put("/{patient_id}/engagement-status", response_model=ApiSuccess[StatusChangeResult])
async def change_engagement_status(
    patient_id: uuid.UUID,
    body: StatusChangeRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email: EmailService = Depends(get_email_service),
):
    service = EngagementService(db, email)
    result = await service.change_status(patient_id, body, is_admin=current_user.is_admin)
    return ApiSuccess(data=result)


@router.get(
    "/{patient_id}/engagement-status/history",
    response_model=ApiSuccess[list[HistoryEntry]],
)
async def get_engagement_history(
    patient_id: uuid.UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    history = await EngagementService(db).get_history(patient_id)
    return ApiSuccess(data=history)
