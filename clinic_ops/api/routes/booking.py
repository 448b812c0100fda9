"""Patient self-booking endpoints."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.api.dependencies import get_current_user, get_email_service, get_practiceq
from clinic_ops.api.envelope import ApiSuccess
from clinic_ops.config import Settings, get_settings
from clinic_ops.core.auth import CurrentUser
from clinic_ops.core.database import get_db
from clinic_ops.integrations.email import EmailService
from clinic_ops.integrations.practiceq import PracticeQClient
from clinic_ops.scheduling.booking import BookingRequest, BookingResult, BookingService, PayerSlot

router = APIRouter()


@router.post("/book", response_model=ApiSuccess[BookingResult], status_code=201)
async def book_appointment(
    body: BookingRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    practiceq: Optional[PracticeQClient] = Depends(get_practiceq),
    email: EmailService = Depends(get_email_service),
):
    """Book an appointment for a patient with a provider bookable for the payer."""
    result = await BookingService(db, settings, practiceq, email).book(body)
    return ApiSuccess(data=result)


@router.get("/slots-for-payer", response_model=ApiSuccess[list[PayerSlot]])
async def slots_for_payer(
    payer_id: uuid.UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    duration: Optional[int] = Query(None, ge=5, le=240),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    slots = await BookingService(db, settings).slots_for_payer(payer_id, start_date, end_date, duration)
    return ApiSuccess(data=slots)
