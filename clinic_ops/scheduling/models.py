"""Pydantic models for availability slot generation."""

import uuid
from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field

from clinic_ops.core.models import ExceptionType


class TimeBlock(BaseModel):
    """One contiguous window of a provider's weekly template."""

    start_time: time
    end_time: time


class DaySchedule(BaseModel):
    is_available: bool = False
    time_blocks: list[TimeBlock] = []


class AvailableSlot(BaseModel):
    """A bookable start time for a provider on a date."""

    date: date
    time: str = Field(description="Slot start as HH:MM")
    provider_id: uuid.UUID
    provider_name: str
    duration: int
    is_available: bool = True


class LoadStatus(BaseModel):
    """Which inputs were read successfully for a slot computation."""

    schedule_loaded: bool = True
    exceptions_loaded: bool = True
    appointments_loaded: bool = True

    @property
    def degraded(self) -> bool:
        return not (self.schedule_loaded and self.exceptions_loaded and self.appointments_loaded)


class AvailabilityReport(BaseModel):
    provider_id: uuid.UUID
    provider_name: str
    start_date: date
    end_date: date
    duration: int
    weekly_schedule: dict[int, DaySchedule] = {}
    exceptions_count: int = 0
    appointments_count: int = 0
    slots: list[AvailableSlot] = []
    load_status: LoadStatus = LoadStatus()


class ExceptionSpec(BaseModel):
    """Input shape for creating an availability exception."""

    exception_date: date
    end_date: Optional[date] = None
    exception_type: ExceptionType
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None


class WeeklyBlockSpec(BaseModel):
    """Input shape for one weekly template row (0 = Sunday)."""

    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_recurring: bool = True
