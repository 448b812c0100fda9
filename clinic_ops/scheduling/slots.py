"""Availability slot generation.

Slots are produced per calendar day from the provider's weekly template,
with date exceptions overriding or trimming the template and booked
appointment start times removed afterwards.
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.config import Settings, get_settings
from clinic_ops.core.errors import NotFoundError, ValidationFailedError
from clinic_ops.core.models import ExceptionType
from clinic_ops.core.repository import (
    AppointmentRepository,
    AvailabilityRepository,
    ProviderRepository,
)
from clinic_ops.scheduling.models import (
    AvailabilityReport,
    AvailableSlot,
    DaySchedule,
    LoadStatus,
    TimeBlock,
)

logger = logging.getLogger(__name__)

_SKIP_DAY = {ExceptionType.unavailable.value, ExceptionType.vacation.value}


def sunday_based_weekday(day: date) -> int:
    """Day of week with 0 = Sunday, the convention of stored templates."""
    return (day.weekday() + 1) % 7


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def _type_of(exception: Any) -> str:
    kind = exception.exception_type
    return kind.value if isinstance(kind, ExceptionType) else str(kind)


def generate_time_slots(
    start: time,
    end: time,
    duration_minutes: int,
    buffer_minutes: int,
    must_fit: bool = False,
) -> list[time]:
    """Step from *start* by ``duration + buffer`` while the slot starts before *end*.

    With *must_fit*, a slot is emitted only when its whole duration ends by *end*.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, start)
    stop = datetime.combine(anchor, end)
    step = timedelta(minutes=duration_minutes + buffer_minutes)
    length = timedelta(minutes=duration_minutes)

    slots: list[time] = []
    while current < stop:
        if must_fit and current + length > stop:
            break
        slots.append(current.time())
        current += step
        if current.date() != anchor:
            break
    return slots


def build_weekly_schedule(rows: Iterable[Any]) -> dict[int, DaySchedule]:
    """Group weekly template rows by weekday. Non-recurring rows never repeat."""
    schedule = {day: DaySchedule() for day in range(7)}
    for row in sorted(rows, key=lambda r: (r.day_of_week, r.start_time)):
        if getattr(row, "is_recurring", True) is False:
            continue
        day = schedule[row.day_of_week]
        day.is_available = True
        day.time_blocks.append(TimeBlock(start_time=row.start_time, end_time=row.end_time))
    return schedule


def exception_for_date(exceptions: Sequence[Any], day: date) -> Optional[Any]:
    """First exception covering *day*; ``end_date`` extends it over several days."""
    for exc in exceptions:
        last = exc.end_date or exc.exception_date
        if exc.exception_date <= day <= last:
            return exc
    return None


def day_slot_times(
    day: date,
    weekly: dict[int, DaySchedule],
    exception: Optional[Any],
    duration_minutes: int,
    buffer_minutes: int,
    must_fit: bool = False,
) -> list[time]:
    """Unfiltered slot start times for one day, after applying *exception*."""
    template = weekly.get(sunday_based_weekday(day)) or DaySchedule()
    blocks = template.time_blocks if template.is_available else []
    blocked_range: Optional[tuple[time, time]] = None

    if exception is not None:
        kind = _type_of(exception)
        if kind in _SKIP_DAY:
            return []
        if kind == ExceptionType.custom_hours.value:
            if exception.start_time is None or exception.end_time is None:
                return []
            blocks = [TimeBlock(start_time=exception.start_time, end_time=exception.end_time)]
        elif kind == ExceptionType.partial_block.value:
            if exception.start_time is not None and exception.end_time is not None:
                blocked_range = (exception.start_time, exception.end_time)

    times: list[time] = []
    for block in blocks:
        for slot in generate_time_slots(
            block.start_time, block.end_time, duration_minutes, buffer_minutes, must_fit
        ):
            if blocked_range and blocked_range[0] <= slot < blocked_range[1]:
                continue
            times.append(slot)
    return times


def booked_times_by_date(appointments: Iterable[Any]) -> dict[date, set[str]]:
    booked: dict[date, set[str]] = {}
    for appt in appointments:
        if appt.appointment_time is None:
            continue
        booked.setdefault(appt.appointment_date, set()).add(format_hhmm(appt.appointment_time))
    return booked


def generate_slots(
    provider_id: uuid.UUID,
    provider_name: str,
    start_date: date,
    end_date: date,
    weekly: dict[int, DaySchedule],
    exceptions: Sequence[Any],
    appointments: Iterable[Any],
    duration_minutes: int,
    buffer_minutes: int = 15,
    must_fit: bool = False,
) -> list[AvailableSlot]:
    """Open slots for every day in ``[start_date, end_date]``.

    A booked appointment removes only the slot with the identical HH:MM start.
    """
    booked = booked_times_by_date(appointments)
    slots: list[AvailableSlot] = []
    day = start_date
    while day <= end_date:
        taken = booked.get(day, set())
        for slot_time in day_slot_times(
            day, weekly, exception_for_date(exceptions, day),
            duration_minutes, buffer_minutes, must_fit,
        ):
            label = format_hhmm(slot_time)
            if label in taken:
                continue
            slots.append(AvailableSlot(
                date=day,
                time=label,
                provider_id=provider_id,
                provider_name=provider_name,
                duration=duration_minutes,
            ))
        day += timedelta(days=1)
    return slots


class AvailabilityService:
    """Loads a provider's schedule inputs and computes open slots."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.providers = ProviderRepository(session)
        self.availability = AvailabilityRepository(session)
        self.appointments = AppointmentRepository(session)

    async def get_available_slots(
        self,
        provider_id: uuid.UUID,
        start_date: date,
        end_date: date,
        duration_minutes: Optional[int] = None,
    ) -> AvailabilityReport:
        if end_date < start_date:
            raise ValidationFailedError("end_date must be on or after start_date")
        duration = duration_minutes or self.settings.default_appointment_minutes
        if duration <= 0:
            raise ValidationFailedError("duration must be positive")

        provider = await self.providers.get_by_id(provider_id)
        if provider is None:
            raise NotFoundError("Provider not found", details={"provider_id": str(provider_id)})

        # Each read runs in its own savepoint so a failed query leaves the
        # transaction usable for the caller.
        status = LoadStatus()
        try:
            async with self.session.begin_nested():
                weekly_rows = await self.availability.get_weekly(provider_id, recurring_only=True)
        except Exception as e:
            logger.warning("Failed to load schedule for provider %s: %s", provider_id, e)
            weekly_rows, status.schedule_loaded = [], False
        try:
            async with self.session.begin_nested():
                exceptions = await self.availability.list_exceptions(provider_id, start_date, end_date)
        except Exception as e:
            logger.warning("Failed to load exceptions for provider %s: %s", provider_id, e)
            exceptions, status.exceptions_loaded = [], False
        try:
            async with self.session.begin_nested():
                appointments = await self.appointments.list_by_provider_date_range(
                    provider_id, start_date, end_date
                )
        except Exception as e:
            logger.warning("Failed to load appointments for provider %s: %s", provider_id, e)
            appointments, status.appointments_loaded = [], False

        weekly = build_weekly_schedule(weekly_rows)
        slots = generate_slots(
            provider.id,
            provider.full_name,
            start_date,
            end_date,
            weekly,
            exceptions,
            appointments,
            duration,
            self.settings.slot_buffer_minutes,
            self.settings.slot_must_fit_block,
        )
        logger.info(
            "Generated %d slot(s) for provider %s between %s and %s",
            len(slots), provider_id, start_date, end_date,
        )
        return AvailabilityReport(
            provider_id=provider.id,
            provider_name=provider.full_name,
            start_date=start_date,
            end_date=end_date,
            duration=duration,
            weekly_schedule=weekly,
            exceptions_count=len(exceptions),
            appointments_count=len(appointments),
            slots=slots,
            load_status=status,
        )

    async def is_slot_open(
        self, provider_id: uuid.UUID, day: date, start: time, duration_minutes: int
    ) -> bool:
        report = await self.get_available_slots(provider_id, day, day, duration_minutes)
        label = format_hhmm(start)
        return any(s.time == label for s in report.slots)
