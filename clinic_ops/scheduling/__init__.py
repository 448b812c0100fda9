"""Provider availability and slot generation."""

from clinic_ops.scheduling.models import (
    AvailabilityReport,
    AvailableSlot,
    DaySchedule,
    ExceptionSpec,
    TimeBlock,
    WeeklyBlockSpec,
)
from clinic_ops.scheduling.slots import (
    AvailabilityService,
    generate_slots,
    generate_time_slots,
)

__all__ = [
    "AvailabilityReport",
    "AvailabilityService",
    "AvailableSlot",
    "DaySchedule",
    "ExceptionSpec",
    "TimeBlock",
    "WeeklyBlockSpec",
    "generate_slots",
    "generate_time_slots",
]
