"""
Slot consolidation - groups per-provider slots into patient-facing time options.

Patients pick a clock time, not a provider: every provider slot that starts at
the same HH:MM collapses into one ConsolidatedTimeSlot, and choosing it binds
the booking to the first slot of the group.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from .schemas import AvailableSlot, ConsolidatedTimeSlot, TimeSlot

logger = logging.getLogger(__name__)


class SlotNotFoundError(LookupError):
    """Raised when a selection names a time that is not among the consolidated slots"""


def slot_time_key(start_time: str) -> str:
    """HH:MM portion of an ISO datetime string (timezone-naive)"""
    _, sep, clock = start_time.partition("T")
    if not sep or not clock:
        return start_time
    return clock[:5]


def format_time_display(time_str: str) -> str:
    """Convert 24-hour HH:MM to 12-hour "h:mm am/pm" """
    try:
        hours_str, minutes_str = time_str.split(":")[:2]
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        logger.debug(f"Failed to format time for display: {time_str}")
        return time_str

    period = "pm" if hours >= 12 else "am"
    if hours == 0:
        display_hours = 12
    elif hours > 12:
        display_hours = hours - 12
    else:
        display_hours = hours
    return f"{display_hours}:{minutes:02d} {period}"


def consolidate_time_slots(slots: list[TimeSlot]) -> list[ConsolidatedTimeSlot]:
    """Group slots by start clock time, one entry per distinct HH:MM, earliest first"""
    grouped: dict[str, list[TimeSlot]] = {}
    for slot in slots:
        grouped.setdefault(slot_time_key(slot.start_time), []).append(slot)

    # Keys are zero-padded HH:MM so string order is time-of-day order
    return [
        ConsolidatedTimeSlot(
            time=time_key,
            displayTime=format_time_display(time_key),
            availableSlots=time_slots,
            isSelected=False,
        )
        for time_key, time_slots in sorted(grouped.items())
    ]


def select_consolidated_slot(
    consolidated: list[ConsolidatedTimeSlot],
    time_key: str,
    provider_id: Optional[str] = None,
) -> tuple[list[ConsolidatedTimeSlot], TimeSlot]:
    """
    Mark the slot at `time_key` as selected and bind to one of its underlying slots.

    The first slot is bound unless a provider is pinned, in which case the first
    slot belonging to that provider is bound.

    Args:
        consolidated: Output of consolidate_time_slots
        time_key: HH:MM of the chosen option
        provider_id: Provider pinned by the caller (book-by-provider mode)

    Returns:
        (consolidated list with isSelected updated, the bound TimeSlot)

    Raises:
        SlotNotFoundError: If no consolidated slot has that time, or the pinned
            provider has no slot at that time
    """
    chosen = next((slot for slot in consolidated if slot.time == time_key), None)
    if chosen is None or not chosen.availableSlots:
        raise SlotNotFoundError(f"No available slot at {time_key}")

    if provider_id:
        bound = next((slot for slot in chosen.availableSlots if slot.provider_id == provider_id), None)
        if bound is None:
            raise SlotNotFoundError(f"Provider {provider_id} has no available slot at {time_key}")
    else:
        bound = chosen.availableSlots[0]

    updated = [
        slot.model_copy(update={"isSelected": slot.time == time_key}) for slot in consolidated
    ]
    return updated, bound


def available_slots_to_time_slots(available: list[AvailableSlot]) -> list[TimeSlot]:
    """Turn generated {date, time, duration} slots into ISO start/end TimeSlots"""
    converted = []
    for slot in available:
        start = datetime.fromisoformat(f"{slot.date.isoformat()}T{slot.time}:00")
        end = start + timedelta(minutes=slot.duration)
        converted.append(
            TimeSlot(
                start_time=start.isoformat(),
                end_time=end.isoformat(),
                provider_id=slot.provider_id,
                available=slot.available,
            )
        )
    return converted
