from datetime import date

import pytest

from app.domain.scheduling.consolidation import (
    SlotNotFoundError,
    available_slots_to_time_slots,
    consolidate_time_slots,
    format_time_display,
    select_consolidated_slot,
    slot_time_key,
)
from app.domain.scheduling.schemas import AvailableSlot, TimeSlot


def slot(start: str, provider: str, end: str = "") -> TimeSlot:
    return TimeSlot(start_time=start, end_time=end or start, provider_id=provider)


def test_slot_time_key_uses_clock_part_of_iso_string():
    assert slot_time_key("2026-03-02T09:30:00") == "09:30"
    assert slot_time_key("2026-03-02T14:00:00.000Z") == "14:00"


def test_slot_time_key_without_t_is_whole_string():
    assert slot_time_key("09:30") == "09:30"


@pytest.mark.parametrize(
    "value,expected",
    [
        ("00:00", "12:00 am"),
        ("00:15", "12:15 am"),
        ("09:05", "9:05 am"),
        ("11:59", "11:59 am"),
        ("12:00", "12:00 pm"),
        ("13:30", "1:30 pm"),
        ("23:45", "11:45 pm"),
    ],
)
def test_format_time_display(value, expected):
    assert format_time_display(value) == expected


def test_format_time_display_returns_unparseable_input_unchanged():
    assert format_time_display("soon") == "soon"


def test_consolidate_groups_by_time_and_sorts():
    slots = [
        slot("2026-03-02T10:00:00", "b"),
        slot("2026-03-02T09:00:00", "a"),
        slot("2026-03-02T10:00:00", "c"),
        slot("2026-03-02T09:00:00", "d"),
    ]

    consolidated = consolidate_time_slots(slots)

    assert [c.time for c in consolidated] == ["09:00", "10:00"]
    assert [c.displayTime for c in consolidated] == ["9:00 am", "10:00 am"]
    assert [s.provider_id for s in consolidated[0].availableSlots] == ["a", "d"]
    assert [s.provider_id for s in consolidated[1].availableSlots] == ["b", "c"]
    assert not any(c.isSelected for c in consolidated)


def test_consolidate_keeps_every_input_slot():
    slots = [slot(f"2026-03-02T{h:02d}:{m:02d}:00", f"p{h}{m}") for h in (8, 9, 13) for m in (0, 30)]
    slots += [slot("2026-03-02T09:30:00", "extra")]

    consolidated = consolidate_time_slots(slots)

    regrouped = [s for c in consolidated for s in c.availableSlots]
    assert sorted(s.provider_id for s in regrouped) == sorted(s.provider_id for s in slots)
    assert len({c.time for c in consolidated}) == len(consolidated) == 6


def test_consolidate_empty():
    assert consolidate_time_slots([]) == []


def test_select_binds_first_slot_of_group():
    consolidated = consolidate_time_slots(
        [slot("2026-03-02T09:00:00", "a"), slot("2026-03-02T10:00:00", "b"), slot("2026-03-02T10:00:00", "c")]
    )

    updated, bound = select_consolidated_slot(consolidated, "10:00")

    assert bound.provider_id == "b"
    assert [c.isSelected for c in updated] == [False, True]
    # the input list is left untouched
    assert not any(c.isSelected for c in consolidated)


def test_select_with_pinned_provider_binds_that_providers_slot():
    consolidated = consolidate_time_slots(
        [slot("2026-03-02T10:00:00", "a"), slot("2026-03-02T10:00:00", "b", end="2026-03-02T10:45:00")]
    )

    _, bound = select_consolidated_slot(consolidated, "10:00", provider_id="b")

    assert bound.provider_id == "b"
    assert bound.start_time == "2026-03-02T10:00:00"
    assert bound.end_time == "2026-03-02T10:45:00"


def test_select_with_pinned_provider_not_free_at_that_time_raises():
    consolidated = consolidate_time_slots([slot("2026-03-02T10:00:00", "alice")])

    with pytest.raises(SlotNotFoundError):
        select_consolidated_slot(consolidated, "10:00", provider_id="bob")


def test_select_unknown_time_raises():
    consolidated = consolidate_time_slots([slot("2026-03-02T10:00:00", "b")])

    with pytest.raises(SlotNotFoundError):
        select_consolidated_slot(consolidated, "11:00")


def test_available_slots_to_time_slots():
    available = [
        AvailableSlot(date=date(2026, 3, 2), time="09:30", duration=45, provider_id="a"),
        AvailableSlot(date=date(2026, 3, 2), time="23:30:00", duration=60, provider_id="b"),
    ]

    converted = available_slots_to_time_slots(available)

    assert converted[0].start_time == "2026-03-02T09:30:00"
    assert converted[0].end_time == "2026-03-02T10:15:00"
    assert converted[1].start_time == "2026-03-02T23:30:00"
    assert converted[1].end_time == "2026-03-03T00:30:00"
