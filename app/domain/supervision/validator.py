"""
Supervision relationship validation.

Pure rules shared by the advisory /validate endpoint and the write path. The
write path runs them again inside the transaction, against rows locked with
SELECT ... FOR UPDATE, so the result reflects what is actually stored.
"""

from datetime import date
from typing import Any, Iterable, Optional

MIN_CONCURRENCY_CAP = 1
MAX_CONCURRENCY_CAP = 100


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def periods_overlap(
    start: date,
    end: Optional[date],
    existing_start: date,
    existing_end: Optional[date],
) -> bool:
    """
    Whether two supervision periods share at least one day.

    Bounds are inclusive calendar dates and a missing end date means the period
    runs indefinitely. A period starting the day after another one ends does not
    overlap it.
    """
    starts_during = start >= existing_start and (existing_end is None or start <= existing_end)
    ends_during = end is not None and end >= existing_start and (
        existing_end is None or end <= existing_end
    )
    spans = start <= existing_start and (
        end is None or (existing_end is not None and end >= existing_end)
    )
    return starts_during or ends_during or spans


def _cap_is_valid(cap: Any) -> bool:
    if isinstance(cap, bool):
        return False
    if isinstance(cap, str):
        cap = cap.strip()
        if not cap.isdigit():
            return False
        cap = int(cap)
    if not isinstance(cap, int):
        return False
    return MIN_CONCURRENCY_CAP <= cap <= MAX_CONCURRENCY_CAP


def validate_relationship(
    candidate: Any,
    existing: Iterable[Any],
    editing_id: Optional[str] = None,
) -> list[str]:
    """
    Check a candidate supervision relationship against the existing ones.

    Args:
        candidate: Relationship to be written (model, ORM row or dict)
        existing: Relationships currently stored; rows of other residents are ignored
        editing_id: Id of the relationship being edited, excluded from the comparison

    Returns:
        Every rule violation found, empty when the candidate is valid
    """
    errors = []

    resident_id = _field(candidate, "resident_provider_id")
    attending_id = _field(candidate, "attending_provider_id")

    if not resident_id:
        errors.append("Resident is required")
    if not attending_id:
        errors.append("Attending physician is required")
    if resident_id and attending_id and resident_id == attending_id:
        errors.append("Resident and attending cannot be the same person")

    if resident_id and attending_id and _field(candidate, "status", "active") == "active":
        others = [
            r
            for r in existing
            if _field(r, "id") != editing_id
            and _field(r, "resident_provider_id") == resident_id
            and _field(r, "status") == "active"
        ]

        start = _field(candidate, "effective_date")
        end = _field(candidate, "expiration_date")
        for other in others:
            if start is not None and periods_overlap(
                start, end, _field(other, "effective_date"), _field(other, "expiration_date")
            ):
                errors.append(
                    "Overlapping supervision period with existing "
                    f"{_field(other, 'designation')} relationship "
                    f"({_field(other, 'attending_name', 'Unknown Attending')})"
                )

        if _field(candidate, "designation") == "primary" and any(
            _field(r, "designation") == "primary" for r in others
        ):
            errors.append("Resident already has a primary supervising physician")

    cap = _field(candidate, "concurrency_cap")
    if cap is not None and cap != "" and not _cap_is_valid(cap):
        errors.append("Concurrency cap must be between 1 and 100")

    return errors
