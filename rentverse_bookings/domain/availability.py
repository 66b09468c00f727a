"""Date-range overlap rules for the property conflict ledger"""

from datetime import date
from typing import Iterable, List
from rentverse_bookings.domain.models import AvailabilityResult, ConflictWindow
from rentverse_bookings.domain.exceptions import ValidationError


def validate_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")


def ranges_overlap(s1: date, e1: date, s2: date, e2: date) -> bool:
    """Inclusive endpoints: [s1, e1] and [s2, e2] clash iff e1 >= s2 and s1 <= e2"""
    return e1 >= s2 and s1 <= e2


def evaluate_availability(
    windows: Iterable[ConflictWindow],
    start_date: date,
    end_date: date,
) -> AvailabilityResult:
    """Filter reserved windows down to those clashing with the requested range"""
    validate_range(start_date, end_date)
    conflicts: List[ConflictWindow] = [
        w for w in windows
        if ranges_overlap(w.start_date, w.end_date, start_date, end_date)
    ]
    return AvailabilityResult(available=not conflicts, conflicts=conflicts)
