"""Installment schedule generation for booking payments"""

from datetime import date
from decimal import Decimal, ROUND_DOWN
from typing import List
from rentverse_bookings.domain.models import ScheduledInstallment, InstallmentStatus
from rentverse_bookings.domain.exceptions import ValidationError
from rentverse_bookings.utils.date_utils import add_months

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Normalize an amount to two decimal places"""
    return Decimal(str(value)).quantize(CENT)


def generate_schedule(
    total_amount: Decimal,
    count: int,
    start_date: date,
) -> List[ScheduledInstallment]:
    """
    Split a booking total into monthly installments.

    Requirements:
    - `count` installments, numbered from 1
    - Installment i is due `start_date + (i-1)` months, same day of month
      (clamped to the last day when the month is shorter)
    - First count-1 installments get floor(total / count) to the cent,
      the last one absorbs the remainder so the sum equals the total

    Example:
        1000.00 / 3 -> [333.33, 333.33, 333.34]
        100000 cents // 3 = 33333 base, last = 100000 - 2 * 33333 = 33334
    """
    if count < 1:
        raise ValidationError("installment_count must be at least 1")

    total = to_money(total_amount)
    if total <= 0:
        raise ValidationError("total_amount must be positive")

    # Work in minor units so the split is exact
    total_cents = int((total / CENT).to_integral_value(rounding=ROUND_DOWN))
    base_cents = total_cents // count
    remainder = total_cents - base_cents * count

    installments = []
    for i in range(1, count + 1):
        cents = base_cents + (remainder if i == count else 0)
        installments.append(
            ScheduledInstallment(
                installment_number=i,
                due_date=add_months(start_date, i - 1),
                amount=Decimal(cents) * CENT,
            )
        )

    return installments


def effective_status(status: str, due_date: date, today: date) -> InstallmentStatus:
    """OVERDUE is observed at read time: UNPAID and due before today"""
    stored = InstallmentStatus(status)
    if stored == InstallmentStatus.UNPAID and due_date < today:
        return InstallmentStatus.OVERDUE
    return stored
