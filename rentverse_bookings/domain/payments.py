"""Installment payment state machine.

Stored installment states are UNPAID and PAID. PAID is terminal: every
transition below refuses to touch an installment that is already PAID.
OVERDUE is never written, see `installments.effective_status`.

Transactions move PENDING -> COMPLETED or PENDING -> FAILED and are never
reopened.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from rentverse_bookings.domain.models import (
    BookingStatus,
    InstallmentStatus,
    PaymentMethod,
    PaymentType,
    TransactionStatus,
)
from rentverse_bookings.domain.exceptions import AlreadyPaidError, ConflictError, ValidationError
from rentverse_bookings.utils.date_utils import epoch_millis

# Gateway statuses that mean the invoice has been settled
SETTLED_STATUSES = {"PAID", "SETTLED"}
EXPIRED_STATUS = "EXPIRED"


def parse_payment_method(value: Optional[str]) -> Optional[PaymentMethod]:
    if value is None:
        return None
    try:
        return PaymentMethod(value)
    except ValueError:
        valid = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Invalid payment method. Valid options: {valid}")


def parse_payment_type(value: Optional[str]) -> PaymentType:
    try:
        return PaymentType(value)
    except ValueError:
        raise ValidationError("Payment type is required and must be either CASH or ONLINE")


def is_paid(installment) -> bool:
    return installment.status == InstallmentStatus.PAID.value


def ensure_payable(installment) -> None:
    if is_paid(installment):
        raise AlreadyPaidError(str(installment.id))


def ensure_booking_open(booking) -> None:
    """A cancelled booking no longer accepts payments"""
    if booking.status == BookingStatus.CANCELLED.value:
        raise ConflictError(f"Booking {booking.id} is cancelled")


def parse_gateway_amount(value) -> Decimal:
    """
    Amount reported by the gateway for a settled invoice.

    Raises:
        ValueError: Missing, non-numeric, non-finite or not positive
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def mark_paid(
    installment,
    amount: Decimal,
    paid_at: datetime,
    method: PaymentMethod,
) -> None:
    """UNPAID -> PAID"""
    ensure_payable(installment)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Paid amount must be a positive number, got {amount}")
    installment.status = InstallmentStatus.PAID.value
    installment.paid_amount = amount
    installment.paid_at = paid_at
    installment.payment_method = method.value


def complete_transaction(transaction, paid_at: datetime) -> None:
    """PENDING -> COMPLETED"""
    if transaction.status != TransactionStatus.PENDING.value:
        raise ConflictError(f"Transaction {transaction.id} is {transaction.status}, not PENDING")
    transaction.status = TransactionStatus.COMPLETED.value
    transaction.paid_at = paid_at


def fail_transaction(transaction) -> None:
    """PENDING -> FAILED"""
    if transaction.status != TransactionStatus.PENDING.value:
        raise ConflictError(f"Transaction {transaction.id} is {transaction.status}, not PENDING")
    transaction.status = TransactionStatus.FAILED.value


def new_external_id(installment_id, now: datetime) -> str:
    """Fresh gateway reference for each invoice attempt"""
    return f"installment_{installment_id}_{epoch_millis(now)}"


def gateway_method(reported: Optional[str]) -> PaymentMethod:
    """Map the method reported by the gateway, defaulting to bank transfer"""
    if not reported:
        return PaymentMethod.BANK_TRANSFER
    try:
        return PaymentMethod(reported)
    except ValueError:
        return PaymentMethod.BANK_TRANSFER
