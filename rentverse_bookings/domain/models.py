"""Domain models - pure Python dataclasses and enums for the booking lifecycle"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class PaymentType(str, Enum):
    """How a booking is settled, fixed at creation"""

    CASH = "CASH"
    ONLINE = "ONLINE"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class InstallmentStatus(str, Enum):
    """Stored states are UNPAID and PAID; OVERDUE is only ever derived"""

    UNPAID = "UNPAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    EWALLET = "EWALLET"
    CREDIT_CARD = "CREDIT_CARD"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class ScheduledInstallment:
    """Single payment in a booking's installment schedule"""

    installment_number: int
    due_date: date
    amount: Decimal
    status: InstallmentStatus = InstallmentStatus.UNPAID


@dataclass
class ConflictWindow:
    """Date range already reserved for a property"""

    property_id: str
    booking_id: Optional[str]
    start_date: date
    end_date: date


@dataclass
class AvailabilityResult:
    """Outcome of a conflict ledger lookup"""

    available: bool
    conflicts: List[ConflictWindow] = field(default_factory=list)


@dataclass
class GatewayInvoice:
    """Invoice issued by the payment gateway"""

    invoice_id: str
    external_id: str
    invoice_url: str
    amount: Decimal
    status: str
    expiry_date: Optional[str] = None


@dataclass
class ContractDocument:
    """Reference to an issued rental agreement"""

    url: str
    key: str
    file_name: str
    size: int
    is_placeholder: bool = False


@dataclass
class WebhookOutcome:
    """Result of processing a gateway callback; always acknowledged with 200"""

    received: bool
    status: int
    detail: str
    installment_id: Optional[str] = None


@dataclass
class PaymentReceipt:
    """Result of paying an installment in cash or confirming an online payment"""

    installment_id: str
    status: InstallmentStatus
    paid_amount: Decimal
    paid_at: datetime
    payment_method: PaymentMethod
