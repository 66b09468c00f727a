"""Booking aggregate: availability, creation, contract attachment and read models"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session

from rentverse_bookings.domain.availability import evaluate_availability, validate_range
from rentverse_bookings.domain.exceptions import ConflictError, NotFoundError, UpstreamFailure, ValidationError
from rentverse_bookings.domain.installments import effective_status, generate_schedule, to_money
from rentverse_bookings.domain.models import (
    AvailabilityResult,
    BookingStatus,
    ContractDocument,
    InstallmentStatus,
    PaymentType,
)
from rentverse_bookings.domain.payments import parse_payment_type
from rentverse_bookings.infrastructure.database.models import Booking, Installment
from rentverse_bookings.infrastructure.database.repositories import (
    AgreementRepository,
    BookingRepository,
    ConflictRepository,
    InstallmentRepository,
    PropertyRepository,
)
from rentverse_bookings.infrastructure.observability.metrics import (
    availability_conflict_counter,
    contract_failure_counter,
    record_booking,
)
from rentverse_bookings.services.contracts import ContractIssuer, placeholder_contract
from rentverse_bookings.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

# Bookings in these states can no longer be cancelled
CLOSED_STATUSES = {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value}


@dataclass
class BookingResult:
    booking: Booking
    installments: List[Installment]
    contract_url: str
    contract_placeholder: bool


@dataclass
class UnpaidSummary:
    overdue: List[Installment] = field(default_factory=list)
    upcoming: List[Installment] = field(default_factory=list)

    @property
    def all(self) -> List[Installment]:
        return sorted(self.overdue + self.upcoming, key=lambda i: (i.due_date, i.installment_number))

    @property
    def total_amount(self) -> Decimal:
        return sum((i.amount for i in self.all), Decimal("0.00"))


def payment_flow(payment_type: str) -> str:
    return "Direct Payment" if payment_type == PaymentType.CASH.value else "Gateway Invoice"


class BookingService:
    """Coordinates the conflict ledger, schedule generator and contract issuance"""

    def __init__(self, db: Session, contract_issuer: ContractIssuer | None = None):
        self.db = db
        self.contract_issuer = contract_issuer or ContractIssuer()
        self.properties = PropertyRepository(db)
        self.bookings = BookingRepository(db)
        self.conflicts = ConflictRepository(db)
        self.installments = InstallmentRepository(db)
        self.agreements = AgreementRepository(db)

    def check_availability(self, property_id: uuid.UUID, start_date: date, end_date: date) -> AvailabilityResult:
        validate_range(start_date, end_date)
        windows = self.conflicts.find_overlapping(property_id, start_date, end_date)
        return evaluate_availability(windows, start_date, end_date)

    async def create_booking(
        self,
        tenant_id: uuid.UUID,
        property_id: uuid.UUID,
        start_date: date,
        end_date: date,
        total_amount: Decimal,
        payment_type: str,
        installment_count: int = 1,
        security_deposit: Optional[Decimal] = None,
    ) -> BookingResult:
        """
        Create a booking with its installment schedule and rental agreement.

        Flow:
        1. Validate input (no writes yet)
        2. Lock the property row and re-check the conflict ledger
        3. Insert booking (PENDING), conflict record and installments, then commit
        4. Issue the contract; on failure fall back to a flagged placeholder
        5. Attach the contract and move the booking to CONFIRMED
        """
        # 1. Validation happens before any write
        payment = parse_payment_type(payment_type)
        validate_range(start_date, end_date)
        schedule = generate_schedule(total_amount, installment_count, start_date)
        deposit = to_money(security_deposit) if security_deposit is not None else None
        if deposit is not None and deposit < 0:
            raise ValidationError("security_deposit must not be negative")

        try:
            # 2. Row lock serializes concurrent bookings for the same property
            prop = self.properties.get_for_update(property_id)
            if prop is None:
                raise NotFoundError("Property not found")
            if not prop.is_available:
                raise ConflictError("Property is not open for booking")

            availability = evaluate_availability(
                self.conflicts.find_overlapping(property_id, start_date, end_date),
                start_date,
                end_date,
            )
            if not availability.available:
                availability_conflict_counter.inc()
                raise ConflictError("Property not available for selected dates")

            # 3. Booking, conflict and schedule commit together
            booking = self.bookings.create(
                property_id=property_id,
                tenant_id=tenant_id,
                landlord_id=prop.owner_id,
                start_date=start_date,
                end_date=end_date,
                total_amount=to_money(total_amount),
                security_deposit=deposit,
                currency=prop.currency_code,
                payment_type=payment,
                installment_count=installment_count,
            )
            self.conflicts.record(property_id, start_date, end_date, booking.id)
            self.installments.add_schedule(booking.id, schedule)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # 4. Contract issuance runs after the reservation is durable
        document = await self._issue_or_placeholder(booking)

        # 5. Attach contract
        try:
            self._attach_contract(booking, document)
            booking.status = BookingStatus.CONFIRMED.value
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_booking(payment.value, document.is_placeholder)
        return BookingResult(
            booking=booking,
            installments=list(booking.installments),
            contract_url=document.url,
            contract_placeholder=document.is_placeholder,
        )

    async def _issue_or_placeholder(self, booking: Booking) -> ContractDocument:
        """Never raises; any issuance error yields a flagged placeholder"""
        try:
            return await self.contract_issuer.issue(booking)
        except UpstreamFailure as e:
            contract_failure_counter.inc()
            logger.warning(
                f"Contract issuance failed, using placeholder: {e}",
                extra={"booking_id": str(booking.id), "step": "contract_fallback"},
            )
        except Exception as e:
            contract_failure_counter.inc()
            logger.error(
                f"Unexpected contract issuance error, using placeholder: {e}",
                extra={"booking_id": str(booking.id), "step": "contract_fallback"},
                exc_info=e,
            )
        return placeholder_contract(booking.id)

    def _attach_contract(self, booking: Booking, document: ContractDocument) -> None:
        self.agreements.save(booking.id, document)
        booking.contract_pdf_url = document.url
        booking.contract_generated_at = utcnow()

    async def reissue_contract(self, booking_id: uuid.UUID, tenant_id: uuid.UUID) -> ContractDocument:
        """Replace a placeholder agreement with a real one; issuance errors propagate"""
        booking = self.get_booking(booking_id, tenant_id)
        agreement = self.agreements.get_for_booking(booking.id)
        if agreement is not None and not agreement.is_placeholder:
            raise ConflictError("Booking already has an issued contract")

        document = await self.contract_issuer.issue(booking)
        try:
            self._attach_contract(booking, document)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return document

    def cancel_booking(self, booking_id: uuid.UUID, tenant_id: uuid.UUID) -> Booking:
        """Cancel before completion and release the reserved dates"""
        booking = self.get_booking(booking_id, tenant_id)
        if booking.status in CLOSED_STATUSES:
            raise ConflictError(f"Booking is {booking.status} and cannot be cancelled")
        if any(i.status == InstallmentStatus.PAID.value for i in booking.installments):
            raise ConflictError("Booking has paid installments and cannot be cancelled")

        try:
            booking.status = BookingStatus.CANCELLED.value
            released = self.conflicts.release(booking.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Booking cancelled", extra={"booking_id": str(booking.id), "released_conflicts": released})
        return booking

    def get_booking(self, booking_id: uuid.UUID, tenant_id: uuid.UUID) -> Booking:
        booking = self.bookings.get_for_tenant(booking_id, tenant_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def list_bookings(self, tenant_id: uuid.UUID, status: Optional[str] = None) -> List[Booking]:
        booking_status = None
        if status:
            try:
                booking_status = BookingStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown booking status: {status}")
        return self.bookings.list_for_tenant(tenant_id, booking_status)

    def list_installments(
        self,
        tenant_id: uuid.UUID,
        status: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[Installment]:
        installment_status = None
        if status:
            try:
                installment_status = InstallmentStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown installment status: {status}")
        return self.installments.list_for_tenant(tenant_id, installment_status, today or date.today())

    def unpaid_installments(self, tenant_id: uuid.UUID, today: Optional[date] = None) -> UnpaidSummary:
        """UNPAID installments split with the same OVERDUE rule the listing uses"""
        today = today or date.today()
        summary = UnpaidSummary()
        for installment in self.installments.list_for_tenant(tenant_id, InstallmentStatus.UNPAID):
            if effective_status(installment.status, installment.due_date, today) == InstallmentStatus.OVERDUE:
                summary.overdue.append(installment)
            else:
                summary.upcoming.append(installment)
        return summary
