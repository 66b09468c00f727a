"""Data access layer for properties, bookings and installment payments"""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from rentverse_bookings.infrastructure.database.models import (
    Booking,
    BookingConflict,
    Installment,
    PaymentTransaction,
    Property,
    RentalAgreement,
    User,
)
from rentverse_bookings.domain.models import (
    BookingStatus,
    ContractDocument,
    ConflictWindow,
    InstallmentStatus,
    PaymentMethod,
    PaymentType,
    ScheduledInstallment,
    TransactionStatus,
)


class UserRepository:
    """Repository for user accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.get(User, user_id)


class PropertyRepository:
    """Repository for rentable properties"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, property_id: uuid.UUID) -> Optional[Property]:
        return self.db.get(Property, property_id)

    def get_for_update(self, property_id: uuid.UUID) -> Optional[Property]:
        """Lock the property row so concurrent bookings for it serialize"""
        return (
            self.db.query(Property)
            .filter(Property.id == property_id)
            .with_for_update()
            .first()
        )

    def list(
        self,
        city: Optional[str] = None,
        available: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Property]:
        query = self.db.query(Property)
        if city:
            query = query.filter(Property.city == city)
        if available is not None:
            query = query.filter(Property.is_available == available)
        return query.order_by(Property.created_at.desc()).offset(offset).limit(limit).all()

    def create(
        self,
        owner_id: uuid.UUID,
        title: str,
        address: str,
        city: str,
        price: Decimal,
        currency_code: str,
    ) -> Property:
        db_property = Property(
            owner_id=owner_id,
            title=title,
            address=address,
            city=city,
            price=price,
            currency_code=currency_code,
        )
        self.db.add(db_property)
        self.db.flush()
        return db_property


class ConflictRepository:
    """Repository for the per-property conflict ledger"""

    def __init__(self, db: Session):
        self.db = db

    def find_overlapping(self, property_id: uuid.UUID, start_date: date, end_date: date) -> List[ConflictWindow]:
        """Stored ranges [s, e] with e >= start_date and s <= end_date"""
        rows = (
            self.db.query(BookingConflict)
            .filter(
                BookingConflict.property_id == property_id,
                BookingConflict.end_date >= start_date,
                BookingConflict.start_date <= end_date,
            )
            .order_by(BookingConflict.start_date)
            .all()
        )
        return [
            ConflictWindow(
                property_id=str(row.property_id),
                booking_id=str(row.booking_id) if row.booking_id else None,
                start_date=row.start_date,
                end_date=row.end_date,
            )
            for row in rows
        ]

    def record(self, property_id: uuid.UUID, start_date: date, end_date: date, booking_id: uuid.UUID) -> BookingConflict:
        """Insert unconditionally; callers re-check availability first"""
        conflict = BookingConflict(
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            booking_id=booking_id,
        )
        self.db.add(conflict)
        self.db.flush()
        return conflict

    def release(self, booking_id: uuid.UUID) -> int:
        return (
            self.db.query(BookingConflict)
            .filter(BookingConflict.booking_id == booking_id)
            .delete(synchronize_session=False)
        )


class BookingRepository:
    """Repository for bookings"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        property_id: uuid.UUID,
        tenant_id: uuid.UUID,
        landlord_id: uuid.UUID,
        start_date: date,
        end_date: date,
        total_amount: Decimal,
        security_deposit: Optional[Decimal],
        currency: str,
        payment_type: PaymentType,
        installment_count: int,
    ) -> Booking:
        booking = Booking(
            property_id=property_id,
            tenant_id=tenant_id,
            landlord_id=landlord_id,
            start_date=start_date,
            end_date=end_date,
            total_amount=total_amount,
            security_deposit=security_deposit,
            currency=currency,
            payment_type=payment_type.value,
            installment_count=installment_count,
            status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        self.db.flush()  # Get ID without committing
        return booking

    def get_for_tenant(self, booking_id: uuid.UUID, tenant_id: uuid.UUID) -> Optional[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.tenant_id == tenant_id)
            .first()
        )

    def list_for_tenant(self, tenant_id: uuid.UUID, status: Optional[BookingStatus] = None) -> List[Booking]:
        query = self.db.query(Booking).filter(Booking.tenant_id == tenant_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        return query.order_by(Booking.created_at.desc()).all()


class InstallmentRepository:
    """Repository for installment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def add_schedule(self, booking_id: uuid.UUID, schedule: List[ScheduledInstallment]) -> List[Installment]:
        rows = [
            Installment(
                booking_id=booking_id,
                installment_number=item.installment_number,
                amount=item.amount,
                due_date=item.due_date,
                status=item.status.value,
            )
            for item in schedule
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def get_for_tenant(self, installment_id: uuid.UUID, tenant_id: uuid.UUID) -> Optional[Installment]:
        """Installment reachable through a booking owned by the tenant"""
        return (
            self.db.query(Installment)
            .join(Booking, Installment.booking_id == Booking.id)
            .filter(Installment.id == installment_id, Booking.tenant_id == tenant_id)
            .first()
        )

    def get_for_tenant_by_external_id(self, external_id: str, tenant_id: uuid.UUID) -> Optional[Installment]:
        return (
            self.db.query(Installment)
            .join(Booking, Installment.booking_id == Booking.id)
            .filter(Installment.gateway_external_id == external_id, Booking.tenant_id == tenant_id)
            .first()
        )

    def get_by_external_id(self, external_id: str, for_update: bool = False) -> Optional[Installment]:
        query = self.db.query(Installment).filter(Installment.gateway_external_id == external_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def lock(self, installment: Installment) -> Installment:
        """Re-read the row under a lock before a state transition"""
        return (
            self.db.query(Installment)
            .filter(Installment.id == installment.id)
            .with_for_update()
            .populate_existing()
            .one()
        )

    def list_for_tenant(
        self,
        tenant_id: uuid.UUID,
        status: Optional[InstallmentStatus] = None,
        today: Optional[date] = None,
    ) -> List[Installment]:
        """
        Installments across the tenant's live bookings, earliest due first.

        OVERDUE is not stored: it filters UNPAID rows due before `today`.
        Installments of cancelled bookings are no longer owed and are left out.
        """
        query = (
            self.db.query(Installment)
            .join(Booking, Installment.booking_id == Booking.id)
            .filter(
                Booking.tenant_id == tenant_id,
                Booking.status != BookingStatus.CANCELLED.value,
            )
        )
        if status == InstallmentStatus.OVERDUE:
            query = query.filter(
                Installment.status == InstallmentStatus.UNPAID.value,
                Installment.due_date < (today or date.today()),
            )
        elif status is not None:
            query = query.filter(Installment.status == status.value)
        return query.order_by(Installment.due_date.asc(), Installment.installment_number.asc()).all()


class TransactionRepository:
    """Repository for the payment audit trail"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        installment: Installment,
        amount: Decimal,
        payment_method: PaymentMethod,
        payment_type: PaymentType,
        status: TransactionStatus,
        gateway_invoice_id: Optional[str] = None,
        gateway_external_id: Optional[str] = None,
        paid_at=None,
    ) -> PaymentTransaction:
        transaction = PaymentTransaction(
            installment_id=installment.id,
            booking_id=installment.booking_id,
            amount=amount,
            payment_method=payment_method.value,
            payment_type=payment_type.value,
            gateway_invoice_id=gateway_invoice_id,
            gateway_external_id=gateway_external_id,
            status=status.value,
            paid_at=paid_at,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def latest_pending(self, installment_id: uuid.UUID) -> Optional[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.installment_id == installment_id,
                PaymentTransaction.status == TransactionStatus.PENDING.value,
            )
            .order_by(PaymentTransaction.created_at.desc())
            .first()
        )

    def get_by_external_id(self, external_id: str) -> Optional[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(PaymentTransaction.gateway_external_id == external_id)
            .first()
        )

    def pending_by_external_id(self, external_id: str) -> Optional[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.gateway_external_id == external_id,
                PaymentTransaction.status == TransactionStatus.PENDING.value,
            )
            .first()
        )

    def pending_for_installment(self, installment_id: uuid.UUID) -> List[PaymentTransaction]:
        return (
            self.db.query(PaymentTransaction)
            .filter(
                PaymentTransaction.installment_id == installment_id,
                PaymentTransaction.status == TransactionStatus.PENDING.value,
            )
            .all()
        )


class AgreementRepository:
    """Repository for issued rental agreements"""

    def __init__(self, db: Session):
        self.db = db

    def get_for_booking(self, booking_id: uuid.UUID) -> Optional[RentalAgreement]:
        return (
            self.db.query(RentalAgreement)
            .filter(RentalAgreement.booking_id == booking_id)
            .first()
        )

    def save(self, booking_id: uuid.UUID, document: ContractDocument) -> RentalAgreement:
        """Create the agreement, or replace a previous one for the booking"""
        agreement = self.get_for_booking(booking_id)
        if agreement is None:
            agreement = RentalAgreement(booking_id=booking_id)
            self.db.add(agreement)
        agreement.pdf_url = document.url
        agreement.storage_key = document.key
        agreement.file_name = document.file_name
        agreement.file_size = document.size
        agreement.is_placeholder = document.is_placeholder
        self.db.flush()
        return agreement
