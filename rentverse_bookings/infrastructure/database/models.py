"""SQLAlchemy ORM models for properties, bookings and installment payments"""

import uuid
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Numeric,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    Uuid,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from rentverse_bookings.domain.models import BookingStatus, InstallmentStatus, TransactionStatus
from rentverse_bookings.utils.date_utils import utcnow

Base = declarative_base()

Money = Numeric(12, 2)


class User(Base):
    """Account owned by the identity service; only read here"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default="TENANT")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Property(Base):
    """Rentable unit listed by a landlord"""

    __tablename__ = "properties"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    price = Column(Money, nullable=False)
    currency_code = Column(String(3), nullable=False, default="IDR")
    is_available = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default="APPROVED")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    owner = relationship("User")


class Booking(Base):
    """Tenancy over [start_date, end_date] for one property"""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("installment_count >= 1", name="ck_bookings_installment_count"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id = Column(Uuid, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    landlord_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_amount = Column(Money, nullable=False)
    security_deposit = Column(Money, nullable=True)
    currency = Column(String(3), nullable=False, default="IDR")
    payment_type = Column(String(10), nullable=False)
    installment_count = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    contract_pdf_url = Column(Text, nullable=True)
    contract_generated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    property = relationship("Property")
    tenant = relationship("User", foreign_keys=[tenant_id])
    landlord = relationship("User", foreign_keys=[landlord_id])
    installments = relationship(
        "Installment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Installment.installment_number",
    )
    agreement = relationship("RentalAgreement", back_populates="booking", uselist=False)


class BookingConflict(Base):
    """Reserved date range blocking overlapping bookings"""

    __tablename__ = "booking_conflicts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id = Column(Uuid, ForeignKey("properties.id"), nullable=False, index=True)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Installment(Base):
    """One scheduled partial payment of a booking"""

    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("booking_id", "installment_number", name="uq_installments_booking_number"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default=InstallmentStatus.UNPAID.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_amount = Column(Money, nullable=True)
    payment_method = Column(String(20), nullable=True)
    gateway_invoice_id = Column(String(255), nullable=True)
    gateway_external_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="installments")
    transactions = relationship(
        "PaymentTransaction",
        back_populates="installment",
        order_by="PaymentTransaction.created_at",
    )


class PaymentTransaction(Base):
    """Audit record of one payment attempt against an installment"""

    __tablename__ = "payment_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    installment_id = Column(Uuid, ForeignKey("installments.id"), nullable=True, index=True)
    booking_id = Column(Uuid, ForeignKey("bookings.id"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    payment_method = Column(String(20), nullable=False)
    payment_type = Column(String(10), nullable=False)
    gateway_invoice_id = Column(String(255), nullable=True)
    gateway_external_id = Column(String(255), nullable=True, index=True)
    status = Column(String(10), nullable=False, default=TransactionStatus.PENDING.value)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # Client-side default keeps sub-second ordering between retries
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    installment = relationship("Installment", back_populates="transactions")


class RentalAgreement(Base):
    """Issued contract document for a booking"""

    __tablename__ = "rental_agreements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    pdf_url = Column(Text, nullable=False)
    storage_key = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    is_placeholder = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="agreement")
