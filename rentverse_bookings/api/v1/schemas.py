"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CheckAvailabilityRequest(ApiModel):
    """Request body for POST /v1/bookings/check-availability"""

    property_id: uuid.UUID
    start_date: date
    end_date: date


class ConflictSchema(ApiModel):
    property_id: str
    booking_id: Optional[str] = None
    start_date: date
    end_date: date


class AvailabilityResponse(ApiModel):
    available: bool
    conflicts: List[ConflictSchema]
    message: str


class CreateBookingRequest(ApiModel):
    """Request body for POST /v1/bookings"""

    property_id: uuid.UUID
    start_date: date
    end_date: date
    total_amount: Decimal = Field(..., gt=0, description="Total rent for the whole term")
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    payment_type: str = Field(..., description="CASH or ONLINE")
    installment_count: int = Field(1, ge=1, le=120)


class BookingSchema(ApiModel):
    id: uuid.UUID
    property_id: uuid.UUID
    tenant_id: uuid.UUID
    landlord_id: uuid.UUID
    start_date: date
    end_date: date
    total_amount: Decimal
    security_deposit: Optional[Decimal] = None
    currency: str
    payment_type: str
    installment_count: int
    status: str
    contract_pdf_url: Optional[str] = None
    contract_generated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InstallmentSchema(ApiModel):
    """Single installment; status is the effective one (OVERDUE derived)"""

    id: uuid.UUID
    booking_id: uuid.UUID
    installment_number: int
    amount: Decimal
    due_date: date
    status: str
    paid_at: Optional[datetime] = None
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    gateway_invoice_id: Optional[str] = None
    gateway_external_id: Optional[str] = None


class CreateBookingResponse(ApiModel):
    booking: BookingSchema
    installments: List[InstallmentSchema]
    contract_pdf_url: str
    contract_placeholder: bool
    message: str = "Booking created successfully"


class BookingDetailResponse(ApiModel):
    booking: BookingSchema
    installments: List[InstallmentSchema]
    payment_flow: str
    contract_placeholder: Optional[bool] = None


class BookingListResponse(ApiModel):
    bookings: List[BookingSchema]
    count: int


class PayInstallmentRequest(ApiModel):
    """Request body for POST /v1/bookings/pay-installment"""

    installment_id: uuid.UUID
    payment_method: Optional[str] = None


class PayInstallmentResponse(ApiModel):
    """Cash payments carry the receipt; online payments carry the invoice"""

    installment_id: str
    status: str
    message: str
    paid_amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_id: Optional[str] = None
    external_id: Optional[str] = None
    amount: Optional[Decimal] = None
    expiry_date: Optional[str] = None


class ConfirmPaymentRequest(ApiModel):
    """Request body for POST /v1/bookings/confirm-payment"""

    installment_id: uuid.UUID
    gateway_invoice_id: str = Field(..., min_length=1)


class CancelPaymentRequest(ApiModel):
    installment_id: uuid.UUID


class CancelPaymentResponse(ApiModel):
    installment_id: str
    transaction_id: str
    transaction_status: str
    installment_status: str


class PaymentStatusResponse(ApiModel):
    installment_id: str
    booking_id: str
    external_id: Optional[str] = None
    status: str
    amount: Decimal
    paid_amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    is_paid: bool


class InstallmentListResponse(ApiModel):
    installments: List[InstallmentSchema]
    count: int
    filter: str


class UnpaidSummarySchema(ApiModel):
    total: int
    overdue: int
    upcoming: int
    total_amount: Decimal


class UnpaidInstallmentsResponse(ApiModel):
    overdue: List[InstallmentSchema]
    upcoming: List[InstallmentSchema]
    all: List[InstallmentSchema]
    summary: UnpaidSummarySchema


class ContractResponse(ApiModel):
    booking_id: str
    contract_pdf_url: str
    contract_placeholder: bool


class WebhookAck(ApiModel):
    received: bool
    status: int
    detail: str
    installment_id: Optional[str] = None


class PropertyCreateRequest(ApiModel):
    """Request body for POST /v1/properties"""

    title: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    currency_code: str = Field("IDR", min_length=3, max_length=3)


class PropertySchema(ApiModel):
    id: uuid.UUID
    owner_id: uuid.UUID
    title: str
    address: str
    city: str
    price: Decimal
    currency_code: str
    is_available: bool
    status: str


class PropertyListResponse(ApiModel):
    properties: List[PropertySchema]
    count: int
