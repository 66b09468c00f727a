"""Booking lifecycle and installment payment endpoints under /v1/bookings"""

import time
import uuid
from datetime import date
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from rentverse_bookings.api.dependencies import (
    get_booking_service,
    get_current_user,
    get_payment_service,
    get_request_id,
)
from rentverse_bookings.api.v1.schemas import (
    AvailabilityResponse,
    BookingDetailResponse,
    BookingListResponse,
    BookingSchema,
    CancelPaymentRequest,
    CancelPaymentResponse,
    CheckAvailabilityRequest,
    ConfirmPaymentRequest,
    ConflictSchema,
    ContractResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    InstallmentListResponse,
    InstallmentSchema,
    PayInstallmentRequest,
    PayInstallmentResponse,
    PaymentStatusResponse,
    UnpaidInstallmentsResponse,
    UnpaidSummarySchema,
    WebhookAck,
)
from rentverse_bookings.domain.installments import effective_status
from rentverse_bookings.domain.models import GatewayInvoice, InstallmentStatus
from rentverse_bookings.infrastructure.database.models import Installment, User
from rentverse_bookings.infrastructure.observability.logging import log_booking_created
from rentverse_bookings.services.bookings import BookingService, payment_flow
from rentverse_bookings.services.payments import PaymentService

router = APIRouter()


def to_installment_schema(installment: Installment, today: date) -> InstallmentSchema:
    """Every read path reports the effective status, OVERDUE included"""
    schema = InstallmentSchema.model_validate(installment)
    schema.status = effective_status(installment.status, installment.due_date, today).value
    return schema


def to_installment_schemas(installments: List[Installment]) -> List[InstallmentSchema]:
    today = date.today()
    return [to_installment_schema(i, today) for i in installments]


@router.post("/bookings/check-availability", response_model=AvailabilityResponse)
def check_availability(
    request_body: CheckAvailabilityRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Report whether the property is free for [startDate, endDate] (inclusive)"""
    result = service.check_availability(request_body.property_id, request_body.start_date, request_body.end_date)
    return AvailabilityResponse(
        available=result.available,
        conflicts=[ConflictSchema.model_validate(c) for c in result.conflicts],
        message="Property available for booking" if result.available else "Property not available for selected dates",
    )


@router.post("/bookings", response_model=CreateBookingResponse, status_code=201)
async def create_booking(
    request_body: CreateBookingRequest,
    request: Request,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """
    Create a booking for the caller.

    Flow:
    1. Lock property and re-check availability
    2. Persist booking, conflict record and installment schedule atomically
    3. Issue the rental agreement (placeholder flagged on failure)
    4. Return booking, schedule and contract reference
    """
    start_time = time.time()
    request_id = get_request_id(request)

    result = await service.create_booking(
        tenant_id=user.id,
        property_id=request_body.property_id,
        start_date=request_body.start_date,
        end_date=request_body.end_date,
        total_amount=request_body.total_amount,
        payment_type=request_body.payment_type,
        installment_count=request_body.installment_count,
        security_deposit=request_body.security_deposit,
    )

    duration_ms = (time.time() - start_time) * 1000
    log_booking_created(
        request_id,
        str(result.booking.id),
        str(result.booking.property_id),
        len(result.installments),
        result.contract_placeholder,
        duration_ms,
    )

    return CreateBookingResponse(
        booking=BookingSchema.model_validate(result.booking),
        installments=to_installment_schemas(result.installments),
        contract_pdf_url=result.contract_url,
        contract_placeholder=result.contract_placeholder,
        message=(
            "Booking created with a placeholder contract"
            if result.contract_placeholder
            else "Booking created successfully"
        ),
    )


@router.post("/bookings/pay-installment", response_model=PayInstallmentResponse, response_model_exclude_none=True)
async def pay_installment(
    request_body: PayInstallmentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Cash bookings settle now; online bookings get a gateway invoice to redirect to"""
    outcome = await service.pay_installment(
        request_body.installment_id,
        user,
        request_body.payment_method,
        request_id=get_request_id(request),
    )

    if isinstance(outcome, GatewayInvoice):
        return PayInstallmentResponse(
            installment_id=str(request_body.installment_id),
            status=InstallmentStatus.UNPAID.value,
            message="Payment invoice created successfully",
            invoice_url=outcome.invoice_url,
            invoice_id=outcome.invoice_id,
            external_id=outcome.external_id,
            amount=outcome.amount,
            expiry_date=outcome.expiry_date,
        )

    return PayInstallmentResponse(
        installment_id=outcome.installment_id,
        status=outcome.status.value,
        message="Cash payment recorded successfully",
        paid_amount=outcome.paid_amount,
        paid_at=outcome.paid_at,
        payment_method=outcome.payment_method.value,
    )


@router.post("/bookings/webhook")
def gateway_webhook(
    payload: Dict[str, Any] = Body(...),
    x_callback_token: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Gateway callback. Answers 200 for every authenticated delivery so the
    gateway does not retry; the body carries the processing outcome.
    """
    outcome = service.handle_webhook(payload, x_callback_token)
    ack = WebhookAck(
        received=outcome.received,
        status=outcome.status,
        detail=outcome.detail,
        installment_id=outcome.installment_id,
    )
    return JSONResponse(status_code=200, content=ack.model_dump(by_alias=True))


@router.post("/bookings/confirm-payment", response_model=PayInstallmentResponse, response_model_exclude_none=True)
async def confirm_payment(
    request_body: ConfirmPaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Manual fallback when the webhook did not arrive"""
    receipt = await service.confirm_payment(
        request_body.installment_id,
        request_body.gateway_invoice_id,
        user.id,
        request_id=get_request_id(request),
    )
    return PayInstallmentResponse(
        installment_id=receipt.installment_id,
        status=receipt.status.value,
        message="Payment confirmed manually",
        paid_amount=receipt.paid_amount,
        paid_at=receipt.paid_at,
        payment_method=receipt.payment_method.value,
    )


@router.post("/bookings/cancel-payment", response_model=CancelPaymentResponse)
async def cancel_payment(
    request_body: CancelPaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Expire the open gateway invoice; the installment stays payable"""
    transaction = await service.cancel_payment(
        request_body.installment_id,
        user.id,
        request_id=get_request_id(request),
    )
    return CancelPaymentResponse(
        installment_id=str(request_body.installment_id),
        transaction_id=str(transaction.id),
        transaction_status=transaction.status,
        installment_status=InstallmentStatus.UNPAID.value,
    )


@router.get("/bookings/payment-status", response_model=PaymentStatusResponse)
def payment_status(
    installment_id: Optional[uuid.UUID] = Query(None, alias="installmentId"),
    external_id: Optional[str] = Query(None, alias="externalId"),
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Polled by the mobile app after returning from the checkout page"""
    installment = service.payment_status(user.id, installment_id=installment_id, external_id=external_id)
    status = effective_status(installment.status, installment.due_date, date.today())
    return PaymentStatusResponse(
        installment_id=str(installment.id),
        booking_id=str(installment.booking_id),
        external_id=installment.gateway_external_id,
        status=status.value,
        amount=installment.amount,
        paid_amount=installment.paid_amount,
        paid_at=installment.paid_at,
        payment_method=installment.payment_method,
        is_paid=status == InstallmentStatus.PAID,
    )


@router.get("/bookings/installments", response_model=InstallmentListResponse)
def list_installments(
    status: Optional[str] = Query(None, description="UNPAID, PAID or OVERDUE"),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    installments = service.list_installments(user.id, status)
    return InstallmentListResponse(
        installments=to_installment_schemas(installments),
        count=len(installments),
        filter=status or "all",
    )


@router.get("/bookings/unpaid-installments", response_model=UnpaidInstallmentsResponse)
def unpaid_installments(
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    summary = service.unpaid_installments(user.id)
    return UnpaidInstallmentsResponse(
        overdue=to_installment_schemas(summary.overdue),
        upcoming=to_installment_schemas(summary.upcoming),
        all=to_installment_schemas(summary.all),
        summary=UnpaidSummarySchema(
            total=len(summary.all),
            overdue=len(summary.overdue),
            upcoming=len(summary.upcoming),
            total_amount=summary.total_amount,
        ),
    )


@router.get("/bookings", response_model=BookingListResponse)
def list_bookings(
    status: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    bookings = service.list_bookings(user.id, status)
    return BookingListResponse(
        bookings=[BookingSchema.model_validate(b) for b in bookings],
        count=len(bookings),
    )


@router.get("/bookings/{booking_id}", response_model=BookingDetailResponse)
def get_booking(
    booking_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id, user.id)
    return BookingDetailResponse(
        booking=BookingSchema.model_validate(booking),
        installments=to_installment_schemas(booking.installments),
        payment_flow=payment_flow(booking.payment_type),
        contract_placeholder=booking.agreement.is_placeholder if booking.agreement else None,
    )


@router.post("/bookings/{booking_id}/cancel", response_model=BookingSchema)
def cancel_booking(
    booking_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.cancel_booking(booking_id, user.id)
    return BookingSchema.model_validate(booking)


@router.post("/bookings/{booking_id}/contract", response_model=ContractResponse)
async def reissue_contract(
    booking_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Retry issuance for a booking still holding a placeholder contract"""
    document = await service.reissue_contract(booking_id, user.id)
    return ContractResponse(
        booking_id=str(booking_id),
        contract_pdf_url=document.url,
        contract_placeholder=document.is_placeholder,
    )
