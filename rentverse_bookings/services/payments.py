"""Installment payments: cash, gateway invoices, webhooks and manual confirmation"""

import hmac
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Union
from sqlalchemy.orm import Session

from rentverse_bookings.config import settings
from rentverse_bookings.domain import payments as machine
from rentverse_bookings.domain.exceptions import (
    AlreadyPaidError,
    ConflictError,
    GatewayError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from rentverse_bookings.domain.models import (
    BookingStatus,
    GatewayInvoice,
    InstallmentStatus,
    PaymentMethod,
    PaymentReceipt,
    PaymentType,
    TransactionStatus,
    WebhookOutcome,
)
from rentverse_bookings.infrastructure.clients.gateway import GatewayClient
from rentverse_bookings.infrastructure.database.models import Installment, PaymentTransaction, User
from rentverse_bookings.infrastructure.database.repositories import InstallmentRepository, TransactionRepository
from rentverse_bookings.infrastructure.observability.logging import log_payment_event
from rentverse_bookings.infrastructure.observability.metrics import record_payment, webhook_event_counter
from rentverse_bookings.utils.date_utils import parse_gateway_timestamp, utcnow

logger = logging.getLogger(__name__)


def verify_callback_token(token: Optional[str]) -> None:
    """Constant-time check of the gateway's shared secret header"""
    expected = settings.gateway_webhook_token
    if not expected or not token or not hmac.compare_digest(token.encode(), expected.encode()):
        webhook_event_counter.labels(outcome="unauthorized").inc()
        raise UnauthorizedError("Invalid webhook token")


class PaymentService:
    """Drives installments through UNPAID -> PAID and keeps the audit trail"""

    def __init__(self, db: Session, gateway: GatewayClient | None = None):
        self.db = db
        self.gateway = gateway or GatewayClient()
        self.installments = InstallmentRepository(db)
        self.transactions = TransactionRepository(db)

    def _get_owned(self, installment_id: uuid.UUID, tenant_id: uuid.UUID) -> Installment:
        installment = self.installments.get_for_tenant(installment_id, tenant_id)
        if installment is None:
            raise NotFoundError("Installment not found or you do not have permission to access it")
        return installment

    async def pay_installment(
        self,
        installment_id: uuid.UUID,
        tenant: User,
        payment_method: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Union[PaymentReceipt, GatewayInvoice]:
        """
        Pay an installment along the path fixed by the booking's payment type.

        CASH settles immediately. ONLINE opens a gateway invoice and leaves the
        installment UNPAID until the webhook or a manual confirmation arrives.
        """
        machine.parse_payment_method(payment_method)
        installment = self._get_owned(installment_id, tenant.id)
        machine.ensure_booking_open(installment.booking)
        path = "cash" if installment.booking.payment_type == PaymentType.CASH.value else "online"

        if machine.is_paid(installment):
            record_payment(path, "already_paid")
            raise AlreadyPaidError(str(installment.id))

        if path == "cash":
            return self._pay_cash(installment, request_id)
        return await self._open_invoice(installment, tenant, request_id)

    def _pay_cash(self, installment: Installment, request_id: Optional[str]) -> PaymentReceipt:
        now = utcnow()
        try:
            installment = self.installments.lock(installment)
            machine.mark_paid(installment, installment.amount, now, PaymentMethod.CASH)
            self.transactions.create(
                installment,
                amount=installment.amount,
                payment_method=PaymentMethod.CASH,
                payment_type=PaymentType.CASH,
                status=TransactionStatus.COMPLETED,
                paid_at=now,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_payment("cash", "paid")
        log_payment_event("cash_payment", str(installment.id), "paid", request_id=request_id)
        return PaymentReceipt(
            installment_id=str(installment.id),
            status=InstallmentStatus.PAID,
            paid_amount=installment.amount,
            paid_at=now,
            payment_method=PaymentMethod.CASH,
        )

    async def _open_invoice(self, installment: Installment, tenant: User, request_id: Optional[str]) -> GatewayInvoice:
        booking = installment.booking
        external_id = machine.new_external_id(installment.id, utcnow())
        customer_name = f"{tenant.first_name} {tenant.last_name}".strip() or "Customer"

        # Nothing is written unless the gateway accepts the invoice
        try:
            invoice = await self.gateway.create_invoice(
                external_id=external_id,
                amount=installment.amount,
                description=f"Payment for installment {installment.installment_number} of {booking.installment_count}",
                customer_email=tenant.email,
                customer_name=customer_name,
                currency=booking.currency,
            )
        except GatewayError:
            record_payment("online", "gateway_error")
            raise

        try:
            installment.gateway_invoice_id = invoice.invoice_id
            installment.gateway_external_id = external_id
            self.transactions.create(
                installment,
                amount=installment.amount,
                payment_method=PaymentMethod.BANK_TRANSFER,
                payment_type=PaymentType.ONLINE,
                status=TransactionStatus.PENDING,
                gateway_invoice_id=invoice.invoice_id,
                gateway_external_id=external_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_payment("online", "invoice_created")
        log_payment_event("invoice_created", str(installment.id), "pending", request_id=request_id, external_id=external_id)
        return invoice

    def _find_by_external_id(self, external_id: str) -> Optional[Installment]:
        installment = self.installments.get_by_external_id(external_id, for_update=True)
        if installment is not None:
            return installment
        # An older invoice for the same installment may still be settled
        transaction = self.transactions.get_by_external_id(external_id)
        return transaction.installment if transaction is not None else None

    def handle_webhook(self, payload: Dict[str, Any], callback_token: Optional[str]) -> WebhookOutcome:
        """
        Apply a gateway callback.

        Every authenticated delivery is acknowledged; problems are reported in
        the outcome rather than as HTTP errors so the gateway does not retry.

        Raises:
            UnauthorizedError: Callback token missing or wrong
        """
        verify_callback_token(callback_token)

        status = payload.get("status")
        external_id = payload.get("external_id")

        if not external_id:
            webhook_event_counter.labels(outcome="ignored").inc()
            return WebhookOutcome(received=True, status=200, detail="No external_id, ignored")

        if status in machine.SETTLED_STATUSES:
            return self._settle_from_webhook(payload, external_id)

        if status == machine.EXPIRED_STATUS:
            return self._expire_from_webhook(external_id)

        webhook_event_counter.labels(outcome="ignored").inc()
        return WebhookOutcome(received=True, status=200, detail=f"Status {status} ignored")

    def _settle_from_webhook(self, payload: Dict[str, Any], external_id: str) -> WebhookOutcome:
        installment = self._find_by_external_id(external_id)
        if installment is None:
            webhook_event_counter.labels(outcome="not_found").inc()
            logger.error("Installment not found for external ID", extra={"external_id": external_id})
            return WebhookOutcome(received=True, status=404, detail="Installment not found")

        if machine.is_paid(installment):
            webhook_event_counter.labels(outcome="duplicate").inc()
            logger.warning(
                "Settlement received for an installment that is already paid",
                extra={"external_id": external_id, "installment_id": str(installment.id)},
            )
            return WebhookOutcome(received=True, status=200, detail="Installment already paid", installment_id=str(installment.id))

        try:
            amount = machine.parse_gateway_amount(payload.get("amount"))
            paid_at = parse_gateway_timestamp(payload.get("paid_at"))
        except ValueError:
            webhook_event_counter.labels(outcome="malformed").inc()
            logger.error("Malformed settlement payload", extra={"external_id": external_id})
            return WebhookOutcome(received=True, status=400, detail="Malformed amount or paid_at", installment_id=str(installment.id))

        if amount != installment.amount:
            logger.warning(
                "Gateway amount differs from installment amount",
                extra={"external_id": external_id, "reported": str(amount), "expected": str(installment.amount)},
            )
        if installment.booking.status == BookingStatus.CANCELLED.value:
            logger.warning(
                "Settlement received for a cancelled booking",
                extra={"external_id": external_id, "booking_id": str(installment.booking_id)},
            )

        # Installment and transaction commit together
        try:
            self._record_settlement(
                installment, external_id, amount, paid_at, machine.gateway_method(payload.get("payment_method"))
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        webhook_event_counter.labels(outcome="paid").inc()
        record_payment("webhook", "paid")
        log_payment_event("webhook", str(installment.id), "paid", external_id=external_id)
        return WebhookOutcome(received=True, status=200, detail="Payment recorded", installment_id=str(installment.id))

    def _record_settlement(
        self,
        installment: Installment,
        external_id: Optional[str],
        amount: Decimal,
        paid_at: datetime,
        method: PaymentMethod,
    ) -> None:
        """
        Mark the installment PAID and settle its audit trail, uncommitted.

        The pending transaction for `external_id` is completed. When there is
        none (the invoice was expired or cancelled before the money arrived) a
        COMPLETED row records the settlement. Any other invoice still open for
        the installment is failed.
        """
        machine.mark_paid(installment, amount, paid_at, method)

        settled = self.transactions.pending_by_external_id(external_id) if external_id else None
        if settled is not None:
            machine.complete_transaction(settled, paid_at)
        else:
            previous = self.transactions.get_by_external_id(external_id) if external_id else None
            settled = self.transactions.create(
                installment,
                amount=amount,
                payment_method=method,
                payment_type=PaymentType.ONLINE,
                status=TransactionStatus.COMPLETED,
                gateway_invoice_id=previous.gateway_invoice_id if previous else installment.gateway_invoice_id,
                gateway_external_id=external_id,
                paid_at=paid_at,
            )

        for stale in self.transactions.pending_for_installment(installment.id):
            if stale.id != settled.id:
                machine.fail_transaction(stale)

    def _expire_from_webhook(self, external_id: str) -> WebhookOutcome:
        transaction = self.transactions.pending_by_external_id(external_id)
        if transaction is None:
            webhook_event_counter.labels(outcome="not_found").inc()
            return WebhookOutcome(received=True, status=404, detail="Pending transaction not found")

        try:
            machine.fail_transaction(transaction)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        webhook_event_counter.labels(outcome="expired").inc()
        log_payment_event("webhook", str(transaction.installment_id), "expired", external_id=external_id)
        return WebhookOutcome(
            received=True,
            status=200,
            detail="Invoice expired",
            installment_id=str(transaction.installment_id) if transaction.installment_id else None,
        )

    async def confirm_payment(
        self,
        installment_id: uuid.UUID,
        gateway_invoice_id: str,
        tenant_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> PaymentReceipt:
        """Fallback when the webhook never arrived; re-verifies with the gateway when it can"""
        installment = self.installments.get_for_tenant(installment_id, tenant_id)
        if installment is None or installment.gateway_invoice_id != gateway_invoice_id:
            raise NotFoundError("Installment not found or invalid invoice ID")
        machine.ensure_booking_open(installment.booking)
        if machine.is_paid(installment):
            record_payment("manual", "already_paid")
            raise AlreadyPaidError(str(installment.id))

        method = PaymentMethod.BANK_TRANSFER
        try:
            invoice = await self.gateway.get_invoice(gateway_invoice_id)
        except GatewayError as e:
            logger.warning(f"Could not verify with gateway: {e}", extra={"installment_id": str(installment.id)})
        else:
            gateway_status = invoice.get("status")
            if gateway_status not in machine.SETTLED_STATUSES:
                record_payment("manual", "not_settled")
                raise ConflictError(f"Payment not completed. Gateway status: {gateway_status}")
            method = machine.gateway_method(invoice.get("payment_method"))

        now = utcnow()
        try:
            installment = self.installments.lock(installment)
            self._record_settlement(installment, installment.gateway_external_id, installment.amount, now, method)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_payment("manual", "paid")
        log_payment_event("manual_confirmation", str(installment.id), "paid", request_id=request_id)
        return PaymentReceipt(
            installment_id=str(installment.id),
            status=InstallmentStatus.PAID,
            paid_amount=installment.amount,
            paid_at=now,
            payment_method=method,
        )

    async def cancel_payment(
        self,
        installment_id: uuid.UUID,
        tenant_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> PaymentTransaction:
        """Expire the open invoice; the installment stays UNPAID and can be retried"""
        installment = self._get_owned(installment_id, tenant_id)
        if machine.is_paid(installment):
            raise AlreadyPaidError(str(installment.id))

        transaction = self.transactions.latest_pending(installment.id)
        if transaction is None or not transaction.gateway_invoice_id:
            raise ConflictError("No pending online payment to cancel")

        try:
            await self.gateway.expire_invoice(transaction.gateway_invoice_id)
        except GatewayError:
            record_payment("cancel", "gateway_error")
            raise

        try:
            machine.fail_transaction(transaction)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_payment("cancel", "failed")
        log_payment_event(
            "payment_cancelled",
            str(installment.id),
            "failed",
            request_id=request_id,
            external_id=transaction.gateway_external_id,
        )
        return transaction

    def payment_status(
        self,
        tenant_id: uuid.UUID,
        installment_id: Optional[uuid.UUID] = None,
        external_id: Optional[str] = None,
    ) -> Installment:
        if installment_id is not None:
            installment = self.installments.get_for_tenant(installment_id, tenant_id)
        elif external_id:
            installment = self.installments.get_for_tenant_by_external_id(external_id, tenant_id)
        else:
            raise ValidationError("Either installmentId or externalId is required")

        if installment is None:
            raise NotFoundError("Installment not found")
        return installment
