"""Payment gateway HTTP client for invoice-based online payments"""

import httpx
from decimal import Decimal
from typing import Any, Dict, Optional
from rentverse_bookings.domain.models import GatewayInvoice
from rentverse_bookings.domain.exceptions import GatewayError
from rentverse_bookings.config import settings
from rentverse_bookings.infrastructure.observability.metrics import gateway_latency_histogram, gateway_failure_counter


class GatewayClient:
    """Client for the external invoice API (Xendit v2 invoices)"""

    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.gateway_api_base
        self.secret_key = secret_key if secret_key is not None else settings.gateway_secret_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.secret_key:
            raise GatewayError("Payment gateway secret key not configured")
        # Secret key as username, empty password
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(self, operation: str, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Call the gateway and return the decoded JSON body.

        Raises:
            GatewayError: On timeout, HTTP errors, or invalid response
        """
        async with self._client() as client:
            try:
                with gateway_latency_histogram.labels(operation=operation).time():
                    response = await client.request(method, path, json=json)
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                gateway_failure_counter.labels(operation=operation).inc()
                raise GatewayError(f"Gateway timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                gateway_failure_counter.labels(operation=operation).inc()
                raise GatewayError(f"Gateway error: {e.response.status_code} - {e.response.text}") from e
            except httpx.RequestError as e:
                gateway_failure_counter.labels(operation=operation).inc()
                raise GatewayError(f"Gateway unreachable: {e}") from e
            except ValueError as e:
                gateway_failure_counter.labels(operation=operation).inc()
                raise GatewayError(f"Invalid response from gateway: {e}") from e

    async def create_invoice(
        self,
        external_id: str,
        amount: Decimal,
        description: str,
        customer_email: str,
        customer_name: str = "Customer",
        currency: str | None = None,
        success_redirect_url: str | None = None,
        failure_redirect_url: str | None = None,
    ) -> GatewayInvoice:
        """Create a checkout invoice valid for `invoice_duration_seconds`"""
        payload = {
            "external_id": external_id,
            "amount": float(amount),  # wire format is a JSON number
            "description": description,
            "invoice_duration": settings.invoice_duration_seconds,
            "currency": currency or settings.currency,
            "customer": {"given_names": customer_name, "email": customer_email},
            "success_redirect_url": success_redirect_url or settings.payment_success_redirect,
            "failure_redirect_url": failure_redirect_url or settings.payment_failure_redirect,
        }
        data = await self._request("create_invoice", "POST", "/v2/invoices", json=payload)

        try:
            return GatewayInvoice(
                invoice_id=data["id"],
                external_id=data.get("external_id", external_id),
                invoice_url=data["invoice_url"],
                amount=Decimal(str(data.get("amount", amount))),
                status=data.get("status", "PENDING"),
                expiry_date=data.get("expiry_date"),
            )
        except (KeyError, TypeError) as e:
            raise GatewayError(f"Invalid invoice data from gateway: {e}") from e

    async def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("get_invoice", "GET", f"/v2/invoices/{invoice_id}")

    async def expire_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("expire_invoice", "POST", f"/invoices/{invoice_id}/expire!")
