"""Prometheus metrics for bookings, installment payments and collaborator calls"""

from prometheus_client import Counter, Histogram

# Booking metrics
booking_counter = Counter(
    "rentverse_bookings_created_total",
    "Total bookings created",
    ["payment_type", "contract"],  # CASH | ONLINE, issued | placeholder
)

availability_conflict_counter = Counter(
    "rentverse_booking_conflicts_total",
    "Booking attempts rejected because of overlapping dates",
)

# Payment metrics
installment_payment_counter = Counter(
    "rentverse_installment_payments_total",
    "Installment payment events",
    ["path", "outcome"],  # cash | online | webhook | manual | cancel
)

webhook_event_counter = Counter(
    "rentverse_gateway_webhooks_total",
    "Gateway webhook deliveries",
    ["outcome"],  # paid | expired | ignored | not_found | duplicate | unauthorized
)

# Collaborator metrics
gateway_latency_histogram = Histogram(
    "gateway_request_latency_seconds",
    "Payment gateway response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

gateway_failure_counter = Counter(
    "gateway_failures_total",
    "Failed payment gateway calls",
    ["operation"],
)

contract_failure_counter = Counter(
    "contract_issuance_failures_total",
    "Rental agreement issuance failures (placeholder used)",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_booking(payment_type: str, contract_placeholder: bool) -> None:
    """Record booking metrics for monitoring contract fallback rates"""
    contract = "placeholder" if contract_placeholder else "issued"
    booking_counter.labels(payment_type=payment_type, contract=contract).inc()


def record_payment(path: str, outcome: str) -> None:
    installment_payment_counter.labels(path=path, outcome=outcome).inc()
