"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from rentverse_bookings.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_booking_created(
    request_id: str,
    booking_id: str,
    property_id: str,
    installment_count: int,
    contract_placeholder: bool,
    duration_ms: float,
) -> None:
    """Log structured booking outcome for analysis"""
    logging.info(
        "Booking created",
        extra={
            "request_id": request_id,
            "booking_id": booking_id,
            "property_id": property_id,
            "step": "booking_complete",
            "installment_count": installment_count,
            "contract_outcome": "placeholder" if contract_placeholder else "issued",
            "duration_ms": duration_ms,
        },
    )


def log_payment_event(
    step: str,
    installment_id: Optional[str],
    outcome: str,
    request_id: Optional[str] = None,
    external_id: Optional[str] = None,
) -> None:
    """Log a payment state change (cash, invoice, webhook, confirmation, cancellation)"""
    logging.info(
        "Installment payment event",
        extra={
            "request_id": request_id,
            "installment_id": installment_id,
            "external_id": external_id,
            "step": step,
            "outcome": outcome,
        },
    )
