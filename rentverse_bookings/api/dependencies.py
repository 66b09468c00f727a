"""Dependency injection for FastAPI endpoints"""

import uuid
from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from rentverse_bookings.domain.exceptions import UnauthorizedError
from rentverse_bookings.infrastructure.clients.gateway import GatewayClient
from rentverse_bookings.infrastructure.database.models import User
from rentverse_bookings.infrastructure.database.repositories import UserRepository
from rentverse_bookings.infrastructure.database.session import get_db
from rentverse_bookings.services.bookings import BookingService
from rentverse_bookings.services.contracts import ContractIssuer
from rentverse_bookings.services.payments import PaymentService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_gateway_client() -> GatewayClient:
    """Provide payment gateway client instance"""
    return GatewayClient()


def get_contract_issuer() -> ContractIssuer:
    """Provide rental agreement issuer instance"""
    return ContractIssuer()


def get_booking_service(
    db: Session = Depends(get_db),
    contract_issuer: ContractIssuer = Depends(get_contract_issuer),
) -> BookingService:
    return BookingService(db, contract_issuer)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: GatewayClient = Depends(get_gateway_client),
) -> PaymentService:
    return PaymentService(db, gateway)


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Caller identity as forwarded by the authentication layer in X-User-ID"""
    if not x_user_id:
        raise UnauthorizedError("User not authenticated")
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise UnauthorizedError("User not authenticated")

    user = UserRepository(db).get(user_id)
    if user is None:
        raise UnauthorizedError("User not authenticated")
    return user
