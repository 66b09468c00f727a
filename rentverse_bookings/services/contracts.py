"""Rental agreement issuance: render the contract and store it in the bucket"""

import logging
from rentverse_bookings.config import settings
from rentverse_bookings.domain.models import ContractDocument
from rentverse_bookings.domain.exceptions import ContractIssuanceError
from rentverse_bookings.infrastructure.clients.storage import StorageClient
from rentverse_bookings.infrastructure.database.models import Booking, User
from rentverse_bookings.infrastructure.documents.contract_pdf import (
    AgreementContext,
    AgreementParty,
    render_rental_agreement,
)

logger = logging.getLogger(__name__)

CONTRACT_FOLDER = "rental-agreements"


def _party(user: User) -> AgreementParty:
    name = f"{user.first_name} {user.last_name}".strip() or user.email
    return AgreementParty(name=name, email=user.email)


def build_context(booking: Booking) -> AgreementContext:
    return AgreementContext(
        booking_id=str(booking.id),
        property_title=booking.property.title,
        property_address=f"{booking.property.address}, {booking.property.city}",
        tenant=_party(booking.tenant),
        landlord=_party(booking.landlord),
        start_date=booking.start_date,
        end_date=booking.end_date,
        total_amount=booking.total_amount,
        currency=booking.currency,
        payment_type=booking.payment_type,
        security_deposit=booking.security_deposit,
        schedule=[(i.installment_number, i.due_date, i.amount) for i in booking.installments],
    )


def placeholder_contract(booking_id) -> ContractDocument:
    """Reference used when issuance failed; flagged so it can be re-issued"""
    return ContractDocument(
        url=f"{settings.contract_placeholder_base}/{booking_id}.pdf",
        key=f"contract_{booking_id}",
        file_name=f"rental_agreement_{booking_id}.pdf",
        size=0,
        is_placeholder=True,
    )


class ContractIssuer:
    """Produces a stored rental agreement for a booking"""

    def __init__(self, storage: StorageClient | None = None):
        self.storage = storage or StorageClient()

    async def issue(self, booking: Booking) -> ContractDocument:
        """
        Render and upload the agreement.

        Raises:
            ContractIssuanceError: Rendering or upload failed
        """
        try:
            content = render_rental_agreement(build_context(booking))
        except Exception as e:
            raise ContractIssuanceError(f"Could not render agreement for booking {booking.id}: {e}") from e

        file_name = f"rental_agreement_{booking.id}"
        try:
            stored = await self.storage.upload_pdf(content, file_name, CONTRACT_FOLDER)
        except ContractIssuanceError:
            raise
        except Exception as e:
            raise ContractIssuanceError(f"Could not store agreement for booking {booking.id}: {e}") from e
        logger.info("Agreement stored", extra={"booking_id": str(booking.id), "key": stored.key, "size": stored.size})

        return ContractDocument(
            url=stored.url,
            key=stored.key,
            file_name=f"{file_name}.pdf",
            size=stored.size,
        )
