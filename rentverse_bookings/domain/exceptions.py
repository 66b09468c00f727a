"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Property, booking or installment is missing or not owned by the caller"""

    pass


class ConflictError(DomainException):
    """Request clashes with current state (date overlap, wrong payment state)"""

    pass


class AlreadyPaidError(ConflictError):
    """Installment is already PAID"""

    def __init__(self, installment_id: str):
        super().__init__(f"Installment {installment_id} is already paid")
        self.installment_id = installment_id


class ValidationError(DomainException):
    """Input is malformed or incomplete"""

    pass


class UnauthorizedError(DomainException):
    """Missing or invalid caller identity, or a bad webhook token"""

    pass


class UpstreamFailure(DomainException):
    """An external collaborator failed"""

    pass


class GatewayError(UpstreamFailure):
    """Payment gateway returned an error or is unavailable"""

    pass


class ContractIssuanceError(UpstreamFailure):
    """Rental agreement could not be rendered or stored"""

    pass
