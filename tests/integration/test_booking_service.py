"""Integration tests for BookingService reservation ordering"""

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import event
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session
from rentverse_bookings.domain.exceptions import ConflictError
from rentverse_bookings.infrastructure.database.models import Booking, BookingConflict
from rentverse_bookings.services.bookings import BookingService

pytestmark = pytest.mark.integration

MARCH = (date(2025, 3, 1), date(2025, 3, 31))


@pytest.fixture
def statements(db: Session):
    """SELECTs issued through the session, compiled for PostgreSQL"""
    captured = []

    def capture(orm_execute_state):
        if orm_execute_state.is_select:
            captured.append(str(orm_execute_state.statement.compile(dialect=postgresql.dialect())))

    event.listen(db, "do_orm_execute", capture)
    yield captured
    event.remove(db, "do_orm_execute", capture)


async def test_create_booking_locks_property_before_checking_conflicts(
    db: Session, statements, tenant, property_p1, contract_issuer
):
    service = BookingService(db, contract_issuer)

    await service.create_booking(tenant.id, property_p1.id, *MARCH, Decimal("1200.00"), "CASH", 3)

    lock = next(i for i, sql in enumerate(statements) if "FROM properties" in sql and "FOR UPDATE" in sql)
    recheck = next(i for i, sql in enumerate(statements) if "FROM booking_conflicts" in sql)
    assert lock < recheck


async def test_stale_availability_check_rechecked_under_lock(
    db: Session, tenant, other_tenant, property_p1, contract_issuer
):
    first = BookingService(db, contract_issuer)
    second = BookingService(db, contract_issuer)

    # Both callers saw the dates as free before either wrote
    assert first.check_availability(property_p1.id, *MARCH).available is True
    assert second.check_availability(property_p1.id, *MARCH).available is True

    await first.create_booking(tenant.id, property_p1.id, *MARCH, Decimal("1200.00"), "CASH", 3)
    with pytest.raises(ConflictError):
        await second.create_booking(other_tenant.id, property_p1.id, *MARCH, Decimal("1200.00"), "CASH", 3)

    assert db.query(Booking).count() == 1
    assert db.query(BookingConflict).count() == 1
