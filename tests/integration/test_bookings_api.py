"""Integration tests for booking endpoints"""

import uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from rentverse_bookings.domain.exceptions import ContractIssuanceError
from rentverse_bookings.domain.models import ContractDocument
from rentverse_bookings.infrastructure.database.models import Booking, BookingConflict, Installment, RentalAgreement
from tests.conftest import auth, booking_payload

pytestmark = pytest.mark.integration


def test_check_availability_free(client: TestClient, property_p1):
    response = client.post(
        "/v1/bookings/check-availability",
        json={"propertyId": str(property_p1.id), "startDate": "2025-03-01", "endDate": "2025-03-31"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["conflicts"] == []


def test_check_availability_reversed_range(client: TestClient, property_p1):
    response = client.post(
        "/v1/bookings/check-availability",
        json={"propertyId": str(property_p1.id), "startDate": "2025-03-31", "endDate": "2025-03-01"},
    )
    assert response.status_code == 400


def test_create_booking_with_schedule(client: TestClient, db: Session, tenant, property_p1, contract_issuer):
    """Test 1200.00 in 3 installments from 2025-03-01"""
    response = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))

    assert response.status_code == 201
    data = response.json()
    assert data["booking"]["status"] == "CONFIRMED"
    assert data["booking"]["tenantId"] == str(tenant.id)
    assert data["booking"]["landlordId"] == str(property_p1.owner_id)
    assert data["contractPlaceholder"] is False
    assert data["contractPdfUrl"].endswith(f"rental_agreement_{data['booking']['id']}.pdf")

    installments = data["installments"]
    assert [i["installmentNumber"] for i in installments] == [1, 2, 3]
    assert [i["amount"] for i in installments] == ["400.00", "400.00", "400.00"]
    assert [i["dueDate"] for i in installments] == ["2025-03-01", "2025-04-01", "2025-05-01"]
    contract_issuer.issue.assert_awaited_once()

    booking_id = uuid.UUID(data["booking"]["id"])
    assert db.query(BookingConflict).filter(BookingConflict.booking_id == booking_id).count() == 1
    assert db.query(Installment).filter(Installment.booking_id == booking_id).count() == 3


def test_create_booking_overlap_rejected(client: TestClient, db: Session, tenant, other_tenant, property_p1):
    first = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))
    assert first.status_code == 201

    second = client.post(
        "/v1/bookings",
        json=booking_payload(property_p1.id, startDate="2025-03-15", endDate="2025-04-15"),
        headers=auth(other_tenant),
    )

    assert second.status_code == 409
    assert second.json()["error"] == "ConflictError"
    # Nothing from the rejected attempt was written
    assert db.query(BookingConflict).count() == 1
    assert db.query(Installment).count() == 3


def test_create_booking_shared_endpoint_rejected(client: TestClient, tenant, other_tenant, property_p1):
    client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))

    response = client.post(
        "/v1/bookings",
        json=booking_payload(property_p1.id, startDate="2025-03-31", endDate="2025-04-30"),
        headers=auth(other_tenant),
    )
    assert response.status_code == 409


def test_create_booking_adjacent_allowed(client: TestClient, tenant, other_tenant, property_p1):
    client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))

    response = client.post(
        "/v1/bookings",
        json=booking_payload(property_p1.id, startDate="2025-04-01", endDate="2025-04-30"),
        headers=auth(other_tenant),
    )
    assert response.status_code == 201


def test_check_availability_reports_conflict(client: TestClient, tenant, property_p1):
    created = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant)).json()

    response = client.post(
        "/v1/bookings/check-availability",
        json={"propertyId": str(property_p1.id), "startDate": "2025-03-20", "endDate": "2025-04-10"},
    )

    data = response.json()
    assert data["available"] is False
    assert data["conflicts"][0]["bookingId"] == created["booking"]["id"]


def test_create_booking_contract_failure_uses_placeholder(
    client: TestClient, db: Session, tenant, property_p1, contract_issuer
):
    contract_issuer.issue.side_effect = ContractIssuanceError("bucket unavailable")

    response = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))

    assert response.status_code == 201
    data = response.json()
    assert data["contractPlaceholder"] is True
    assert data["booking"]["status"] == "CONFIRMED"
    assert data["contractPdfUrl"].endswith(f"/{data['booking']['id']}.pdf")

    agreement = db.query(RentalAgreement).one()
    assert agreement.is_placeholder is True


def test_create_booking_unexpected_contract_error_uses_placeholder(
    client: TestClient, db: Session, tenant, other_tenant, property_p1, contract_issuer
):
    contract_issuer.issue.side_effect = RuntimeError("font missing")

    response = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant))

    assert response.status_code == 201
    data = response.json()
    assert data["contractPlaceholder"] is True
    assert data["booking"]["status"] == "CONFIRMED"
    assert db.query(Booking).filter(Booking.status == "PENDING").count() == 0

    # The confirmed booking keeps the dates
    rebook = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(other_tenant))
    assert rebook.status_code == 409


def test_reissue_contract_replaces_placeholder(client: TestClient, db: Session, tenant, property_p1, contract_issuer):
    contract_issuer.issue.side_effect = ContractIssuanceError("bucket unavailable")
    booking_id = client.post(
        "/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant)
    ).json()["booking"]["id"]

    contract_issuer.issue.side_effect = None
    contract_issuer.issue.return_value = ContractDocument(
        url="https://storage.test/real.pdf", key="rental-agreements/real.pdf", file_name="real.pdf", size=10
    )

    response = client.post(f"/v1/bookings/{booking_id}/contract", headers=auth(tenant))

    assert response.status_code == 200
    assert response.json()["contractPlaceholder"] is False
    assert response.json()["contractPdfUrl"] == "https://storage.test/real.pdf"

    again = client.post(f"/v1/bookings/{booking_id}/contract", headers=auth(tenant))
    assert again.status_code == 409


@pytest.mark.parametrize(
    "overrides",
    [
        {"installmentCount": 0},
        {"totalAmount": "0"},
        {"totalAmount": "-5"},
    ],
)
def test_create_booking_invalid_body(client: TestClient, db: Session, tenant, property_p1, overrides):
    response = client.post("/v1/bookings", json=booking_payload(property_p1.id, **overrides), headers=auth(tenant))

    assert response.status_code == 422
    assert db.query(BookingConflict).count() == 0


def test_create_booking_invalid_payment_type(client: TestClient, db: Session, tenant, property_p1):
    response = client.post(
        "/v1/bookings", json=booking_payload(property_p1.id, paymentType="BARTER"), headers=auth(tenant)
    )

    assert response.status_code == 400
    assert db.query(BookingConflict).count() == 0


def test_create_booking_unknown_property(client: TestClient, tenant):
    response = client.post("/v1/bookings", json=booking_payload(uuid.uuid4()), headers=auth(tenant))
    assert response.status_code == 404


def test_create_booking_requires_identity(client: TestClient, property_p1):
    response = client.post("/v1/bookings", json=booking_payload(property_p1.id))
    assert response.status_code == 401


def test_get_and_list_bookings(client: TestClient, tenant, other_tenant, property_p1):
    booking_id = client.post(
        "/v1/bookings", json=booking_payload(property_p1.id, paymentType="ONLINE"), headers=auth(tenant)
    ).json()["booking"]["id"]

    detail = client.get(f"/v1/bookings/{booking_id}", headers=auth(tenant))
    assert detail.status_code == 200
    assert detail.json()["paymentFlow"] == "Gateway Invoice"
    assert len(detail.json()["installments"]) == 3

    listing = client.get("/v1/bookings", headers=auth(tenant))
    assert listing.json()["count"] == 1

    filtered = client.get("/v1/bookings?status=CANCELLED", headers=auth(tenant))
    assert filtered.json()["count"] == 0

    # Other tenants cannot see it
    assert client.get(f"/v1/bookings/{booking_id}", headers=auth(other_tenant)).status_code == 404


def test_list_bookings_invalid_status(client: TestClient, tenant):
    response = client.get("/v1/bookings?status=SOMEDAY", headers=auth(tenant))
    assert response.status_code == 400


def test_cancel_booking_releases_dates(client: TestClient, tenant, other_tenant, property_p1):
    booking_id = client.post(
        "/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant)
    ).json()["booking"]["id"]

    response = client.post(f"/v1/bookings/{booking_id}/cancel", headers=auth(tenant))
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    rebook = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(other_tenant))
    assert rebook.status_code == 201

    again = client.post(f"/v1/bookings/{booking_id}/cancel", headers=auth(tenant))
    assert again.status_code == 409


def test_cancel_booking_with_paid_installment_rejected(client: TestClient, tenant, property_p1):
    created = client.post("/v1/bookings", json=booking_payload(property_p1.id), headers=auth(tenant)).json()
    installment_id = created["installments"][0]["id"]
    client.post("/v1/bookings/pay-installment", json={"installmentId": installment_id}, headers=auth(tenant))

    response = client.post(f"/v1/bookings/{created['booking']['id']}/cancel", headers=auth(tenant))
    assert response.status_code == 409
