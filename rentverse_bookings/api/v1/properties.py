"""Property catalogue endpoints, served through the read cache"""

import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rentverse_bookings.api.dependencies import get_current_user
from rentverse_bookings.api.v1.schemas import PropertyCreateRequest, PropertyListResponse, PropertySchema
from rentverse_bookings.domain.exceptions import NotFoundError, UnauthorizedError
from rentverse_bookings.infrastructure.cache import make_key, read_cache
from rentverse_bookings.infrastructure.database.models import User
from rentverse_bookings.infrastructure.database.repositories import PropertyRepository
from rentverse_bookings.infrastructure.database.session import get_db

router = APIRouter()

LISTING_ROLES = {"LANDLORD", "ADMIN"}


@router.get("/properties", response_model=PropertyListResponse)
def list_properties(
    city: Optional[str] = Query(None),
    available: Optional[bool] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    key = make_key("properties", city=city, available=available, limit=limit, offset=offset)
    cached = read_cache.get(key)
    if cached is not None:
        return cached

    # Evict expired entries on every miss
    read_cache.cleanup()
    rows = PropertyRepository(db).list(city=city, available=available, limit=limit, offset=offset)
    response = PropertyListResponse(
        properties=[PropertySchema.model_validate(p) for p in rows],
        count=len(rows),
    )
    read_cache.set(key, response)
    return response


@router.get("/properties/{property_id}", response_model=PropertySchema)
def get_property(property_id: uuid.UUID, db: Session = Depends(get_db)):
    key = make_key("property", id=property_id)
    cached = read_cache.get(key)
    if cached is not None:
        return cached

    prop = PropertyRepository(db).get(property_id)
    if prop is None:
        raise NotFoundError("Property not found")

    response = PropertySchema.model_validate(prop)
    read_cache.set(key, response)
    return response


@router.post("/properties", response_model=PropertySchema, status_code=201)
def create_property(
    request_body: PropertyCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user.role not in LISTING_ROLES:
        raise UnauthorizedError("Only landlords can list properties")

    try:
        prop = PropertyRepository(db).create(
            owner_id=user.id,
            title=request_body.title,
            address=request_body.address,
            city=request_body.city,
            price=request_body.price,
            currency_code=request_body.currency_code.upper(),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    # Any write makes every cached listing stale
    read_cache.invalidate()
    return PropertySchema.model_validate(prop)
