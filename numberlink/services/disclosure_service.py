# numberlink/services/disclosure_service.py
"""
Disclosure gateway: the only code that decides which vehicle/company fields
leave the server for the public listing.

public_vehicle_view() builds listing and detail payloads from an explicit
whitelist; the company contributes its display name only. The company's
phone and contact phone are returned by exactly one function,
get_contact_after_payment(), and only when a completed payment exists for
(user, vehicle).
"""

import math
from typing import Callable

from sqlalchemy.orm import Session, joinedload

from numberlink.database import SessionLocal
from numberlink.errors import AuthorizationError, NotFoundError
from numberlink.models.payment import Payment, PaymentStatus
from numberlink.models.vehicle import Vehicle
from numberlink.services.vehicle_service import VehicleFilter, apply_filter
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

PUBLIC_VEHICLE_FIELDS = (
    "id", "company_id", "vehicle_number", "vehicle_type", "tonnage", "year_model",
    "region", "insurance_rate", "monthly_fee", "description", "is_available",
    "view_count", "created_at", "updated_at",
)


def public_vehicle_view(vehicle: Vehicle) -> dict:
    view = {field: getattr(vehicle, field) for field in PUBLIC_VEHICLE_FIELDS}
    company = vehicle.company
    view["company"] = {
        "company_name": company.company_name if company else None,
        "verified": company.verified if company else False,
    }
    return view


def list_vehicles(db: Session, vehicle_filter: VehicleFilter, page: int = 1,
                  limit: int = DEFAULT_PAGE_SIZE) -> dict:
    """Available vehicles only, newest first, without contact fields for any caller."""
    page = max(page or 1, 1)
    limit = min(max(limit or DEFAULT_PAGE_SIZE, 1), MAX_PAGE_SIZE)
    vehicle_filter.is_available = True

    q = apply_filter(db.query(Vehicle), vehicle_filter)
    total = q.count()
    vehicles = (q.options(joinedload(Vehicle.company))
                .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all())
    return {
        "vehicles": [public_vehicle_view(v) for v in vehicles],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def get_vehicle_detail(db: Session, vehicle_id: int) -> dict:
    vehicle = (db.query(Vehicle)
               .options(joinedload(Vehicle.company))
               .filter(Vehicle.id == vehicle_id)
               .first())
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    return public_vehicle_view(vehicle)


def record_vehicle_view(vehicle_id: int, session_factory: Callable[[], Session] = SessionLocal) -> None:
    """
    Bump view_count in its own session after the response is sent.
    A failure is logged and dropped; the detail read has already succeeded.
    """
    db = session_factory()
    try:
        db.query(Vehicle).filter(Vehicle.id == vehicle_id).update(
            {Vehicle.view_count: Vehicle.view_count + 1}, synchronize_session=False)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"View count update failed for vehicle {vehicle_id}: {e}")
    finally:
        db.close()


def get_contact_after_payment(db: Session, user_id: int, vehicle_id: int) -> dict:
    vehicle = (db.query(Vehicle)
               .options(joinedload(Vehicle.company))
               .filter(Vehicle.id == vehicle_id)
               .first())
    if vehicle is None:
        raise NotFoundError("Vehicle not found")

    payment = (db.query(Payment)
               .filter(Payment.user_id == user_id,
                       Payment.vehicle_id == vehicle_id,
                       Payment.status == PaymentStatus.COMPLETED.value)
               .order_by(Payment.paid_at.asc(), Payment.id.asc())
               .first())
    if payment is None:
        logger.info(f"Contact denied: user={user_id} vehicle={vehicle_id} (no completed payment)")
        raise AuthorizationError("Payment required to view contact information")

    company = vehicle.company
    logger.info(f"Contact disclosed: user={user_id} vehicle={vehicle_id} company={company.id}")
    return {
        "vehicle": {
            "id": vehicle.id,
            "vehicle_number": vehicle.vehicle_number,
            "vehicle_type": vehicle.vehicle_type,
            "region": vehicle.region,
            "description": vehicle.description,
        },
        "company": {
            "company_name": company.company_name,
            "contact_phone": company.disclosed_phone,
            "representative": company.representative,
            "email": company.email,
        },
        "payment": {
            "amount": payment.amount,
            "paid_at": payment.paid_at,
        },
    }
