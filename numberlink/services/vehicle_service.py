# numberlink/services/vehicle_service.py
"""
Listing store: vehicle CRUD for companies and the filtered query used by
the public listing. Nothing here decides what a driver may see; the public
read paths live in disclosure_service.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from numberlink.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from numberlink.models.company import Company
from numberlink.models.vehicle import Vehicle
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

DUPLICATE_NUMBER = "Vehicle number already registered"
UPDATABLE_FIELDS = {
    "vehicle_number", "vehicle_type", "tonnage", "year_model", "region",
    "insurance_rate", "monthly_fee", "description", "is_available",
}


@dataclass
class VehicleFilter:
    region: Optional[str] = None
    vehicle_type: Optional[str] = None
    tonnage: Optional[str] = None
    year_model: Optional[int] = None
    min_fee: Optional[int] = None
    max_fee: Optional[int] = None
    search: Optional[str] = None
    is_available: Optional[bool] = None


def apply_filter(q: Query, f: VehicleFilter) -> Query:
    """Text fields match as case-insensitive 'contains'."""
    if f.is_available is not None:
        q = q.filter(Vehicle.is_available == f.is_available)
    if f.region:
        q = q.filter(Vehicle.region.ilike(f"%{f.region}%"))
    if f.vehicle_type:
        q = q.filter(Vehicle.vehicle_type.ilike(f"%{f.vehicle_type}%"))
    if f.tonnage:
        q = q.filter(Vehicle.tonnage.ilike(f"%{f.tonnage}%"))
    if f.year_model:
        q = q.filter(Vehicle.year_model == f.year_model)
    if f.min_fee:
        q = q.filter(Vehicle.monthly_fee >= f.min_fee)
    if f.max_fee:
        q = q.filter(Vehicle.monthly_fee <= f.max_fee)
    if f.search:
        like = f"%{f.search}%"
        q = q.filter(or_(
            Vehicle.vehicle_number.ilike(like),
            Vehicle.vehicle_type.ilike(like),
            Vehicle.region.ilike(like),
            Vehicle.description.ilike(like),
        ))
    return q


def _validate_fields(data: dict):
    for key in ("vehicle_number", "vehicle_type", "region"):
        if key in data and not (data[key] or "").strip():
            raise ValidationError(f"{key} is required")
    if data.get("monthly_fee") is not None and data["monthly_fee"] < 0:
        raise ValidationError("monthly_fee must not be negative")
    if data.get("insurance_rate") is not None and data["insurance_rate"] < 0:
        raise ValidationError("insurance_rate must not be negative")


def _get_owned(db: Session, company_id: int, vehicle_id: int, action: str) -> Vehicle:
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    if vehicle.company_id != company_id:
        raise AuthorizationError(f"You can only {action} your own vehicles")
    return vehicle


def _number_taken(db: Session, company_id: int, vehicle_number: str,
                  exclude_id: Optional[int] = None) -> bool:
    q = db.query(Vehicle.id).filter(Vehicle.company_id == company_id,
                                    Vehicle.vehicle_number == vehicle_number)
    if exclude_id is not None:
        q = q.filter(Vehicle.id != exclude_id)
    return q.first() is not None


def create_vehicle(db: Session, company_id: int, data: dict) -> Vehicle:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    if not company.verified:
        raise AuthorizationError("Only companies with a verified business number can register vehicles")

    for key in ("vehicle_number", "vehicle_type", "region", "insurance_rate", "monthly_fee"):
        if data.get(key) is None:
            raise ValidationError(f"{key} is required")
    _validate_fields(data)
    data = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
    data["vehicle_number"] = data["vehicle_number"].strip()

    if _number_taken(db, company_id, data["vehicle_number"]):
        raise ConflictError(DUPLICATE_NUMBER)

    data.setdefault("is_available", True)
    if data["is_available"] is None:
        data["is_available"] = True
    vehicle = Vehicle(company_id=company_id, view_count=0, created_at=datetime.utcnow(), **data)
    db.add(vehicle)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_NUMBER)
    db.refresh(vehicle)
    logger.info(f"Vehicle {vehicle.id} ({vehicle.vehicle_number}) created by company {company_id}")
    return vehicle


def update_vehicle(db: Session, company_id: int, vehicle_id: int, data: dict) -> Vehicle:
    vehicle = _get_owned(db, company_id, vehicle_id, "update")
    changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
    _validate_fields(changes)

    number = changes.get("vehicle_number")
    if number:
        changes["vehicle_number"] = number.strip()
        if _number_taken(db, company_id, changes["vehicle_number"], exclude_id=vehicle.id):
            raise ConflictError(DUPLICATE_NUMBER)

    for key, value in changes.items():
        setattr(vehicle, key, value)
    vehicle.updated_at = datetime.utcnow()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_NUMBER)
    db.refresh(vehicle)
    logger.info(f"Vehicle {vehicle.id} updated: {sorted(changes)}")
    return vehicle


def delete_vehicle(db: Session, company_id: int, vehicle_id: int) -> dict:
    vehicle = _get_owned(db, company_id, vehicle_id, "delete")
    db.delete(vehicle)
    db.commit()
    logger.info(f"Vehicle {vehicle_id} deleted by company {company_id}")
    return {"message": "Vehicle deleted"}


def list_company_vehicles(db: Session, company_id: int) -> list[Vehicle]:
    return (db.query(Vehicle)
            .filter(Vehicle.company_id == company_id)
            .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
            .all())


def _grouped_stats(db: Session, column, key: str) -> list[dict]:
    rows = (db.query(column, func.count(Vehicle.id), func.avg(Vehicle.monthly_fee))
            .filter(Vehicle.is_available.is_(True))
            .group_by(column)
            .order_by(func.count(Vehicle.id).desc())
            .all())
    return [
        {key: value, "count": count, "average_fee": round(float(avg), 2) if avg is not None else None}
        for value, count, avg in rows
    ]


def region_stats(db: Session) -> list[dict]:
    return _grouped_stats(db, Vehicle.region, "region")


def vehicle_type_stats(db: Session) -> list[dict]:
    return _grouped_stats(db, Vehicle.vehicle_type, "vehicle_type")
