# numberlink/services/company_service.py
"""
Company profile management and dashboard statistics.
Display fields live on the Company row; the login phone and password belong
to the account and are changed through identity_service.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from numberlink.errors import NotFoundError, NumberLinkError, ValidationError
from numberlink.models.company import Company
from numberlink.models.payment import Payment, PaymentStatus
from numberlink.models.vehicle import Vehicle
from numberlink.services import identity_service
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

RECENT_VIEW_DAYS = 30


def get_company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return company


def update_company_profile(db: Session, company_id: int, company_name: Optional[str] = None,
                           representative: Optional[str] = None, email: Optional[str] = None,
                           contact_phone: Optional[str] = None, phone: Optional[str] = None,
                           current_password: Optional[str] = None,
                           new_password: Optional[str] = None) -> Company:
    """
    Partial update. Blank values are ignored. phone/new_password are account
    level and apply to every sibling company.
    """
    company = get_company(db, company_id)

    try:
        if company_name and company_name.strip():
            company.company_name = company_name.strip()
        if representative and representative.strip():
            company.representative = representative.strip()
        if email and email.strip():
            company.email = identity_service.normalize_email(email)
        if contact_phone is not None:
            company.contact_phone = contact_phone.strip() or None
        company.updated_at = datetime.utcnow()

        identity_service.apply_account_changes(
            db, company, phone=phone, current_password=current_password, new_password=new_password)
    except NumberLinkError:
        # Nothing is saved unless every part of the update is accepted
        db.rollback()
        raise

    identity_service.commit_or_conflict(db, "Phone number already registered")
    db.refresh(company)
    logger.info(f"Company {company_id} profile updated")
    return company


def update_contact_phone(db: Session, company_id: int, contact_phone: str) -> Company:
    if not contact_phone or not contact_phone.strip():
        raise ValidationError("Contact phone is required")
    company = get_company(db, company_id)
    company.contact_phone = contact_phone.strip()
    company.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(company)
    logger.info(f"Company {company_id} contact phone updated")
    return company


def list_sibling_companies(db: Session, company_id: int) -> list[Company]:
    """All companies under the same account, including this one."""
    return list(get_company(db, company_id).account.companies)


def get_company_stats(db: Session, company_id: int) -> dict:
    """
    total_views counts completed contact purchases across the company's
    vehicles; recent_views limits that to the last 30 days.
    """
    get_company(db, company_id)
    total_vehicles = db.query(func.count(Vehicle.id)).filter(Vehicle.company_id == company_id).scalar()
    available_vehicles = db.query(func.count(Vehicle.id)).filter(
        Vehicle.company_id == company_id,
        Vehicle.is_available.is_(True),
    ).scalar()

    purchases = (db.query(func.count(Payment.id))
                 .select_from(Payment)
                 .join(Vehicle, Payment.vehicle_id == Vehicle.id)
                 .filter(Vehicle.company_id == company_id,
                         Payment.status == PaymentStatus.COMPLETED.value))
    total_views = purchases.scalar()
    since = datetime.utcnow() - timedelta(days=RECENT_VIEW_DAYS)
    recent_views = purchases.filter(Payment.paid_at >= since).scalar()

    return {
        "total_vehicles": total_vehicles or 0,
        "available_vehicles": available_vehicles or 0,
        "total_views": total_views or 0,
        "recent_views": recent_views or 0,
    }
