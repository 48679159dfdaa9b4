# numberlink/routers/companies.py
"""Company dashboard: own profile, contact phone, stats, sibling companies."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from numberlink.database import get_db
from numberlink.dependencies import require_company
from numberlink.schemas.auth import CompanyOut
from numberlink.schemas.company import CompanyProfileUpdate, CompanyStats, ContactPhoneUpdate
from numberlink.services import company_service
from numberlink.services.security import Principal

router = APIRouter()


@router.get("/companies/profile", response_model=CompanyOut, summary="Own company profile")
def get_profile(principal: Principal = Depends(require_company), db: Session = Depends(get_db)):
    return company_service.get_company(db, principal.id)


@router.put("/companies/profile", response_model=CompanyOut, summary="Update own company profile")
def update_profile(body: CompanyProfileUpdate, principal: Principal = Depends(require_company),
                   db: Session = Depends(get_db)):
    """phone / new_password change the account and therefore every sibling company."""
    return company_service.update_company_profile(db, principal.id, **body.model_dump())


@router.put("/companies/contact-phone", response_model=CompanyOut,
            summary="Set the phone number revealed to paying drivers")
def update_contact_phone(body: ContactPhoneUpdate, principal: Principal = Depends(require_company),
                         db: Session = Depends(get_db)):
    return company_service.update_contact_phone(db, principal.id, body.contact_phone)


@router.get("/companies/stats", response_model=CompanyStats, summary="Dashboard counters")
def get_stats(principal: Principal = Depends(require_company), db: Session = Depends(get_db)):
    return company_service.get_company_stats(db, principal.id)


@router.get("/companies/mine", response_model=list[CompanyOut],
            summary="All companies under the current account")
def list_mine(principal: Principal = Depends(require_company), db: Session = Depends(get_db)):
    return company_service.list_sibling_companies(db, principal.id)
