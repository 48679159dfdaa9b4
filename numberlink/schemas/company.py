# numberlink/schemas/company.py
from pydantic import BaseModel
from typing import Optional


class CompanyProfileUpdate(BaseModel):
    company_name: Optional[str] = None
    representative: Optional[str] = None
    email: Optional[str] = None
    contact_phone: Optional[str] = None
    # Account level: shared by every company of the account
    phone: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ContactPhoneUpdate(BaseModel):
    contact_phone: str


class CompanyStats(BaseModel):
    total_vehicles: int
    available_vehicles: int
    total_views: int
    recent_views: int
