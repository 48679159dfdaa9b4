# numberlink/schemas/auth.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional, Union
from numberlink.services.security import PrincipalType


class RegisterIndividualRequest(BaseModel):
    name: str
    phone: str
    email: str
    password: str


class RegisterCompanyRequest(BaseModel):
    business_number: str      # DDD-DD-DDDDD, verified beforehand
    company_name: str
    representative: str
    phone: str
    email: str
    password: str
    contact_phone: Optional[str] = None


class AddCompanyRequest(BaseModel):
    business_number: str
    company_name: str
    representative: str
    email: str
    password: str             # the account password
    contact_phone: Optional[str] = None


class LoginRequest(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    password: str
    user_type: PrincipalType = PrincipalType.INDIVIDUAL
    default_company_id: Optional[int] = None


class SwitchCompanyRequest(BaseModel):
    phone: str
    company_id: int
    password: str


class VerifyBusinessRequest(BaseModel):
    business_number: str


class VerifyBusinessResponse(BaseModel):
    valid: bool
    message: str


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None


class PasswordResetResponse(BaseModel):
    message: str
    token: Optional[str] = None       # non-production only
    reset_url: Optional[str] = None   # non-production only


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class MessageResponse(BaseModel):
    message: str


class IndividualOut(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str]
    verified: bool
    verified_at: Optional[datetime]
    last_login: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class CompanyOut(BaseModel):
    id: int
    business_number: str
    company_name: str
    representative: str
    phone: str
    contact_phone: Optional[str]
    email: Optional[str]
    verified: bool
    verified_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    token: Optional[str] = None
    user: Union[IndividualOut, CompanyOut]
    user_type: PrincipalType
    companies: Optional[list[CompanyOut]] = None


class OAuthUrlResponse(BaseModel):
    url: str
