# numberlink/schemas/payment.py
from pydantic import BaseModel
from datetime import datetime
from typing import Literal, Optional


class PaymentCreate(BaseModel):
    vehicle_id: int


class PaymentOut(BaseModel):
    id: int
    user_id: int
    vehicle_id: int
    amount: int
    status: str              # pending | completed | failed
    payment_method: Optional[str]
    paid_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    has_paid: bool
    payment: Optional[PaymentOut]


class MyPaymentOut(BaseModel):
    id: int
    vehicle_id: int
    amount: int
    status: str
    payment_method: Optional[str]
    paid_at: Optional[datetime]
    created_at: datetime
    vehicle_number: Optional[str]
    vehicle_type: Optional[str]
    region: Optional[str]
    company_name: Optional[str]


class PaymentCallback(BaseModel):
    """Gateway notification for a pending payment."""
    status: Literal["completed", "failed"]
    payment_method: Optional[str] = None


class ContactVehicle(BaseModel):
    id: int
    vehicle_number: str
    vehicle_type: str
    region: str
    description: Optional[str]


class ContactCompany(BaseModel):
    company_name: str
    contact_phone: str
    representative: str
    email: Optional[str]


class ContactPayment(BaseModel):
    amount: int
    paid_at: Optional[datetime]


class ContactResponse(BaseModel):
    vehicle: ContactVehicle
    company: ContactCompany
    payment: ContactPayment
