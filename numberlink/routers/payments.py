# numberlink/routers/payments.py
"""
Pay-to-reveal endpoints.
POST /payments                — buy access to one vehicle's contact
GET  /payments/contact/{id}   — the only route that returns a company phone
POST /payments/{id}/callback  — gateway notification (shared-secret header)
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from numberlink.config import settings
from numberlink.database import get_db
from numberlink.dependencies import get_payment_gateway, require_individual
from numberlink.errors import AuthenticationError, NotFoundError
from numberlink.schemas.payment import (ContactResponse, MyPaymentOut, PaymentCallback,
                                        PaymentCreate, PaymentOut, PaymentStatusResponse)
from numberlink.services import disclosure_service, payment_service
from numberlink.services.payment_service import PaymentGateway
from numberlink.services.security import Principal
from numberlink.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/payments", response_model=PaymentOut, status_code=201, summary="Buy a vehicle's contact")
def create_payment(body: PaymentCreate, principal: Principal = Depends(require_individual),
                   db: Session = Depends(get_db),
                   gateway: PaymentGateway = Depends(get_payment_gateway)):
    return payment_service.create_payment(db, principal.id, body.vehicle_id, gateway)


@router.get("/payments/my", response_model=list[MyPaymentOut], summary="Own payments, newest first")
def my_payments(principal: Principal = Depends(require_individual), db: Session = Depends(get_db)):
    return payment_service.list_mine(db, principal.id)


@router.get("/payments/status/{vehicle_id}", response_model=PaymentStatusResponse,
            summary="Has the caller paid for this vehicle?")
def payment_status(vehicle_id: int, principal: Principal = Depends(require_individual),
                   db: Session = Depends(get_db)):
    return payment_service.get_status(db, principal.id, vehicle_id)


@router.get("/payments/contact/{vehicle_id}", response_model=ContactResponse,
            summary="Company contact, after payment")
def contact(vehicle_id: int, principal: Principal = Depends(require_individual),
            db: Session = Depends(get_db)):
    return disclosure_service.get_contact_after_payment(db, principal.id, vehicle_id)


@router.post("/payments/{payment_id}/callback", response_model=PaymentOut,
             summary="Payment gateway callback")
def payment_callback(payment_id: int, body: PaymentCallback,
                     x_payment_webhook_secret: Optional[str] = Header(default=None),
                     db: Session = Depends(get_db)):
    """Disabled (404) unless PAYMENT_WEBHOOK_SECRET is set."""
    if not settings.PAYMENT_WEBHOOK_SECRET:
        raise NotFoundError("Not found")
    if not x_payment_webhook_secret or not hmac.compare_digest(
            x_payment_webhook_secret, settings.PAYMENT_WEBHOOK_SECRET):
        logger.warning(f"Payment callback for {payment_id} with bad secret")
        raise AuthenticationError("Invalid webhook secret")

    if body.status == "completed":
        return payment_service.confirm_payment(db, payment_id, body.payment_method)
    return payment_service.fail_payment(db, payment_id)
