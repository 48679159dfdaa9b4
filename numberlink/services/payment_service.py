# numberlink/services/payment_service.py
"""
Payment ledger: paid access to a vehicle's company contact.

Lifecycle of a row:  pending → completed   (gateway confirmed)
                     pending → failed      (gateway declined / lost a race)

create_payment() always commits the pending row first and hands it to the
PaymentGateway. Only a confirmed result (now, or later through the callback
endpoint) moves it to completed via confirm_payment(). The partial unique
index on (user_id, vehicle_id) WHERE status='completed' guarantees a second
completed row can never be written; the loser of a concurrent double submit
is marked failed and gets a ConflictError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from numberlink.config import settings
from numberlink.errors import ConflictError, InvalidStateError, NotFoundError
from numberlink.models.individual import Individual
from numberlink.models.payment import Payment, PaymentStatus
from numberlink.models.vehicle import Vehicle
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

ALREADY_PURCHASED = "You have already purchased this contact"


@dataclass
class GatewayResult:
    confirmed: bool
    method: Optional[str] = None
    declined: bool = False     # neither confirmed nor declined: wait for the callback


class PaymentGateway(ABC):
    @abstractmethod
    def request_payment(self, payment: Payment) -> GatewayResult:
        ...


class SimulatedPaymentGateway(PaymentGateway):
    """Stand-in processor: every request is confirmed on the spot as a card payment."""

    def request_payment(self, payment: Payment) -> GatewayResult:
        return GatewayResult(confirmed=True, method="card")


def has_completed_payment(db: Session, user_id: int, vehicle_id: int) -> bool:
    return db.query(Payment.id).filter(
        Payment.user_id == user_id,
        Payment.vehicle_id == vehicle_id,
        Payment.status == PaymentStatus.COMPLETED.value,
    ).first() is not None


def create_payment(db: Session, user_id: int, vehicle_id: int, gateway: PaymentGateway) -> Payment:
    if db.get(Individual, user_id) is None:
        raise NotFoundError("User not found")
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFoundError("Vehicle not found")
    if not vehicle.is_available:
        raise InvalidStateError("This vehicle is not available")
    if has_completed_payment(db, user_id, vehicle_id):
        raise ConflictError(ALREADY_PURCHASED)

    now = datetime.utcnow()
    payment = Payment(
        user_id=user_id,
        vehicle_id=vehicle_id,
        amount=settings.PAYMENT_AMOUNT,
        status=PaymentStatus.PENDING.value,
        created_at=now,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info(f"Payment {payment.id} pending: user={user_id} vehicle={vehicle_id} amount={payment.amount}")

    result = gateway.request_payment(payment)
    if result.confirmed:
        return confirm_payment(db, payment.id, result.method)
    if result.declined:
        return fail_payment(db, payment.id)
    return payment


def confirm_payment(db: Session, payment_id: int, method: Optional[str] = None) -> Payment:
    """Gateway confirmation. Idempotent for already completed rows."""
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status == PaymentStatus.COMPLETED.value:
        return payment
    if payment.status == PaymentStatus.FAILED.value:
        raise InvalidStateError("Payment has already failed")

    if has_completed_payment(db, payment.user_id, payment.vehicle_id):
        fail_payment(db, payment.id)
        raise ConflictError(ALREADY_PURCHASED)

    payment.status = PaymentStatus.COMPLETED.value
    payment.payment_method = method
    payment.paid_at = datetime.utcnow()
    payment.updated_at = payment.paid_at
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Payment {payment_id} lost a completion race, marking failed")
        fail_payment(db, payment_id)
        raise ConflictError(ALREADY_PURCHASED)

    db.refresh(payment)
    logger.info(f"Payment {payment.id} completed: user={payment.user_id} vehicle={payment.vehicle_id}")
    return payment


def fail_payment(db: Session, payment_id: int) -> Payment:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status == PaymentStatus.COMPLETED.value:
        raise InvalidStateError("Completed payments cannot be failed")
    if payment.status != PaymentStatus.FAILED.value:
        payment.status = PaymentStatus.FAILED.value
        payment.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(payment)
        logger.info(f"Payment {payment.id} failed")
    return payment


def get_status(db: Session, user_id: int, vehicle_id: int) -> dict:
    """has_paid over all rows for the pair, plus the latest row of any status."""
    latest = (db.query(Payment)
              .filter(Payment.user_id == user_id, Payment.vehicle_id == vehicle_id)
              .order_by(Payment.created_at.desc(), Payment.id.desc())
              .first())
    return {
        "has_paid": has_completed_payment(db, user_id, vehicle_id),
        "payment": latest,
    }


def list_mine(db: Session, user_id: int) -> list[dict]:
    payments = (db.query(Payment)
                .options(joinedload(Payment.vehicle).joinedload(Vehicle.company))
                .filter(Payment.user_id == user_id)
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .all())
    results = []
    for p in payments:
        v = p.vehicle
        results.append({
            "id": p.id,
            "vehicle_id": p.vehicle_id,
            "amount": p.amount,
            "status": p.status,
            "payment_method": p.payment_method,
            "paid_at": p.paid_at,
            "created_at": p.created_at,
            "vehicle_number": v.vehicle_number if v else None,
            "vehicle_type": v.vehicle_type if v else None,
            "region": v.region if v else None,
            "company_name": v.company.company_name if v and v.company else None,
        })
    return results
