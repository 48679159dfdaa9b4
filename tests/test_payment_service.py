# tests/test_payment_service.py
"""Payment ledger: two-phase lifecycle, duplicate purchase protection, status queries."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime
from unittest.mock import MagicMock
from numberlink.errors import ConflictError, InvalidStateError, NotFoundError
from numberlink.models.payment import Payment, PaymentStatus
from numberlink.services import payment_service
from numberlink.services.payment_service import GatewayResult, SimulatedPaymentGateway


@pytest.fixture
def driver(make_individual):
    return make_individual().user


@pytest.fixture
def vehicle(make_company, make_vehicle):
    return make_vehicle(make_company().user.id)


def pending_gateway():
    gateway = MagicMock()
    gateway.request_payment.return_value = GatewayResult(confirmed=False)
    return gateway


def completed_count(db, user_id, vehicle_id):
    return db.query(Payment).filter(Payment.user_id == user_id, Payment.vehicle_id == vehicle_id,
                                    Payment.status == PaymentStatus.COMPLETED.value).count()


class TestCreatePayment:
    def test_simulated_gateway_completes(self, db, driver, vehicle):
        payment = payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.amount == 10000
        assert payment.payment_method == "card"
        assert payment.paid_at is not None

    def test_pending_row_is_committed_before_gateway(self, db, driver, vehicle):
        seen = {}

        class RecordingGateway(payment_service.PaymentGateway):
            def request_payment(self, payment):
                seen["status"] = db.get(Payment, payment.id).status
                return GatewayResult(confirmed=True, method="card")

        payment_service.create_payment(db, driver.id, vehicle.id, RecordingGateway())
        assert seen["status"] == PaymentStatus.PENDING.value

    def test_unconfirmed_payment_stays_pending(self, db, driver, vehicle):
        payment = payment_service.create_payment(db, driver.id, vehicle.id, pending_gateway())
        assert payment.status == PaymentStatus.PENDING.value
        assert payment_service.has_completed_payment(db, driver.id, vehicle.id) is False

    def test_declined_payment_fails(self, db, driver, vehicle):
        gateway = MagicMock()
        gateway.request_payment.return_value = GatewayResult(confirmed=False, declined=True)
        payment = payment_service.create_payment(db, driver.id, vehicle.id, gateway)
        assert payment.status == PaymentStatus.FAILED.value

    def test_second_purchase_conflicts(self, db, driver, vehicle):
        gateway = SimulatedPaymentGateway()
        payment_service.create_payment(db, driver.id, vehicle.id, gateway)
        with pytest.raises(ConflictError):
            payment_service.create_payment(db, driver.id, vehicle.id, gateway)
        assert completed_count(db, driver.id, vehicle.id) == 1

    def test_missing_vehicle(self, db, driver):
        with pytest.raises(NotFoundError):
            payment_service.create_payment(db, driver.id, 9999, SimulatedPaymentGateway())

    def test_unavailable_vehicle(self, db, driver, make_company, make_vehicle):
        vehicle = make_vehicle(make_company().user.id, is_available=False)
        with pytest.raises(InvalidStateError):
            payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())


class TestCallbacks:
    def test_confirm_is_idempotent(self, db, driver, vehicle):
        payment = payment_service.create_payment(db, driver.id, vehicle.id, pending_gateway())
        first = payment_service.confirm_payment(db, payment.id, "card")
        paid_at = first.paid_at
        again = payment_service.confirm_payment(db, payment.id, "card")
        assert again.status == PaymentStatus.COMPLETED.value
        assert again.paid_at == paid_at

    def test_confirm_failed_payment_is_invalid(self, db, driver, vehicle):
        payment = payment_service.create_payment(db, driver.id, vehicle.id, pending_gateway())
        payment_service.fail_payment(db, payment.id)
        with pytest.raises(InvalidStateError):
            payment_service.confirm_payment(db, payment.id)

    def test_failing_completed_payment_is_invalid(self, db, driver, vehicle):
        payment = payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())
        with pytest.raises(InvalidStateError):
            payment_service.fail_payment(db, payment.id)

    def test_double_confirmation_of_two_pending_rows(self, db, driver, vehicle):
        """Two pending rows raced through the gateway: only one may complete."""
        a = payment_service.create_payment(db, driver.id, vehicle.id, pending_gateway())
        b = payment_service.create_payment(db, driver.id, vehicle.id, pending_gateway())

        payment_service.confirm_payment(db, a.id, "card")
        with pytest.raises(ConflictError):
            payment_service.confirm_payment(db, b.id, "card")

        assert db.get(Payment, b.id).status == PaymentStatus.FAILED.value
        assert completed_count(db, driver.id, vehicle.id) == 1

    def test_unique_index_blocks_second_completed_row(self, db, driver, vehicle):
        now = datetime.utcnow()
        payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())
        db.add(Payment(user_id=driver.id, vehicle_id=vehicle.id, amount=10000,
                       status=PaymentStatus.COMPLETED.value, paid_at=now, created_at=now))
        from sqlalchemy.exc import IntegrityError
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_unknown_payment(self, db):
        with pytest.raises(NotFoundError):
            payment_service.confirm_payment(db, 9999)


class TestQueries:
    def test_status_before_and_after(self, db, driver, vehicle):
        before = payment_service.get_status(db, driver.id, vehicle.id)
        assert before == {"has_paid": False, "payment": None}

        payment = payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())
        after = payment_service.get_status(db, driver.id, vehicle.id)
        assert after["has_paid"] is True
        assert after["payment"].id == payment.id

    def test_status_reports_latest_row_but_keeps_grant(self, db, driver, vehicle):
        payment_service.create_payment(db, driver.id, vehicle.id, SimulatedPaymentGateway())
        later = Payment(user_id=driver.id, vehicle_id=vehicle.id, amount=10000,
                        status=PaymentStatus.FAILED.value, created_at=datetime.utcnow())
        db.add(later)
        db.commit()

        status = payment_service.get_status(db, driver.id, vehicle.id)
        assert status["has_paid"] is True
        assert status["payment"].id == later.id

    def test_list_mine_newest_first_with_display_fields(self, db, driver, make_company, make_vehicle):
        company = make_company(company_name="NumberLink Transport").user
        v1 = make_vehicle(company.id, vehicle_number="서울11가1111")
        v2 = make_vehicle(company.id, vehicle_number="서울22나2222")
        gateway = SimulatedPaymentGateway()
        payment_service.create_payment(db, driver.id, v1.id, gateway)
        payment_service.create_payment(db, driver.id, v2.id, gateway)

        mine = payment_service.list_mine(db, driver.id)
        assert [p["vehicle_number"] for p in mine] == ["서울22나2222", "서울11가1111"]
        assert mine[0]["company_name"] == "NumberLink Transport"
        assert "contact_phone" not in mine[0]
