# tests/conftest.py
"""
Shared fixtures. Environment is pinned before any numberlink import so the
settings singleton picks up an in-memory SQLite database and cheap bcrypt.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BUSINESS_VERIFIER"] = "simulated"
os.environ["PAYMENT_WEBHOOK_SECRET"] = ""

import pytest
from numberlink.database import Base, engine, SessionLocal
from numberlink.services import identity_service
from numberlink.services.verification_cache import InMemoryVerificationCache
import numberlink.models  # noqa: F401

PASSWORD = "abcd1234"
COMPANY_PHONE = "010-5555-6666"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache():
    return InMemoryVerificationCache()


@pytest.fixture
def make_individual(db):
    counter = {"n": 0}

    def _make(phone=None, email=None, password=PASSWORD, name="Driver"):
        counter["n"] += 1
        n = counter["n"]
        return identity_service.register_individual(
            db, name, phone or f"010-1000-{n:04d}", email or f"driver{n}@numberlink.co.kr", password)
    return _make


@pytest.fixture
def make_company(db, cache):
    """Registers a company with the number pre-verified in the cache."""
    def _make(business_number="123-45-67890", phone=COMPANY_PHONE, password=PASSWORD,
              company_name="NumberLink Transport", contact_phone=None, email="fleet@numberlink.co.kr"):
        cache.mark_verified(business_number)
        return identity_service.register_company(
            db, cache, business_number, company_name, "Park", phone, email, password, contact_phone)
    return _make


@pytest.fixture
def make_vehicle(db):
    from numberlink.services import vehicle_service

    def _make(company_id, vehicle_number="서울12바3456", monthly_fee=250000, is_available=True, **extra):
        data = {
            "vehicle_number": vehicle_number,
            "vehicle_type": "화물",
            "region": "서울",
            "insurance_rate": 7.5,
            "monthly_fee": monthly_fee,
            "is_available": is_available,
        }
        data.update(extra)
        return vehicle_service.create_vehicle(db, company_id, data)
    return _make
