# scripts/setup/seed_data.py
"""
Seed sample data for local development: two drivers, one company account
running two companies, and a handful of vehicle listings.
Safe to re-run; existing rows (matched by phone / business number) are skipped.
Usage: python scripts/setup/seed_data.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from datetime import datetime
from numberlink.database import SessionLocal, create_tables
from numberlink.models.company import Company, CompanyAccount
from numberlink.models.individual import Individual
from numberlink.models.vehicle import Vehicle
from numberlink.services.security import hash_password
from numberlink.utils.phone import normalize_phone

SEED_PASSWORD = "test1234"

DRIVERS = [
    {"name": "김운전", "phone": "010-1111-2222", "email": "driver1@numberlink.co.kr"},
    {"name": "이기사", "phone": "010-3333-4444", "email": "driver2@numberlink.co.kr"},
]

ACCOUNT_PHONE = "010-9999-8888"
COMPANIES = [
    {"business_number": "123-45-67890", "company_name": "넘버링크운수", "representative": "박대표",
     "email": "fleet@numberlink.co.kr", "contact_phone": "02-1234-5678"},
    {"business_number": "222-22-22222", "company_name": "넘버링크물류", "representative": "박대표",
     "email": "logistics@numberlink.co.kr", "contact_phone": None},
]

VEHICLES = [
    # (company index, number, type, tonnage, year, region, insurance %, monthly fee)
    (0, "서울12바3456", "택시", None, 2021, "서울", 8.5, 450000),
    (0, "서울34사5678", "택시", None, 2020, "서울", 8.0, 420000),
    (0, "경기56아7890", "화물", "1톤", 2019, "경기", 6.5, 250000),
    (1, "부산78자1234", "화물", "5톤", 2022, "부산", 7.0, 380000),
    (1, "인천90차5678", "버스", None, 2018, "인천", 9.0, 520000),
]


def main():
    print("🌱 NumberLink seed data")
    print("=" * 40)
    create_tables()
    db = SessionLocal()
    now = datetime.utcnow()
    try:
        for d in DRIVERS:
            if db.query(Individual).filter(Individual.phone_key == normalize_phone(d["phone"])).first():
                print(f"   • driver {d['phone']} exists, skipping")
                continue
            db.add(Individual(name=d["name"], phone=d["phone"], phone_key=normalize_phone(d["phone"]),
                              email=d["email"], password=hash_password(SEED_PASSWORD),
                              verified=True, verified_at=now, created_at=now))
            print(f"   ✓ driver {d['name']} ({d['phone']})")

        account = (db.query(CompanyAccount)
                   .filter(CompanyAccount.phone_key == normalize_phone(ACCOUNT_PHONE))
                   .first())
        if account is None:
            account = CompanyAccount(phone=ACCOUNT_PHONE, phone_key=normalize_phone(ACCOUNT_PHONE),
                                     password=hash_password(SEED_PASSWORD), created_at=now)
            db.add(account)
            db.flush()
            print(f"   ✓ company account {ACCOUNT_PHONE}")

        companies = []
        for c in COMPANIES:
            company = db.query(Company).filter(Company.business_number == c["business_number"]).first()
            if company is None:
                company = Company(account_id=account.id, phone=account.phone, verified=True,
                                  verified_at=now, created_at=now, **c)
                db.add(company)
                db.flush()
                print(f"   ✓ company {c['company_name']} ({c['business_number']})")
            companies.append(company)

        for idx, number, vtype, tonnage, year, region, rate, fee in VEHICLES:
            company = companies[idx]
            exists = db.query(Vehicle).filter(Vehicle.company_id == company.id,
                                              Vehicle.vehicle_number == number).first()
            if exists:
                continue
            db.add(Vehicle(company_id=company.id, vehicle_number=number, vehicle_type=vtype,
                           tonnage=tonnage, year_model=year, region=region, insurance_rate=rate,
                           monthly_fee=fee, description=f"{region} {vtype} 번호판 임대",
                           is_available=True, view_count=0, created_at=now))
            print(f"   ✓ vehicle {number}")

        db.commit()
    except Exception as e:
        db.rollback()
        print(f"❌ Seeding failed: {e}")
        sys.exit(1)
    finally:
        db.close()

    print(f"\n🎉 Done. Every seeded login uses password '{SEED_PASSWORD}'.")


if __name__ == "__main__":
    main()
