# numberlink/models/company.py
"""
Company side of the marketplace.

CompanyAccount owns the login phone and the password hash. One account may
control several Company profiles (separate legal entities, each with its own
business number), which is how one operator runs multiple companies under a
single login. Company.phone mirrors the account phone; contact_phone is the
number revealed to drivers after payment.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from numberlink.database import Base


class CompanyAccount(Base):
    __tablename__ = "company_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(50), nullable=False)
    phone_key = Column(String(50), unique=True, nullable=False, index=True)
    password = Column(String(128), nullable=False)   # bcrypt hash shared by all companies
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    companies = relationship("Company", back_populates="account",
                             order_by="Company.id", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<CompanyAccount {self.id} phone={self.phone}>"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("company_accounts.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    business_number = Column(String(12), unique=True, nullable=False, index=True)  # DDD-DD-DDDDD
    company_name = Column(String(200), nullable=False)
    representative = Column(String(100), nullable=False)
    phone = Column(String(50), nullable=False)
    contact_phone = Column(String(50))
    email = Column(String(255), index=True)
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    account = relationship("CompanyAccount", back_populates="companies")
    vehicles = relationship("Vehicle", back_populates="company", cascade="all, delete-orphan")

    @property
    def disclosed_phone(self) -> str:
        """Number handed to a paying driver: contact_phone, else the account phone."""
        return self.contact_phone or self.phone

    def __repr__(self):
        return f"<Company {self.id} {self.business_number} name={self.company_name}>"
