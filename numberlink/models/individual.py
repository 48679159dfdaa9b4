# numberlink/models/individual.py
"""
Individuals (drivers) — the lessee side of the marketplace.
phone_key is the hyphen-stripped phone used for lookups, so
"010-1234-5678" and "01012345678" resolve to the same row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from numberlink.database import Base


class Individual(Base):
    __tablename__ = "individuals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(50), unique=True, nullable=False)
    phone_key = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    password = Column(String(128), nullable=False)   # bcrypt hash
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime)
    last_login = Column(DateTime)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")
    password_resets = relationship("PasswordReset", back_populates="individual",
                                   cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Individual {self.id} phone={self.phone}>"
