# numberlink/models/vehicle.py
"""
Vehicle number listings offered for lease by a Company.
(company_id, vehicle_number) is unique; view_count is bumped on each detail fetch.
"""

from sqlalchemy import (Column, Integer, String, DateTime, Boolean, Float, Text,
                        ForeignKey, UniqueConstraint)
from sqlalchemy.orm import relationship
from numberlink.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (
        UniqueConstraint("company_id", "vehicle_number", name="uq_vehicles_company_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    vehicle_number = Column(String(50), nullable=False)
    vehicle_type = Column(String(50), nullable=False)     # 택시 | 화물 | 버스 ...
    tonnage = Column(String(20))
    year_model = Column(Integer)
    region = Column(String(100), nullable=False, index=True)
    insurance_rate = Column(Float, nullable=False)        # percent
    monthly_fee = Column(Integer, nullable=False)         # KRW
    description = Column(Text)
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    view_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime)

    company = relationship("Company", back_populates="vehicles")
    payments = relationship("Payment", back_populates="vehicle", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Vehicle {self.id} {self.vehicle_number} company={self.company_id}>"
