# numberlink/models/payment.py
"""
Payment ledger — one row per (individual, vehicle) purchase attempt.
A completed row is a permanent grant to see the vehicle's company contact.
The partial unique index allows any number of pending/failed rows per pair
but at most one completed row.
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from numberlink.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index(
            "uq_payments_completed_user_vehicle", "user_id", "vehicle_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
        Index("ix_payments_user_vehicle", "user_id", "vehicle_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("individuals.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    payment_method = Column(String(50))
    paid_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime)

    user = relationship("Individual", back_populates="payments")
    vehicle = relationship("Vehicle", back_populates="payments")

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    def __repr__(self):
        return f"<Payment {self.id} user={self.user_id} vehicle={self.vehicle_id} status={self.status}>"
