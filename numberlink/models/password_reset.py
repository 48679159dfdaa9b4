# numberlink/models/password_reset.py
"""
Single-use password reset tokens for individuals.
issued → used (terminal) or issued → expired (terminal, detected on read).
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from numberlink.database import Base


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    individual_id = Column(Integer, ForeignKey("individuals.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    token = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)

    individual = relationship("Individual", back_populates="password_resets")

    def __repr__(self):
        return f"<PasswordReset {self.id} individual={self.individual_id} used={self.used}>"
