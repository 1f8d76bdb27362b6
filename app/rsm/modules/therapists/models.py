from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rsm.models import Base, User, new_id, utcnow


class Therapist(Base):
    __tablename__ = "therapists"
    __table_args__ = (
        Index("idx_therapists_user_id", "user_id"),
        Index("idx_therapists_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)

    disciplines: Mapped[str] = mapped_column(String(255), nullable=False)
    license_number: Mapped[str] = mapped_column(String(64), nullable=False)
    medicaid_national_provider_id: Mapped[int] = mapped_column(Integer, nullable=False)
    social_security: Mapped[str] = mapped_column(String(64), nullable=False)
    state_medicaid_provider_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # ACTIVE, INACTIVE, PENDING

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped[User] = relationship(lazy="selectin")
