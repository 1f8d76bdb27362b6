from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rsm.models import Base, JSONType, new_id, utcnow
from app.rsm.modules.providers.models import Provider
from app.rsm.modules.students.models import Student


class TherapyService(Base):
    __tablename__ = "therapy_services"
    __table_args__ = (
        Index("idx_therapy_services_student_id", "student_id"),
        Index("idx_therapy_services_provider_id", "provider_id"),
        Index("idx_therapy_services_session_date", "session_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id: Mapped[str] = mapped_column(ForeignKey("students.id"), nullable=False)
    provider_id: Mapped[str] = mapped_column(ForeignKey("providers.id"), nullable=False)

    service_type: Mapped[str] = mapped_column(String(16), nullable=False)  # SPEECH, OCCUPATIONAL, PHYSICAL
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="SCHEDULED")  # SCHEDULED, COMPLETED, MISSED
    service_begin_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    session_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    session_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    delivery_mode: Mapped[str] = mapped_column(String(16), nullable=False)  # VIRTUAL, IN_PERSON
    goal_tracking: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    ieps: Mapped[Any | None] = mapped_column(JSONType, nullable=True)
    next_meeting_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    student: Mapped[Student] = relationship(lazy="selectin")
    provider: Mapped[Provider] = relationship(lazy="selectin")
