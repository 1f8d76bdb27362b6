from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rsm.models import Base, new_id, utcnow
from app.rsm.modules.schools.models import School
from app.rsm.modules.students.models import Student
from app.rsm.modules.therapy_services.models import TherapyService


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        Index("idx_reports_therapy_service_id", "therapy_service_id"),
        Index("idx_reports_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    school_id: Mapped[str] = mapped_column(ForeignKey("schools.id"), nullable=False)
    student_id: Mapped[str] = mapped_column(ForeignKey("students.id"), nullable=False)
    therapy_service_id: Mapped[str] = mapped_column(ForeignKey("therapy_services.id"), nullable=False)

    report_type: Mapped[str] = mapped_column(String(16), nullable=False)  # PROGRESS, ATTENDANCE, BILLING, ELIGIBILITY
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    school: Mapped[School] = relationship(lazy="selectin")
    student: Mapped[Student] = relationship(lazy="selectin")
    therapy_service: Mapped[TherapyService] = relationship(lazy="selectin")
