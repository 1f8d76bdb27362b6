from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.rsm.models import Base, JSONType, User, new_id, utcnow
from app.rsm.modules.schools.models import School


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        Index("idx_students_last_name", "last_name"),
        Index("idx_students_school_id", "school_id"),
        Index("idx_students_student_code", "student_code"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    grade_level: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-12
    student_code: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE
    confirmation_status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")  # CONFIRMED, PENDING, RESCHEDULED

    school_id: Mapped[str] = mapped_column(ForeignKey("schools.id"), nullable=False)
    parent_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    school: Mapped[School] = relationship(lazy="selectin")
    parent: Mapped[User] = relationship(foreign_keys=[parent_id], lazy="selectin")
    accommodations: Mapped[list["StudentAccommodation"]] = relationship(
        back_populates="student",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    teachers: Mapped[list["StudentTeacher"]] = relationship(
        back_populates="student",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Accommodation(Base):
    __tablename__ = "accommodations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class StudentAccommodation(Base):
    __tablename__ = "student_accommodations"

    student_id: Mapped[str] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    accommodation_id: Mapped[str] = mapped_column(ForeignKey("accommodations.id", ondelete="CASCADE"), primary_key=True)
    details: Mapped[Any | None] = mapped_column(JSONType, nullable=True)

    student: Mapped[Student] = relationship(back_populates="accommodations")
    accommodation: Mapped[Accommodation] = relationship(lazy="selectin")


class StudentTeacher(Base):
    __tablename__ = "student_teachers"

    student_id: Mapped[str] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    teacher_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    student: Mapped[Student] = relationship(back_populates="teachers")
    teacher: Mapped[User] = relationship(lazy="selectin")
