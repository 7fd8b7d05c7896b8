import datetime as dt
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from school_roster.db.base_class import Base
from school_roster.models.student import utcnow


class AttendanceStatus(str, Enum):
    present = "present"
    absent = "absent"
    late = "late"


class Attendance(Base):
    __tablename__ = "attendance"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"))
    date: Mapped[dt.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(10))
    subject: Mapped[str] = mapped_column(String(80))
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    marked_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # one mark per student, day and subject
        UniqueConstraint("student_id", "date", "subject", name="uq_attendance_student_date_subject"),
        Index("ix_attendance_date", "date"),
    )
