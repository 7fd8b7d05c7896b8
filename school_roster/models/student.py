from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from school_roster.db.base_class import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_LIVE = text("deleted_at IS NULL")

# largest value a signed 32-bit INTEGER column holds (ids, roll_no)
INT32_MAX = 2_147_483_647
ROLL_NO_MAX = INT32_MAX


class StudentStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    transferred = "transferred"
    graduated = "graduated"


class Gender(str, Enum):
    male = "Male"
    female = "Female"
    other = "Other"


class Student(Base):
    __tablename__ = "students"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    full_name: Mapped[str] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)

    class_name: Mapped[str] = mapped_column(String(10))
    section: Mapped[str] = mapped_column(String(1))
    roll_no: Mapped[int] = mapped_column(Integer)

    gender: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    parent_name: Mapped[str] = mapped_column(String(120))
    parent_phone: Mapped[str] = mapped_column(String(16))
    emergency_phone: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    address: Mapped[str] = mapped_column(Text)
    photo_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=StudentStatus.active.value)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        # uniqueness only among live (not soft-deleted) rows
        Index(
            "uq_students_roll_no_live", "roll_no", unique=True,
            sqlite_where=_LIVE, postgresql_where=_LIVE,
        ),
        Index(
            "uq_students_email_live", "email", unique=True,
            sqlite_where=_LIVE, postgresql_where=_LIVE,
        ),
        Index("ix_students_class_section_status", "class_name", "section", "status"),
        Index("ix_students_created_at", "created_at"),
        Index("ix_students_deleted_at", "deleted_at"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def age(self) -> Optional[int]:
        if not self.date_of_birth:
            return None
        today = date.today()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))

    def __repr__(self):
        return f"<Student(id={self.id}, roll_no={self.roll_no}, name='{self.full_name}')>"
