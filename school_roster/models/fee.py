from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from school_roster.db.base_class import Base
from school_roster.models.student import utcnow


class FeeType(str, Enum):
    tuition = "tuition"
    exam = "exam"
    laboratory = "laboratory"
    other = "other"


class FeeStatus(str, Enum):
    paid = "paid"
    pending = "pending"
    overdue = "overdue"


class PaymentMethod(str, Enum):
    cash = "cash"
    online = "online"
    cheque = "cheque"


class Fee(Base):
    __tablename__ = "fees"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    fee_type: Mapped[str] = mapped_column(String(20))
    semester: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(10), default=FeeStatus.pending.value)
    due_date: Mapped[date] = mapped_column(Date)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_fees_status", "status"),
        Index("ix_fees_created_at", "created_at"),
    )
