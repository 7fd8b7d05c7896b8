from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from school_roster.models.fee import FeeStatus, FeeType, PaymentMethod
from school_roster.models.student import INT32_MAX


class FeeCreate(BaseModel):
    student_id: int = Field(ge=1, le=INT32_MAX)
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    fee_type: FeeType
    semester: int = Field(ge=1, le=12)
    due_date: dt.date
    status: FeeStatus = FeeStatus.pending
    payment_method: Optional[PaymentMethod] = None
    remarks: Optional[str] = Field(default=None, max_length=500)

    @field_validator("remarks", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class FeeStatusUpdate(BaseModel):
    status: FeeStatus
    payment_method: Optional[PaymentMethod] = None
    remarks: Optional[str] = Field(default=None, max_length=500)


class FeeFilters(BaseModel):
    student_id: Optional[int] = Field(default=None, ge=1, le=INT32_MAX)
    semester: Optional[int] = Field(default=None, ge=1, le=12)
    status: Optional[FeeStatus] = None


class FeeStatisticsFilters(BaseModel):
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    class_name: Optional[str] = None

    @model_validator(mode="after")
    def _ordered_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class Fee(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    amount: float
    fee_type: str
    semester: int
    status: str
    due_date: dt.date
    payment_date: Optional[dt.datetime] = None
    payment_method: Optional[str] = None
    receipt_number: Optional[str] = None
    remarks: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class FeeSaved(BaseModel):
    message: str
    fee: Fee


class FeeBucket(BaseModel):
    amount: float = 0.0
    count: int = 0


class FeeStatistics(BaseModel):
    paid: FeeBucket
    pending: FeeBucket
    overdue: FeeBucket
