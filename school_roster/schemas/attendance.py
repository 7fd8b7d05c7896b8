from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from school_roster.models.attendance import AttendanceStatus
from school_roster.models.student import INT32_MAX


class AttendanceCreate(BaseModel):
    student_id: int = Field(ge=1, le=INT32_MAX)
    date: dt.date
    status: AttendanceStatus
    subject: str = Field(min_length=1, max_length=80)
    remarks: Optional[str] = Field(default=None, max_length=500)

    @field_validator("subject", "remarks", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class AttendanceUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _status_not_null(self):
        if "status" in self.model_fields_set and self.status is None:
            raise ValueError("status cannot be null")
        return self

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        if data.get("status") is not None:
            data["status"] = data["status"].value
        return data


class AttendanceFilters(BaseModel):
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    student_id: Optional[int] = Field(default=None, ge=1, le=INT32_MAX)
    subject: Optional[str] = Field(default=None, max_length=80)

    @model_validator(mode="after")
    def _ordered_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class Attendance(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    date: dt.date
    status: str
    subject: str
    remarks: Optional[str] = None
    marked_by_id: Optional[int] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class AttendanceSaved(BaseModel):
    message: str
    attendance: Attendance


class AttendanceStats(BaseModel):
    student_id: int
    total_classes: int
    present: int
    absent: int
    late: int
    attendance_percentage: float
