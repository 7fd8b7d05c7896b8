from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from school_roster.models.student import ROLL_NO_MAX, Gender, StudentStatus

ClassName = Literal[
    "Class 1", "Class 2", "Class 3", "Class 4", "Class 5", "Class 6",
    "Class 7", "Class 8", "Class 9", "Class 10", "Class 11", "Class 12",
]
Section = Literal["A", "B", "C", "D", "E"]
StatusFilter = Literal["active", "inactive", "transferred", "graduated", "all"]
SortField = Literal[
    "created_at", "updated_at", "full_name", "roll_no", "class_name", "section", "date_of_birth",
]

PHONE_RE = re.compile(r"^[+]?[0-9]{10,15}$")

# columns that may be NULL; everything else rejects an explicit null in a patch
_NULLABLE = {"email", "gender", "date_of_birth", "emergency_phone", "photo_url"}


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not PHONE_RE.match(v):
        raise ValueError("Please provide a valid phone number")
    return v


class _StudentFields(BaseModel):
    @field_validator("email", "gender", "date_of_birth", "emergency_phone", "photo_url",
                     "roll_no", mode="before", check_fields=False)
    @classmethod
    def _optional_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("full_name", "parent_name", "address", mode="before", check_fields=False)
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", check_fields=False)
    @classmethod
    def _lower_email(cls, v):
        return v.lower() if v else v

    @field_validator("parent_phone", "emergency_phone", check_fields=False)
    @classmethod
    def _phone(cls, v):
        return _check_phone(v)


class StudentCreate(_StudentFields):
    full_name: str = Field(min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    class_name: ClassName
    section: Section
    roll_no: Optional[int] = Field(default=None, ge=1, le=ROLL_NO_MAX)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    parent_name: str = Field(min_length=1, max_length=120)
    parent_phone: str
    emergency_phone: Optional[str] = None
    address: str = Field(min_length=1)
    photo_url: Optional[str] = Field(default=None, max_length=255)


class StudentUpdate(_StudentFields):
    # id, created_at, updated_at, deleted_at are not fields: silently ignored
    model_config = ConfigDict(extra="ignore")

    full_name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None
    class_name: Optional[ClassName] = None
    section: Optional[Section] = None
    roll_no: Optional[int] = Field(default=None, ge=1, le=ROLL_NO_MAX)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    parent_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    parent_phone: Optional[str] = None
    emergency_phone: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1)
    photo_url: Optional[str] = Field(default=None, max_length=255)
    status: Optional[StudentStatus] = None

    @model_validator(mode="after")
    def _no_null_required(self):
        for name in self.model_fields_set:
            if name not in _NULLABLE and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        for key in ("gender", "status"):
            if data.get(key) is not None:
                data[key] = data[key].value
        return data


class StudentFilters(BaseModel):
    status: StatusFilter = "active"
    class_name: Optional[ClassName] = None
    section: Optional[Section] = None
    gender: Optional[Gender] = None
    search: Optional[str] = None
    include_deleted: bool = False


class Student(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: Optional[str] = None
    class_name: str
    section: str
    roll_no: int
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    parent_name: str
    parent_phone: str
    emergency_phone: Optional[str] = None
    address: str
    photo_url: Optional[str] = None
    status: str
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class StudentPage(BaseModel):
    records: List[Student]
    page: int
    limit: int
    total_pages: int
    total_count: int


class StudentDeleted(BaseModel):
    message: str
    data: Optional[Student] = None


class NextRollNumber(BaseModel):
    next_roll_no: int
    class_name: str
    section: str


class SectionStats(BaseModel):
    section: str
    count: int
    male_count: int
    female_count: int
    other_count: int


class ClassStatistics(BaseModel):
    class_name: str
    total_students: int
    sections: List[SectionStats]
