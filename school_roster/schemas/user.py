from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

RoleName = Literal["admin", "teacher", "student"]

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=60)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: RoleName = "student"
    first_name: str = Field(min_length=1, max_length=60)
    last_name: str = Field(min_length=1, max_length=60)

    @field_validator("username", "first_name", "last_name", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def _lower(cls, v):
        return v.lower()

class StudentLink(BaseModel):
    student_id: Optional[int] = Field(default=None, ge=1)

class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    first_name: str
    last_name: str
    student_id: Optional[int] = None
    last_login: Optional[datetime] = None
