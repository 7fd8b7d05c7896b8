# school_roster/api/v1/attendance.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.orm import Session

from school_roster.api.deps import get_current_user, get_db
from school_roster.core.logging import get_logger, log_with_context
from school_roster.core.rbac import ROLE_ADMIN, ROLE_TEACHER, own_student_scope, require_roles
from school_roster.crud.attendance import attendance_crud
from school_roster.crud.base import validated
from school_roster.models.student import INT32_MAX
from school_roster.models.user import User
from school_roster.schemas.attendance import (
    Attendance, AttendanceCreate, AttendanceFilters, AttendanceSaved, AttendanceStats,
)

router = APIRouter()
logger = get_logger("attendance")

staff_only = Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))


def _filters(
    start_date: Optional[dt.date] = Query(None),
    end_date: Optional[dt.date] = Query(None),
    student_id: Optional[int] = Query(None, ge=1, le=INT32_MAX),
    subject: Optional[str] = Query(None, max_length=80),
    user: User = Depends(get_current_user),
) -> AttendanceFilters:
    return validated(AttendanceFilters, {
        "start_date": start_date,
        "end_date": end_date,
        "student_id": own_student_scope(user, student_id),
        "subject": subject,
    })


@router.post("/", response_model=AttendanceSaved, status_code=status.HTTP_201_CREATED)
def mark_attendance(
    body: AttendanceCreate,
    db: Session = Depends(get_db),
    user: User = staff_only,
):
    a = attendance_crud.mark(db, body, marked_by_id=user.id)
    log_with_context(logger, "INFO", "Attendance marked",
                     context={"attendance_id": a.id, "student_id": a.student_id, "user": user.username},
                     extra_data={"date": a.date.isoformat(), "subject": a.subject, "status": a.status})
    return AttendanceSaved(message="Attendance marked successfully", attendance=Attendance.model_validate(a))


@router.get("/", response_model=List[Attendance])
def list_attendance(
    filters: AttendanceFilters = Depends(_filters),
    db: Session = Depends(get_db),
):
    return [Attendance.model_validate(a) for a in attendance_crud.list_range(db, filters)]


@router.get("/stats", response_model=List[AttendanceStats])
def attendance_stats(
    filters: AttendanceFilters = Depends(_filters),
    db: Session = Depends(get_db),
):
    return [AttendanceStats(**row) for row in attendance_crud.stats(db, filters)]


@router.put("/{attendance_id}", response_model=AttendanceSaved)
def update_attendance(
    attendance_id: int = Path(..., ge=1, le=INT32_MAX),
    body: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = staff_only,
):
    a = attendance_crud.update(db, attendance_id, body)
    log_with_context(logger, "INFO", "Attendance updated",
                     context={"attendance_id": a.id, "user": user.username},
                     extra_data={"fields": sorted(body)})
    return AttendanceSaved(message="Attendance updated successfully", attendance=Attendance.model_validate(a))
