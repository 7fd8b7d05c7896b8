# school_roster/api/v1/students.py
from __future__ import annotations

import csv
import io
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from school_roster.api.deps import get_current_user, get_db
from school_roster.core.logging import get_logger, log_with_context
from school_roster.core.rbac import ROLE_ADMIN, ROLE_TEACHER, ensure_student_access, require_roles
from school_roster.crud.student import EXPORT_COLUMNS, student_crud
from school_roster.models.student import Gender
from school_roster.models.user import User
from school_roster.schemas.student import (
    ClassName, ClassStatistics, NextRollNumber, Section, SortField, StatusFilter,
    Student, StudentCreate, StudentDeleted, StudentFilters, StudentPage,
)

router = APIRouter()
logger = get_logger("students")

staff_only = Depends(require_roles(ROLE_ADMIN, ROLE_TEACHER))
admin_only = Depends(require_roles(ROLE_ADMIN))


def _filters(
    status_: StatusFilter = Query("active", alias="status"),
    class_name: Optional[ClassName] = Query(None),
    section: Optional[Section] = Query(None),
    gender: Optional[Gender] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    include_deleted: bool = Query(False),
) -> StudentFilters:
    return StudentFilters(
        status=status_, class_name=class_name, section=section,
        gender=gender, search=search, include_deleted=include_deleted,
    )


@router.get("/", response_model=StudentPage, dependencies=[staff_only])
def list_students(
    filters: StudentFilters = Depends(_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, description="Capped at MAX_PAGE_SIZE"),
    sort_by: SortField = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
):
    result = student_crud.list_students(
        db, filters, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    result["records"] = [Student.model_validate(s) for s in result["records"]]
    return StudentPage(**result)


@router.get("/search", response_model=List[Student], dependencies=[staff_only])
def search_students(
    q: Optional[str] = Query(None, description="Name, parent, phone or roll number"),
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    return [Student.model_validate(s) for s in student_crud.search(db, q, limit)]


@router.get("/next-roll-number", response_model=NextRollNumber, dependencies=[admin_only])
def next_roll_number(
    class_name: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    nxt = student_crud.next_roll_no(db, class_name, section)
    return NextRollNumber(next_roll_no=nxt, class_name=class_name, section=section)


@router.get("/class-statistics", response_model=ClassStatistics, dependencies=[staff_only])
def class_statistics(
    class_name: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return ClassStatistics(**student_crud.class_statistics(db, class_name))


@router.get("/export", dependencies=[admin_only])
def export_students(
    filters: StudentFilters = Depends(_filters),
    db: Session = Depends(get_db),
):
    rows = student_crud.export_rows(db, filters)
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS, quoting=csv.QUOTE_ALL)
    writer.writeheader()
    writer.writerows(rows)
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=students.csv"},
    )


@router.get("/{student_id}", response_model=Student)
def get_student(
    student_id: int = Path(..., ge=1),
    include_deleted: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_student_access(user, student_id)
    if include_deleted and user.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return Student.model_validate(student_crud.get_by_id(db, student_id, include_deleted=include_deleted))


@router.post("/", response_model=Student, status_code=status.HTTP_201_CREATED)
def create_student(
    body: StudentCreate,
    db: Session = Depends(get_db),
    user: User = staff_only,
):
    s = student_crud.create(db, body)
    log_with_context(logger, "INFO", "Student created",
                     context={"student_id": s.id, "user": user.username},
                     extra_data={"roll_no": s.roll_no, "class_name": s.class_name, "section": s.section})
    return Student.model_validate(s)


@router.put("/{student_id}", response_model=Student)
def update_student(
    student_id: int = Path(..., ge=1),
    body: dict = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_student_access(user, student_id)
    s = student_crud.update(db, student_id, body)
    log_with_context(logger, "INFO", "Student updated",
                     context={"student_id": s.id, "user": user.username},
                     extra_data={"fields": sorted(body)})
    return Student.model_validate(s)


@router.delete("/{student_id}", response_model=StudentDeleted)
def delete_student(
    student_id: int = Path(..., ge=1),
    hard_delete: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = staff_only,
):
    if hard_delete:
        if user.role != ROLE_ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can permanently delete")
        student_crud.hard_delete(db, student_id)
        log_with_context(logger, "WARNING", "Student permanently deleted",
                         context={"student_id": student_id, "user": user.username})
        return StudentDeleted(message="Student permanently deleted")

    s = student_crud.soft_delete(db, student_id)
    log_with_context(logger, "INFO", "Student soft deleted",
                     context={"student_id": s.id, "user": user.username})
    return StudentDeleted(message="Student moved to inactive (soft deleted)", data=Student.model_validate(s))


@router.post("/{student_id}/restore", response_model=Student)
def restore_student(
    student_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    user: User = admin_only,
):
    s = student_crud.restore(db, student_id)
    log_with_context(logger, "INFO", "Student restored",
                     context={"student_id": s.id, "user": user.username})
    return Student.model_validate(s)
