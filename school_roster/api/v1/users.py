# school_roster/api/v1/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from school_roster.api.deps import get_db
from school_roster.core.logging import get_logger, log_with_context
from school_roster.core.rbac import ROLE_ADMIN, require_roles
from school_roster.crud.student import student_crud
from school_roster.crud.user import user_crud
from school_roster.models.user import User
from school_roster.schemas.user import StudentLink, UserOut

router = APIRouter()
logger = get_logger("auth")

# only admins decide which roster record a student login may reach
@router.put("/{user_id}/student", response_model=UserOut)
def link_student(
    body: StudentLink,
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(require_roles(ROLE_ADMIN)),
):
    target = user_crud.get(db, user_id)
    if body.student_id is not None:
        student_crud.get_by_id(db, body.student_id)
    target = user_crud.link_student(db, target, body.student_id)
    log_with_context(logger, "INFO", "Student login linked",
                     context={"user_id": target.id, "admin": admin.username},
                     extra_data={"student_id": target.student_id})
    return UserOut.model_validate(target)
