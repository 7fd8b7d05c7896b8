# school_roster/core/rbac.py
from typing import Optional

from fastapi import Depends, HTTPException, status
from school_roster.api.deps import get_current_user
from school_roster.models.user import User

ROLE_ADMIN = "admin"
ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"

STAFF = (ROLE_ADMIN, ROLE_TEACHER)

def require_roles(*roles: str):
    allowed = set(roles)
    def dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return dep

def ensure_student_access(user: User, student_id: int) -> None:
    """Staff reach every record; a student login reaches only its own."""
    if user.role in STAFF:
        return
    if user.role == ROLE_STUDENT and user.student_id == student_id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own profile")

def own_student_scope(user: User, student_id: Optional[int]) -> Optional[int]:
    """Student filter a listing may use: staff keep theirs, a student login is pinned to its record."""
    if user.role in STAFF:
        return student_id
    if user.role == ROLE_STUDENT and user.student_id is not None and student_id in (None, user.student_id):
        return user.student_id
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only access your own records")
