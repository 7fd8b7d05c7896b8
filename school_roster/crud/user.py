from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from school_roster.core.errors import NotFoundError, ValidationError
from school_roster.core.security_password import hash_password
from school_roster.crud.base import CRUDBase
from school_roster.models.student import INT32_MAX
from school_roster.models.user import User, UserRole
from school_roster.schemas.user import UserCreate

class CRUDUser(CRUDBase[User, UserCreate, UserCreate]):
    def create(self, db: Session, obj_in: UserCreate) -> User:
        data = obj_in.model_dump()
        data["hashed_password"] = hash_password(data.pop("password"))
        user = User(**data)
        with self.storage_guard(db):
            db.add(user); db.commit(); db.refresh(user)
        return user

    def get(self, db: Session, id: int) -> User:
        user = self.read(db, lambda: db.get(User, id)) if 1 <= id <= INT32_MAX else None
        if user is None:
            raise NotFoundError("User not found", details={"id": id})
        return user

    def get_by_username(self, db: Session, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        return self.read(db, lambda: db.execute(stmt).scalar_one_or_none())

    def exists(self, db: Session, *, username: str, email: str) -> bool:
        stmt = select(User.id).where(or_(User.username == username, User.email == email)).limit(1)
        return self.read(db, lambda: db.execute(stmt).scalar_one_or_none()) is not None

    def link_student(self, db: Session, user: User, student_id: Optional[int]) -> User:
        """Point a student login at its roster record (or unlink it with None)."""
        if student_id is not None and user.role != UserRole.student.value:
            raise ValidationError("Only student logins can be linked to a roster record",
                                  details={"role": user.role})
        return self.update(db, user, {"student_id": student_id})

user_crud = CRUDUser(User)
