"""
Student roster: create/update/soft-delete/restore/hard-delete, listing,
search, export, roll number allocation and class statistics.

Uniqueness of ``roll_no`` and ``email`` among live rows is enforced by the
partial unique indexes on ``students``; every write here relies on them
instead of a separate read-then-write check.
"""
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from school_roster.core.config import settings
from school_roster.core.errors import (
    ConflictError, NotDeletedError, NotFoundError, TransientStorageError, ValidationError,
)
from school_roster.crud.base import STORAGE_ERRORS, CRUDBase, validated
from school_roster.models.student import INT32_MAX, ROLL_NO_MAX, Gender, Student, StudentStatus, utcnow
from school_roster.schemas.student import StudentCreate, StudentFilters, StudentUpdate

PROTECTED_FIELDS = {"id", "created_at", "updated_at", "deleted_at"}
SORT_FIELDS = {"created_at", "updated_at", "full_name", "roll_no", "class_name", "section", "date_of_birth"}
SEARCH_MIN_LENGTH = 2

EXPORT_COLUMNS = ["Full Name", "Roll No", "Class", "Section", "Gender", "Parent", "Phone", "Email"]


def _live():
    return Student.deleted_at.is_(None)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _roll_term(term: str) -> Optional[int]:
    """The roll number ``term`` spells, if it is plain ASCII digits within the column range."""
    if not (term.isascii() and term.isdecimal()):
        return None
    value = int(term)
    return value if 1 <= value <= ROLL_NO_MAX else None


def _search_clause(term: str):
    like = f"%{_escape_like(term)}%"
    clauses = [
        Student.full_name.ilike(like, escape="\\"),
        Student.parent_name.ilike(like, escape="\\"),
        Student.parent_phone.ilike(like, escape="\\"),
    ]
    roll = _roll_term(term)
    if roll is not None:
        clauses.append(Student.roll_no == roll)
    return or_(*clauses)


def _require_class(class_name: Optional[str]) -> None:
    if not class_name:
        raise ValidationError("Class name is required")
    if class_name not in settings.CLASS_NAMES:
        raise ValidationError(f"Invalid class selection: {class_name}")


def _require_section(section: Optional[str]) -> None:
    if not section:
        raise ValidationError("Section is required")
    if section not in settings.SECTIONS:
        raise ValidationError("Section must be A, B, C, D, or E")


class CRUDStudent(CRUDBase[Student, StudentCreate, StudentUpdate]):

    # ---------- lookups ----------
    def get_by_id(self, db: Session, id: int, *, include_deleted: bool = False) -> Student:
        if not 1 <= id <= INT32_MAX:
            raise NotFoundError("Student not found", details={"id": id})
        stmt = select(Student).where(Student.id == id)
        if not include_deleted:
            stmt = stmt.where(_live())
        obj = self.read(db, lambda: db.execute(stmt).scalar_one_or_none())
        if obj is None:
            raise NotFoundError("Student not found", details={"id": id})
        return obj

    def _holder_of(self, db: Session, column, value, exclude_id: Optional[int] = None) -> Optional[int]:
        stmt = select(Student.id).where(column == value, _live())
        if exclude_id is not None:
            stmt = stmt.where(Student.id != exclude_id)
        return self.read(db, lambda: db.execute(stmt.limit(1)).scalar_one_or_none())

    def _conflict(self, db: Session, data: Dict[str, Any], exclude_id: Optional[int] = None) -> ConflictError:
        if data.get("roll_no") is not None and self._holder_of(db, Student.roll_no, data["roll_no"], exclude_id):
            return ConflictError("Roll number already exists", details={"roll_no": data["roll_no"]})
        if data.get("email") and self._holder_of(db, Student.email, data["email"], exclude_id):
            return ConflictError("Email already in use", details={"email": data["email"]})
        return ConflictError("Duplicate field value entered")

    # ---------- allocator ----------
    def next_roll_no(self, db: Session, class_name: Optional[str], section: Optional[str]) -> int:
        """Highest live roll number in (class, section) plus one, or the configured base."""
        _require_class(class_name)
        _require_section(section)
        stmt = select(func.max(Student.roll_no)).where(
            Student.class_name == class_name, Student.section == section, _live()
        )
        current = self.read(db, lambda: db.execute(stmt).scalar())
        return settings.ROLL_NUMBER_BASE if current is None else current + 1

    # ---------- writes ----------
    def create(self, db: Session, obj_in: StudentCreate | Dict[str, Any]) -> Student:
        body = validated(StudentCreate, obj_in)
        values = body.model_dump(exclude={"roll_no"})
        if body.gender is not None:
            values["gender"] = body.gender.value

        explicit = body.roll_no is not None
        if body.email and self._holder_of(db, Student.email, body.email):
            raise ConflictError("Email already in use", details={"email": body.email})
        if explicit and self._holder_of(db, Student.roll_no, body.roll_no):
            raise ConflictError("Roll number already exists", details={"roll_no": body.roll_no})

        # auto-assigned numbers: allocate, insert, and on a lost race allocate again
        attempts = 1 if explicit else max(1, settings.ROLL_ALLOCATION_ATTEMPTS)
        candidate = body.roll_no
        for attempt in range(1, attempts + 1):
            if not explicit:
                allocated = self.next_roll_no(db, body.class_name, body.section)
                candidate = allocated if candidate is None else max(allocated, candidate + 1)

            now = utcnow()
            obj = Student(
                **values,
                roll_no=candidate,
                status=StudentStatus.active.value,
                deleted_at=None,
                created_at=now,
                updated_at=now,
            )
            db.add(obj)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if body.email and self._holder_of(db, Student.email, body.email):
                    raise ConflictError("Email already in use", details={"email": body.email}) from exc
                if explicit:
                    raise ConflictError("Roll number already exists", details={"roll_no": candidate}) from exc
                continue
            except STORAGE_ERRORS as exc:
                db.rollback()
                if explicit or attempt == attempts:
                    raise TransientStorageError("Storage unavailable, retry later.") from exc
                candidate = None
                continue
            db.refresh(obj)
            return obj

        raise ConflictError(
            "Could not allocate a unique roll number, supply one explicitly",
            details={"class_name": body.class_name, "section": body.section, "attempts": attempts},
        )

    def update(self, db: Session, id: int, patch: StudentUpdate | Dict[str, Any]) -> Student:
        obj = self.get_by_id(db, id, include_deleted=True)
        if isinstance(patch, dict):
            patch = {k: v for k, v in patch.items() if k not in PROTECTED_FIELDS}
        data = validated(StudentUpdate, patch).changes()
        if not data:
            raise ValidationError("No fields to update")
        data["updated_at"] = utcnow()

        # single conditional UPDATE; the live-row unique indexes reject collisions
        stmt = update(Student).where(Student.id == id).values(**data).execution_options(synchronize_session=False)
        with self.storage_guard(db):
            try:
                result = db.execute(stmt)
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise self._conflict(db, data, exclude_id=id) from exc
            if result.rowcount == 0:
                raise NotFoundError("Student not found", details={"id": id})
            db.refresh(obj)
        return obj

    def soft_delete(self, db: Session, id: int) -> Student:
        """Mark inactive and stamp ``deleted_at``. Deleting a deleted record is a no-op."""
        obj = self.get_by_id(db, id, include_deleted=True)
        if obj.is_deleted:
            return obj
        now = utcnow()
        stmt = (
            update(Student)
            .where(Student.id == id, _live())
            .values(deleted_at=now, status=StudentStatus.inactive.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self.storage_guard(db):
            db.execute(stmt)
            db.commit()
            db.refresh(obj)
        return obj

    def restore(self, db: Session, id: int) -> Student:
        obj = self.get_by_id(db, id, include_deleted=True)
        if not obj.is_deleted:
            raise NotDeletedError("Student is not deleted", details={"id": id})
        stmt = (
            update(Student)
            .where(Student.id == id, Student.deleted_at.is_not(None))
            .values(deleted_at=None, status=StudentStatus.active.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with self.storage_guard(db):
            try:
                result = db.execute(stmt)
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise self._conflict(db, {"roll_no": obj.roll_no, "email": obj.email}, exclude_id=id) from exc
            if result.rowcount == 0:
                raise NotDeletedError("Student is not deleted", details={"id": id})
            db.refresh(obj)
        return obj

    def hard_delete(self, db: Session, id: int) -> int:
        """Remove the row for good, whatever its soft-delete state. Callers gate this on role."""
        obj = self.get_by_id(db, id, include_deleted=True)
        with self.storage_guard(db):
            db.delete(obj)
            db.commit()
        return id

    # ---------- reads ----------
    def _conditions(self, filters: StudentFilters) -> list:
        conds = []
        if not filters.include_deleted:
            conds.append(_live())
        if filters.status and filters.status != "all":
            conds.append(Student.status == filters.status)
        if filters.class_name:
            conds.append(Student.class_name == filters.class_name)
        if filters.section:
            conds.append(Student.section == filters.section)
        if filters.gender:
            conds.append(Student.gender == filters.gender.value)
        if filters.search and filters.search.strip():
            conds.append(_search_clause(filters.search.strip()))
        return conds

    def list_students(
        self,
        db: Session,
        filters: StudentFilters | Dict[str, Any] | None = None,
        *,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        filters = validated(StudentFilters, filters or {})
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})
        if limit < 1:
            raise ValidationError("limit must be >= 1", details={"limit": limit})
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"Cannot sort by '{sort_by}'", details={"allowed": sorted(SORT_FIELDS)})
        if sort_order not in ("asc", "desc"):
            raise ValidationError("sort_order must be 'asc' or 'desc'")
        limit = min(limit, settings.MAX_PAGE_SIZE)
        if (page - 1) * limit > INT32_MAX:
            raise ValidationError("page is out of range", details={"page": page})

        where = and_(*self._conditions(filters))
        column = getattr(Student, sort_by)
        # id as tiebreaker keeps pages stable when the sort key repeats
        order = [column.desc(), Student.id.desc()] if sort_order == "desc" else [column.asc(), Student.id.asc()]

        count_stmt = select(func.count()).select_from(Student).where(where)
        rows_stmt = select(Student).where(where).order_by(*order).offset((page - 1) * limit).limit(limit)

        total = self.read(db, lambda: db.execute(count_stmt).scalar_one())
        rows = self.read(db, lambda: db.execute(rows_stmt).scalars().all())
        return {
            "records": list(rows),
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit),
            "total_count": total,
        }

    def search(self, db: Session, q: Optional[str], limit: int = 10) -> List[Student]:
        """Live records matching ``q``: exact roll number first, then name prefix, then the rest."""
        term = (q or "").strip()
        if len(term) < SEARCH_MIN_LENGTH:
            return []
        limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
        roll = _roll_term(term)
        rank = case(
            (Student.roll_no == (roll if roll is not None else -1), 0),
            (Student.full_name.ilike(f"{_escape_like(term)}%", escape="\\"), 1),
            else_=2,
        )
        stmt = (
            select(Student)
            .where(_live(), _search_clause(term))
            .order_by(rank, Student.full_name, Student.id)
            .limit(limit)
        )
        return list(self.read(db, lambda: db.execute(stmt).scalars().all()))

    def export_rows(self, db: Session, filters: StudentFilters | Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        filters = validated(StudentFilters, filters or {})
        stmt = (
            select(Student)
            .where(and_(*self._conditions(filters)))
            .order_by(Student.class_name, Student.section, Student.roll_no, Student.id)
        )
        rows = self.read(db, lambda: db.execute(stmt).scalars().all())
        return [
            dict(zip(EXPORT_COLUMNS, (
                s.full_name, s.roll_no, s.class_name, s.section,
                s.gender or "", s.parent_name, s.parent_phone, s.email or "",
            )))
            for s in rows
        ]

    def class_statistics(self, db: Session, class_name: Optional[str]) -> Dict[str, Any]:
        """Live students of a class grouped by section; empty sections are left out."""
        _require_class(class_name)

        def _gender_sum(g: Gender):
            return func.sum(case((Student.gender == g.value, 1), else_=0))

        stmt = (
            select(
                Student.section,
                func.count(Student.id),
                _gender_sum(Gender.male),
                _gender_sum(Gender.female),
                _gender_sum(Gender.other),
            )
            .where(Student.class_name == class_name, _live())
            .group_by(Student.section)
            .order_by(Student.section)
        )
        rows = self.read(db, lambda: db.execute(stmt).all())
        sections = [
            {
                "section": section,
                "count": count,
                "male_count": int(male or 0),
                "female_count": int(female or 0),
                "other_count": int(other or 0),
            }
            for section, count, male, female, other in rows
        ]
        return {
            "class_name": class_name,
            "total_students": sum(s["count"] for s in sections),
            "sections": sections,
        }


student_crud = CRUDStudent(Student)
