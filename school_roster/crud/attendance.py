from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from school_roster.core.errors import ConflictError, NotFoundError, ValidationError
from school_roster.crud.base import CRUDBase, validated
from school_roster.crud.student import student_crud
from school_roster.models.attendance import Attendance, AttendanceStatus
from school_roster.models.student import INT32_MAX, utcnow
from school_roster.schemas.attendance import AttendanceCreate, AttendanceFilters, AttendanceUpdate


def _conditions(filters: AttendanceFilters) -> list:
    conds = []
    if filters.start_date:
        conds.append(Attendance.date >= filters.start_date)
    if filters.end_date:
        conds.append(Attendance.date <= filters.end_date)
    if filters.student_id:
        conds.append(Attendance.student_id == filters.student_id)
    if filters.subject:
        conds.append(Attendance.subject == filters.subject)
    return conds


class CRUDAttendance(CRUDBase[Attendance, AttendanceCreate, AttendanceUpdate]):
    def get_by_id(self, db: Session, id: int) -> Attendance:
        obj = self.read(db, lambda: db.get(Attendance, id)) if 1 <= id <= INT32_MAX else None
        if obj is None:
            raise NotFoundError("Attendance record not found", details={"id": id})
        return obj

    def mark(self, db: Session, obj_in: AttendanceCreate | Dict[str, Any], *,
             marked_by_id: Optional[int] = None) -> Attendance:
        body = validated(AttendanceCreate, obj_in)
        student_crud.get_by_id(db, body.student_id)

        now = utcnow()
        obj = Attendance(
            student_id=body.student_id,
            date=body.date,
            status=body.status.value,
            subject=body.subject,
            remarks=body.remarks,
            marked_by_id=marked_by_id,
            created_at=now,
            updated_at=now,
        )
        # the (student, date, subject) unique constraint settles duplicates
        with self.storage_guard(db):
            db.add(obj)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ConflictError(
                    "Attendance already marked for this date and subject",
                    details={"student_id": body.student_id, "date": body.date.isoformat(), "subject": body.subject},
                ) from exc
            db.refresh(obj)
        return obj

    def list_range(self, db: Session, filters: AttendanceFilters | Dict[str, Any] | None = None) -> List[Attendance]:
        filters = validated(AttendanceFilters, filters or {})
        stmt = (
            select(Attendance)
            .where(and_(*_conditions(filters)))
            .order_by(Attendance.date.desc(), Attendance.id.desc())
        )
        return list(self.read(db, lambda: db.execute(stmt).scalars().all()))

    def update(self, db: Session, id: int, patch: AttendanceUpdate | Dict[str, Any]) -> Attendance:
        obj = self.get_by_id(db, id)
        data = validated(AttendanceUpdate, patch).changes()
        if not data:
            raise ValidationError("No fields to update")
        data["updated_at"] = utcnow()
        return super().update(db, obj, data)

    def stats(self, db: Session, filters: AttendanceFilters | Dict[str, Any] | None = None) -> List[Dict[str, Any]]:
        """Per-student totals by status; the percentage counts only ``present`` marks."""
        filters = validated(AttendanceFilters, filters or {})

        def _count(s: AttendanceStatus):
            return func.sum(case((Attendance.status == s.value, 1), else_=0))

        stmt = (
            select(
                Attendance.student_id,
                func.count(Attendance.id),
                _count(AttendanceStatus.present),
                _count(AttendanceStatus.absent),
                _count(AttendanceStatus.late),
            )
            .where(and_(*_conditions(filters)))
            .group_by(Attendance.student_id)
            .order_by(Attendance.student_id)
        )
        rows = self.read(db, lambda: db.execute(stmt).all())
        if filters.student_id and not rows:
            raise NotFoundError("No attendance records found", details={"student_id": filters.student_id})
        return [
            {
                "student_id": student_id,
                "total_classes": total,
                "present": int(present or 0),
                "absent": int(absent or 0),
                "late": int(late or 0),
                "attendance_percentage": round(int(present or 0) * 100 / total, 2),
            }
            for student_id, total, present, absent, late in rows
        ]


attendance_crud = CRUDAttendance(Attendance)
