import datetime as dt
import secrets
import time
from typing import Any, Dict, List

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from school_roster.core.errors import NotFoundError
from school_roster.crud.base import CRUDBase, validated
from school_roster.crud.student import student_crud
from school_roster.models.fee import Fee, FeeStatus
from school_roster.models.student import INT32_MAX, Student, utcnow
from school_roster.schemas.fee import FeeCreate, FeeFilters, FeeStatisticsFilters, FeeStatusUpdate


def generate_receipt_number() -> str:
    return f"RCP{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def _day_start(d: dt.date) -> dt.datetime:
    return dt.datetime.combine(d, dt.time.min, tzinfo=dt.timezone.utc)


class CRUDFee(CRUDBase[Fee, FeeCreate, FeeStatusUpdate]):
    def get_by_id(self, db: Session, id: int) -> Fee:
        obj = self.read(db, lambda: db.get(Fee, id)) if 1 <= id <= INT32_MAX else None
        if obj is None:
            raise NotFoundError("Fee record not found", details={"id": id})
        return obj

    def create(self, db: Session, obj_in: FeeCreate | Dict[str, Any]) -> Fee:
        body = validated(FeeCreate, obj_in)
        student_crud.get_by_id(db, body.student_id)

        now = utcnow()
        fee = Fee(
            student_id=body.student_id,
            amount=body.amount,
            fee_type=body.fee_type.value,
            semester=body.semester,
            status=body.status.value,
            due_date=body.due_date,
            payment_method=body.payment_method.value if body.payment_method else None,
            remarks=body.remarks,
            created_at=now,
            updated_at=now,
        )
        if body.status is FeeStatus.paid:
            fee.payment_date = now
            fee.receipt_number = generate_receipt_number()
        with self.storage_guard(db):
            db.add(fee); db.commit(); db.refresh(fee)
        return fee

    def list_fees(self, db: Session, filters: FeeFilters | Dict[str, Any] | None = None) -> List[Fee]:
        filters = validated(FeeFilters, filters or {})
        conds = []
        if filters.student_id:
            conds.append(Fee.student_id == filters.student_id)
        if filters.semester:
            conds.append(Fee.semester == filters.semester)
        if filters.status:
            conds.append(Fee.status == filters.status.value)
        stmt = select(Fee).where(and_(*conds)).order_by(Fee.created_at.desc(), Fee.id.desc())
        return list(self.read(db, lambda: db.execute(stmt).scalars().all()))

    def update_status(self, db: Session, id: int, obj_in: FeeStatusUpdate | Dict[str, Any]) -> Fee:
        """Move a fee between states; the first transition to ``paid`` stamps payment and receipt."""
        fee = self.get_by_id(db, id)
        body = validated(FeeStatusUpdate, obj_in)
        now = utcnow()
        data: Dict[str, Any] = {"status": body.status.value, "updated_at": now}
        if body.status is FeeStatus.paid and fee.status != FeeStatus.paid.value:
            data["payment_date"] = now
            data["payment_method"] = body.payment_method.value if body.payment_method else fee.payment_method
            data["receipt_number"] = generate_receipt_number()
        if body.remarks:
            data["remarks"] = body.remarks
        return super().update(db, fee, data)

    def statistics(self, db: Session, filters: FeeStatisticsFilters | Dict[str, Any] | None = None) -> Dict[str, Dict[str, Any]]:
        """Amount and count per status, every status present even when zero."""
        filters = validated(FeeStatisticsFilters, filters or {})
        stmt = select(Fee.status, func.sum(Fee.amount), func.count(Fee.id)).group_by(Fee.status)
        if filters.start_date:
            stmt = stmt.where(Fee.created_at >= _day_start(filters.start_date))
        if filters.end_date:
            stmt = stmt.where(Fee.created_at < _day_start(filters.end_date + dt.timedelta(days=1)))
        if filters.class_name:
            stmt = stmt.join(Student, Student.id == Fee.student_id).where(Student.class_name == filters.class_name)

        result = {s.value: {"amount": 0.0, "count": 0} for s in FeeStatus}
        for status, total, count in self.read(db, lambda: db.execute(stmt).all()):
            result[status] = {"amount": float(total or 0), "count": count}
        return result


fee_crud = CRUDFee(Fee)
