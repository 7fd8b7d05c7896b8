# school_roster/api/v1/fees.py
from __future__ import annotations

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from school_roster.api.deps import get_current_user, get_db
from school_roster.core.logging import get_logger, log_with_context
from school_roster.core.rbac import ROLE_ADMIN, own_student_scope, require_roles
from school_roster.crud.fee import fee_crud
from school_roster.models.fee import FeeStatus
from school_roster.models.student import INT32_MAX
from school_roster.models.user import User
from school_roster.schemas.fee import Fee, FeeCreate, FeeFilters, FeeSaved, FeeStatistics, FeeStatusUpdate
from school_roster.schemas.student import ClassName

router = APIRouter()
logger = get_logger("fees")

admin_only = Depends(require_roles(ROLE_ADMIN))


@router.post("/", response_model=FeeSaved, status_code=status.HTTP_201_CREATED)
def create_fee(
    body: FeeCreate,
    db: Session = Depends(get_db),
    user: User = admin_only,
):
    fee = fee_crud.create(db, body)
    log_with_context(logger, "INFO", "Fee record created",
                     context={"fee_id": fee.id, "student_id": fee.student_id, "user": user.username},
                     extra_data={"amount": str(fee.amount), "status": fee.status})
    return FeeSaved(message="Fee record created successfully", fee=Fee.model_validate(fee))


@router.get("/", response_model=List[Fee])
def list_fees(
    student_id: Optional[int] = Query(None, ge=1, le=INT32_MAX),
    semester: Optional[int] = Query(None, ge=1, le=12),
    status_: Optional[FeeStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters = FeeFilters(student_id=own_student_scope(user, student_id), semester=semester, status=status_)
    return [Fee.model_validate(f) for f in fee_crud.list_fees(db, filters)]


@router.get("/stats", response_model=FeeStatistics, dependencies=[admin_only])
def fee_statistics(
    start_date: Optional[dt.date] = Query(None),
    end_date: Optional[dt.date] = Query(None),
    class_name: Optional[ClassName] = Query(None),
    db: Session = Depends(get_db),
):
    return FeeStatistics(**fee_crud.statistics(
        db, {"start_date": start_date, "end_date": end_date, "class_name": class_name}
    ))


@router.put("/{fee_id}", response_model=FeeSaved)
def update_fee_status(
    body: FeeStatusUpdate,
    fee_id: int = Path(..., ge=1, le=INT32_MAX),
    db: Session = Depends(get_db),
    user: User = admin_only,
):
    fee = fee_crud.update_status(db, fee_id, body)
    log_with_context(logger, "INFO", "Fee status updated",
                     context={"fee_id": fee.id, "user": user.username},
                     extra_data={"status": fee.status, "receipt_number": fee.receipt_number})
    return FeeSaved(message="Fee status updated successfully", fee=Fee.model_validate(fee))
