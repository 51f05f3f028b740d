# modules/leave/routes.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from core.errors import ok
from database.connection import get_db
from modules.employees.models import Employee
from modules.security.deps import require_admin, require_employee
from modules.security.model import Admin

from . import services
from .schemas import LeaveBalanceAdjust, LeaveBalanceReset, LeaveRequestCreate
from .statistics import statistics as leave_statistics

router = APIRouter(prefix="/api/auth/leave", tags=["Leave"])


# ---------- Employee ----------
@router.get("/balance")
def get_balance(emp: Employee = Depends(require_employee), db: Session = Depends(get_db)):
    return ok(services.get_balance(db, emp.id))


@router.post("/request")
def request_leave(
    payload: LeaveRequestCreate,
    emp: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
):
    entry = services.request_leave(
        db,
        emp.id,
        payload.leave_type,
        payload.days,
        payload.start_date,
        payload.end_date,
        payload.reason,
    )
    return ok(
        {
            "leaveRequest": services.history_entry(entry, emp),
            "updatedBalance": services.get_balance(db, emp.id),
        },
        message="Leave request submitted and approved",
    )


@router.get("/history")
def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    emp: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
):
    return ok(services.get_history(db, emp.id, page=page, limit=limit))


@router.post("/cancel/{request_id}")
def cancel_request(
    request_id: int,
    emp: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
):
    entry = services.cancel_request(db, emp.id, request_id)
    return ok(
        {
            "leaveRequest": services.history_entry(entry, emp),
            "updatedBalance": services.get_balance(db, emp.id),
        },
        message="Leave request cancelled",
    )


# ---------- Admin ----------
@router.get("/admin/all")
def list_balances(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    supervisor: Optional[str] = Query(None),
    _admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ok(services.list_balances(db, supervisor=supervisor, page=page, limit=limit))


@router.put("/admin/{user_id}/reset")
def reset_balance(
    user_id: int,
    payload: Optional[LeaveBalanceReset] = Body(None),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payload = payload or LeaveBalanceReset()
    ledger = services.reset_balance(db, user_id, payload.annual, payload.sick, payload.casual)
    return ok(
        {
            "userId": user_id,
            "leaveBalance": services.balance_view(ledger),
            "currentLeave": ledger.current_leave,
            "resetBy": admin.email,
        },
        message="Leave balance reset successfully",
    )


@router.patch("/admin/{user_id}/adjust")
def adjust_balance(
    user_id: int,
    payload: LeaveBalanceAdjust,
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = services.adjust_balance(db, user_id, payload.leave_type, payload.adjustment, payload.reason)
    result["adjustedBy"] = admin.email
    return ok(result, message="Leave balance adjusted successfully")


@router.get("/statistics")
def get_statistics(_admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(leave_statistics(db))
