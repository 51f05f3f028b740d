# modules/leave/services.py
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.settings import settings
from core.errors import InsufficientBalance, InvalidState, NotFound, OverlappingPeriod, ValidationError
from core.logging import get_logger
from modules.employees.models import Employee

from .models import AUTO_APPROVER, LeaveHistory, LeaveLedger, LeaveStatus, LeaveType
from .schemas import coerce_leave_type

logger = get_logger("LeaveManagement")

# statuses an employee may cancel from; cancelling an approved entry refunds its days
CANCELLABLE = frozenset({LeaveStatus.PENDING})

_NO_CURRENT_LEAVE = {
    LeaveLedger.current_leave_start: None,
    LeaveLedger.current_leave_end: None,
    LeaveLedger.current_leave_type: None,
    LeaveLedger.current_leave_days: 0.0,
}


def _num(x: float):
    """10.0 -> 10, 2.5 -> 2.5 (for messages)"""
    x = float(x)
    return int(x) if x.is_integer() else x


def _leave_type(value) -> LeaveType:
    try:
        return coerce_leave_type(value)
    except ValueError as e:
        raise ValidationError(str(e), errors=[f"leaveType: {e}"])


def _cols(leave_type: LeaveType):
    lt = LeaveType(leave_type).value
    return (
        getattr(LeaveLedger, f"{lt}_total"),
        getattr(LeaveLedger, f"{lt}_used"),
        getattr(LeaveLedger, f"{lt}_remaining"),
    )


# =====================================================================
# Ledger lookup / creation
# =====================================================================

def get_ledger(db: Session, employee_id: int) -> Optional[LeaveLedger]:
    return db.query(LeaveLedger).filter(LeaveLedger.employee_id == employee_id).first()


def ensure_ledger(db: Session, employee_id: int) -> LeaveLedger:
    """
    Return the employee's ledger, creating it with the configured defaults when missing.
    Concurrent callers race on the unique employee_id; the loser re-reads the winner's row.
    """
    ledger = get_ledger(db, employee_id)
    if ledger is not None:
        return ledger

    if db.get(Employee, employee_id) is None:
        raise NotFound("User not found")

    db.add(LeaveLedger.with_defaults(employee_id, settings.leave_defaults))
    try:
        db.commit()
        logger.info("Created leave record for user %s", employee_id)
    except IntegrityError:
        db.rollback()

    ledger = get_ledger(db, employee_id)
    if ledger is None:
        # employee removed between the check and the insert
        raise NotFound("User not found")
    return ledger


# =====================================================================
# Projections
# =====================================================================

def balance_view(ledger: LeaveLedger) -> dict:
    return {lt.label: ledger.bucket(lt) for lt in LeaveType}


def history_entry(entry: LeaveHistory, employee: Optional[Employee] = None) -> dict:
    out = {
        "id": entry.id,
        "leaveType": entry.leave_type.label,
        "startDate": entry.start_date,
        "endDate": entry.end_date,
        "days": entry.days,
        "reason": entry.reason,
        "status": entry.status.value,
        "appliedDate": entry.applied_date,
        "approvedDate": entry.approved_date,
        "approvedBy": entry.approved_by,
        "rejectionReason": entry.rejection_reason,
    }
    if employee is not None:
        out.update({
            "userId": employee.id,
            "userName": employee.name,
            "userEmail": employee.email,
            "supervisor": employee.supervisor,
        })
    return out


def get_balance(db: Session, employee_id: int) -> dict:
    ledger = ensure_ledger(db, employee_id)
    return {**balance_view(ledger), "lastUpdated": ledger.updated_at}


# =====================================================================
# Requests
# =====================================================================

def _check_overlap(db: Session, ledger_id: int, start: date, end: date) -> None:
    """
    An employee's booked time is every approved history entry plus the ledger's
    current leave (the only record of a period migrated from the flat form).
    """
    clash = (
        db.query(LeaveHistory.start_date, LeaveHistory.end_date)
        .filter(
            LeaveHistory.ledger_id == ledger_id,
            LeaveHistory.status == LeaveStatus.APPROVED,
            LeaveHistory.start_date <= end,
            LeaveHistory.end_date >= start,
        )
        .order_by(LeaveHistory.start_date)
        .first()
    )
    if clash is None:
        clash = (
            db.query(LeaveLedger.current_leave_start, LeaveLedger.current_leave_end)
            .filter(
                LeaveLedger.id == ledger_id,
                LeaveLedger.current_leave_start <= end,
                LeaveLedger.current_leave_end >= start,
            )
            .first()
        )
    if clash is not None:
        clash_start, clash_end = clash
        raise OverlappingPeriod(
            f"Requested period overlaps an existing leave "
            f"({clash_start.isoformat()} to {clash_end.isoformat()})"
        )


def request_leave(
    db: Session,
    employee_id: int,
    leave_type,
    days: float,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LeaveHistory:
    """Debit the balance and record an auto-approved history entry."""
    lt = _leave_type(leave_type)
    days = float(days)
    if not days > 0:
        raise ValidationError("Days must be a positive number")
    if end_date < start_date:
        raise ValidationError("End date must not be before start date")

    ledger = ensure_ledger(db, employee_id)
    _check_overlap(db, ledger.id, start_date, end_date)

    total, used, remaining = _cols(lt)
    n = (
        db.query(LeaveLedger)
        .filter(LeaveLedger.id == ledger.id, used + days <= total)
        .update(
            {
                used: used + days,
                remaining: total - (used + days),
                LeaveLedger.current_leave_start: start_date,
                LeaveLedger.current_leave_end: end_date,
                LeaveLedger.current_leave_type: lt,
                LeaveLedger.current_leave_days: days,
            },
            synchronize_session=False,
        )
    )
    if n != 1:
        db.rollback()
        db.refresh(ledger)
        available = ledger.bucket(lt)["remaining"]
        logger.warning(
            "Insufficient %s balance for user %s: available %s, requested %s",
            lt.label, employee_id, available, days,
        )
        raise InsufficientBalance(
            f"Insufficient {lt.label} balance. Available: {_num(available)} days, Requested: {_num(days)} days"
        )

    now = now or datetime.utcnow()
    entry = LeaveHistory(
        ledger_id=ledger.id,
        leave_type=lt,
        start_date=start_date,
        end_date=end_date,
        days=days,
        reason=reason,
        status=LeaveStatus.APPROVED,
        applied_date=now,
        approved_date=now,
        approved_by=AUTO_APPROVER,
    )
    db.add(entry)
    db.commit()
    db.refresh(ledger)
    db.refresh(entry)
    logger.info("Leave request approved for user %s: %s %s days", employee_id, lt.label, _num(days))
    return entry


def _credit(db: Session, ledger_id: int, leave_type: LeaveType, days: float) -> None:
    total, used, remaining = _cols(leave_type)
    new_used = case((used >= days, used - days), else_=0.0)
    db.query(LeaveLedger).filter(LeaveLedger.id == ledger_id).update(
        {used: new_used, remaining: total - new_used},
        synchronize_session=False,
    )


def cancel_request(db: Session, employee_id: int, request_id: int) -> LeaveHistory:
    ledger = ensure_ledger(db, employee_id)
    entry = (
        db.query(LeaveHistory)
        .filter(LeaveHistory.id == request_id, LeaveHistory.ledger_id == ledger.id)
        .first()
    )
    if entry is None:
        raise NotFound("Leave request not found")

    previous = entry.status
    if previous not in CANCELLABLE:
        raise InvalidState("Only pending requests can be cancelled")

    n = (
        db.query(LeaveHistory)
        .filter(LeaveHistory.id == entry.id, LeaveHistory.status == previous)
        .update({LeaveHistory.status: LeaveStatus.CANCELLED}, synchronize_session=False)
    )
    if n != 1:
        db.rollback()
        raise InvalidState("Only pending requests can be cancelled")

    if previous == LeaveStatus.APPROVED:
        _credit(db, ledger.id, entry.leave_type, entry.days)
        db.query(LeaveLedger).filter(
            LeaveLedger.id == ledger.id,
            LeaveLedger.current_leave_start == entry.start_date,
            LeaveLedger.current_leave_end == entry.end_date,
        ).update(_NO_CURRENT_LEAVE, synchronize_session=False)

    db.commit()
    db.refresh(entry)
    db.refresh(ledger)
    logger.info("Leave request %s cancelled by user %s", request_id, employee_id)
    return entry


def get_history(db: Session, employee_id: int, page: int = 1, limit: int = 10) -> dict:
    ledger = ensure_ledger(db, employee_id)
    page = max(1, int(page))
    limit = max(1, int(limit))

    q = db.query(LeaveHistory).filter(LeaveHistory.ledger_id == ledger.id)
    total = q.count()
    rows = (
        q.order_by(LeaveHistory.applied_date.desc(), LeaveHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "history": [history_entry(r) for r in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }


# =====================================================================
# Admin operations
# =====================================================================

def reset_balance(
    db: Session,
    employee_id: int,
    annual: Optional[float] = None,
    sick: Optional[float] = None,
    casual: Optional[float] = None,
    today: Optional[date] = None,
) -> LeaveLedger:
    """
    Set new totals, zero used, clear the current leave.
    Approved entries that have not ended yet give their days back with the
    zeroed usage, so they are cancelled too.
    """
    today = today or datetime.utcnow().date()
    defaults = settings.leave_defaults
    totals = {
        LeaveType.ANNUAL: defaults["annual"] if annual is None else float(annual),
        LeaveType.SICK: defaults["sick"] if sick is None else float(sick),
        LeaveType.CASUAL: defaults["casual"] if casual is None else float(casual),
    }
    bad = [f"{lt.label}: must be zero or greater" for lt, v in totals.items() if v < 0]
    if bad:
        raise ValidationError("Validation failed", errors=bad)

    ledger = ensure_ledger(db, employee_id)
    values = dict(_NO_CURRENT_LEAVE)
    for lt, v in totals.items():
        total, used, remaining = _cols(lt)
        values.update({total: v, used: 0.0, remaining: v})

    db.query(LeaveLedger).filter(LeaveLedger.id == ledger.id).update(values, synchronize_session=False)
    ended = (
        db.query(LeaveHistory)
        .filter(
            LeaveHistory.ledger_id == ledger.id,
            LeaveHistory.status == LeaveStatus.APPROVED,
            LeaveHistory.end_date >= today,
        )
        .update({LeaveHistory.status: LeaveStatus.CANCELLED}, synchronize_session=False)
    )
    db.commit()
    db.refresh(ledger)
    logger.info("Leave balance reset for user %s (%d running entries cancelled)", employee_id, ended)
    return ledger


def adjust_balance(db: Session, employee_id: int, leave_type, adjustment: float,
                   reason: Optional[str] = None) -> dict:
    """
    Positive: grow total and remaining by the adjustment.
    Negative: shrink remaining (floored at 0); the consumed part moves to used,
    so total stays put and remaining == total - used still holds.
    """
    lt = _leave_type(leave_type)
    delta = float(adjustment)
    ledger = ensure_ledger(db, employee_id)
    db.refresh(ledger)
    old_remaining = ledger.bucket(lt)["remaining"]

    total, used, remaining = _cols(lt)
    new_remaining = case((remaining + delta > 0, remaining + delta), else_=0.0)
    if delta >= 0:
        values = {total: total + delta, remaining: remaining + delta}
    else:
        values = {remaining: new_remaining, used: total - new_remaining}

    db.query(LeaveLedger).filter(LeaveLedger.id == ledger.id).update(values, synchronize_session=False)
    db.commit()
    db.refresh(ledger)

    bucket = ledger.bucket(lt)
    logger.info(
        "Leave balance adjusted for user %s: %s %+g (%s)",
        employee_id, lt.label, delta, reason or "no reason given",
    )
    return {
        "userId": employee_id,
        "leaveType": lt.label,
        "oldBalance": old_remaining,
        "adjustment": delta,
        "newBalance": bucket["remaining"],
        "reason": reason,
        "balance": bucket,
    }


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalUsers": total,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


def list_balances(db: Session, supervisor: Optional[str] = None, page: int = 1, limit: int = 10) -> dict:
    page = max(1, int(page))
    limit = max(1, int(limit))

    q = db.query(Employee)
    if supervisor:
        q = q.filter(Employee.supervisor == supervisor)
    total = q.count()
    employees = (
        q.order_by(Employee.created_at.desc(), Employee.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = []
    for emp in employees:
        ledger = get_ledger(db, emp.id)
        if ledger is None:
            try:
                ledger = ensure_ledger(db, emp.id)
            except NotFound:
                logger.warning("Employee %s disappeared while listing balances", emp.id)
                continue
        items.append({
            "userId": emp.id,
            "name": emp.name,
            "email": emp.email,
            "supervisor": emp.supervisor,
            "leaveBalance": balance_view(ledger),
            "currentLeave": ledger.current_leave,
            "lastUpdated": ledger.updated_at,
        })

    return {"leaves": items, "pagination": pagination(page, limit, total)}
