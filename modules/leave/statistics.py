# modules/leave/statistics.py
from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from core.logging import get_logger
from modules.employees.models import Employee

from .models import LeaveHistory, LeaveLedger, LeaveStatus, LeaveType

logger = get_logger("LeaveManagement")

MONTHLY_WINDOW_MONTHS = 6


def _r1(x) -> float:
    return round(float(x or 0), 1)


def _total_used():
    return (
        func.coalesce(LeaveLedger.annual_used, 0)
        + func.coalesce(LeaveLedger.sick_used, 0)
        + func.coalesce(LeaveLedger.casual_used, 0)
    )


def users_on_leave(db: Session, today: date) -> int:
    """
    Employees with an approved entry whose date range contains today, or whose
    ledger's current leave (a migrated flat-form period has nothing else) does.
    """
    from_history = (
        db.query(LeaveLedger.employee_id)
        .join(LeaveHistory, LeaveHistory.ledger_id == LeaveLedger.id)
        .filter(
            LeaveHistory.status == LeaveStatus.APPROVED,
            LeaveHistory.start_date <= today,
            LeaveHistory.end_date >= today,
        )
    )
    from_current = db.query(LeaveLedger.employee_id).filter(
        LeaveLedger.current_leave_start <= today,
        LeaveLedger.current_leave_end >= today,
    )
    return from_history.union(from_current).count()


def monthly_distribution(db: Session, today: date) -> list[dict]:
    """Approved entries per (year, month) of applied date, last six months up to today."""
    since = datetime.combine(today, time.min) - relativedelta(months=MONTHLY_WINDOW_MONTHS)
    until = datetime.combine(today + timedelta(days=1), time.min)

    y = extract("year", LeaveHistory.applied_date)
    m = extract("month", LeaveHistory.applied_date)
    rows = (
        db.query(y.label("year"), m.label("month"), func.count(LeaveHistory.id))
        .filter(
            LeaveHistory.status == LeaveStatus.APPROVED,
            LeaveHistory.applied_date >= since,
            LeaveHistory.applied_date < until,
        )
        .group_by(y, m)
        .order_by(y, m)
        .all()
    )
    return [
        {"month": calendar.month_abbr[int(month)], "year": int(year), "count": int(count)}
        for year, month, count in rows
    ]


def statistics(db: Session, today: Optional[date] = None) -> dict:
    # applied dates are stored in UTC
    today = today or datetime.utcnow().date()

    total_users = db.query(func.count(Employee.id)).scalar() or 0

    avg_row = db.query(
        func.avg(LeaveLedger.annual_used),
        func.avg(LeaveLedger.sick_used),
        func.avg(LeaveLedger.casual_used),
    ).one()
    sum_row = db.query(
        func.sum(LeaveLedger.annual_used),
        func.sum(LeaveLedger.sick_used),
        func.sum(LeaveLedger.casual_used),
    ).one()

    by_supervisor = (
        db.query(Employee.supervisor, func.sum(_total_used()))
        .outerjoin(LeaveLedger, LeaveLedger.employee_id == Employee.id)
        .group_by(Employee.supervisor)
        .order_by(Employee.supervisor)
        .all()
    )

    logger.info("Leave statistics computed for %s: %d users", today.isoformat(), total_users)
    return {
        "totalUsers": total_users,
        "usersOnLeave": users_on_leave(db, today),
        "averageLeaveUsage": {
            lt.label: _r1(v) for lt, v in zip(LeaveType, avg_row)
        },
        "leaveDistributionByType": {
            lt.label: float(v or 0) for lt, v in zip(LeaveType, sum_row)
        },
        "leaveDistributionBySupervisor": {
            sup: float(used or 0) for sup, used in by_supervisor if sup
        },
        "monthlyLeaveDistribution": monthly_distribution(db, today),
    }
