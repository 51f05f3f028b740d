# modules/leave/models.py
import datetime
import enum

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, Enum
from sqlalchemy.orm import relationship

from database.base import Base


class LeaveType(str, enum.Enum):
    ANNUAL = "annual"
    SICK = "sick"
    CASUAL = "casual"

    @property
    def label(self) -> str:
        """Name used by the HTTP API, e.g. annualLeave"""
        return f"{self.value}Leave"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


AUTO_APPROVER = "Auto-approved"


def _enum_values(e):
    return [m.value for m in e]


# ---------------- Leave Ledger ----------------
class LeaveLedger(Base):
    __tablename__ = "leave_ledgers"
    id = Column(Integer, primary_key=True, index=True)

    # one ledger per employee
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), unique=True, nullable=False)

    annual_total = Column(Float, nullable=False, default=10.0)
    annual_used = Column(Float, nullable=False, default=0.0)
    annual_remaining = Column(Float, nullable=False, default=10.0)

    sick_total = Column(Float, nullable=False, default=14.0)
    sick_used = Column(Float, nullable=False, default=0.0)
    sick_remaining = Column(Float, nullable=False, default=14.0)

    casual_total = Column(Float, nullable=False, default=5.0)
    casual_used = Column(Float, nullable=False, default=0.0)
    casual_remaining = Column(Float, nullable=False, default=5.0)

    current_leave_start = Column(Date, nullable=True)
    current_leave_end = Column(Date, nullable=True)
    current_leave_type = Column(Enum(LeaveType, values_callable=_enum_values), nullable=True)
    current_leave_days = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    employee = relationship("Employee", back_populates="leave")
    history = relationship(
        "LeaveHistory",
        back_populates="ledger",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LeaveHistory.applied_date.desc()",
    )

    @classmethod
    def with_defaults(cls, employee_id: int, defaults: dict) -> "LeaveLedger":
        values = {"employee_id": employee_id}
        for lt in LeaveType:
            total = float(defaults[lt.value])
            values[f"{lt.value}_total"] = total
            values[f"{lt.value}_used"] = 0.0
            values[f"{lt.value}_remaining"] = total
        return cls(**values)

    def bucket(self, leave_type: LeaveType) -> dict:
        lt = LeaveType(leave_type).value
        return {
            "total": getattr(self, f"{lt}_total"),
            "used": getattr(self, f"{lt}_used"),
            "remaining": getattr(self, f"{lt}_remaining"),
        }

    @property
    def current_leave(self) -> dict:
        return {
            "startDate": self.current_leave_start,
            "endDate": self.current_leave_end,
            "type": self.current_leave_type.value if self.current_leave_type else None,
            "days": self.current_leave_days or 0,
        }


# ---------------- Leave Request (history entry) ----------------
class LeaveHistory(Base):
    __tablename__ = "leave_history"
    id = Column(Integer, primary_key=True, index=True)
    ledger_id = Column(Integer, ForeignKey("leave_ledgers.id", ondelete="CASCADE"), nullable=False, index=True)

    leave_type = Column(Enum(LeaveType, values_callable=_enum_values), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    days = Column(Float, nullable=False)
    reason = Column(Text, nullable=True)

    status = Column(Enum(LeaveStatus, values_callable=_enum_values), nullable=False, default=LeaveStatus.APPROVED)
    applied_date = Column(DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)
    approved_date = Column(DateTime, nullable=True)
    approved_by = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    ledger = relationship("LeaveLedger", back_populates="history")
