# modules/leave/schemas.py
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import LeaveType

# --------- helpers: normalize leave type ----------
_TYPE_MAP = {
    "annual": LeaveType.ANNUAL,
    "annualleave": LeaveType.ANNUAL,
    "sick": LeaveType.SICK,
    "sickleave": LeaveType.SICK,
    "casual": LeaveType.CASUAL,
    "casualleave": LeaveType.CASUAL,
}


def coerce_leave_type(value) -> LeaveType:
    """annual / annualLeave / "Annual Leave" -> LeaveType.ANNUAL; raise ValueError otherwise"""
    if isinstance(value, LeaveType):
        return value
    if isinstance(value, str):
        key = value.strip().lower().replace(" ", "").replace("_", "")
        if key in _TYPE_MAP:
            return _TYPE_MAP[key]
    raise ValueError("Leave type must be one of: annualLeave, sickLeave, casualLeave")


class _CamelIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# --- Employee side ---
class LeaveRequestCreate(_CamelIn):
    leave_type: LeaveType = Field(..., alias="leaveType")
    days: float = Field(..., gt=0, description="Number of leave days")
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        return coerce_leave_type(v)

    @field_validator("start_date")
    @classmethod
    def _not_in_past(cls, v: date):
        if v < date.today():
            raise ValueError("Start date cannot be in the past")
        return v

    @model_validator(mode="after")
    def _range(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


# --- Admin side ---
class LeaveBalanceReset(_CamelIn):
    annual: Optional[float] = Field(None, ge=0, alias="annualLeave")
    sick: Optional[float] = Field(None, ge=0, alias="sickLeave")
    casual: Optional[float] = Field(None, ge=0, alias="casualLeave")


class LeaveBalanceAdjust(_CamelIn):
    leave_type: LeaveType = Field(..., alias="leaveType")
    adjustment: float
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        return coerce_leave_type(v)
