# modules/employees/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import (
    AliasChoices,
    AliasGenerator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from modules.security.passwords import MIN_PASSWORD_LENGTH

from .models import Supervisor


# --------- helpers ----------
def _coerce_phone_numbers(v):
    """accept a single string (older clients send phoneNumber) or a list"""
    if v is None:
        return v
    if isinstance(v, str):
        v = [v]
    out: List[str] = []
    for raw in v:
        s = str(raw).strip()
        if s and s not in out:
            out.append(s)
    return out


def _strip_required(v: str) -> str:
    s = (v or "").strip()
    if not s:
        raise ValueError("Field is required")
    return s


# ---------- Input ----------
class EmployeeRegister(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    phone_numbers: List[str] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("phoneNumbers", "phoneNumber", "phone_numbers"),
    )
    education: str
    address: str
    supervisor: Supervisor

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("phone_numbers", mode="before")
    @classmethod
    def _phones(cls, v):
        return _coerce_phone_numbers(v)

    @field_validator("education", "address")
    @classmethod
    def _required_text(cls, v: str):
        return _strip_required(v)


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=3, max_length=50)
    phone_numbers: Optional[List[str]] = Field(
        None,
        min_length=1,
        validation_alias=AliasChoices("phoneNumbers", "phoneNumber", "phone_numbers"),
    )
    education: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone_numbers", mode="before")
    @classmethod
    def _phones(cls, v):
        return _coerce_phone_numbers(v)

    @field_validator("education", "address")
    @classmethod
    def _required_text(cls, v: Optional[str]):
        return None if v is None else _strip_required(v)


class EmployeeAdminUpdate(ProfileUpdate):
    email: Optional[EmailStr] = None
    supervisor: Optional[Supervisor] = None

    @field_validator("email", mode="before")
    @classmethod
    def _lower_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


# ---------- Output ----------
class EmployeeOut(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    id: int
    name: str
    email: str
    phone_numbers: List[str] = []
    education: str
    address: str
    supervisor: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
