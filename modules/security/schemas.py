# modules/security/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class LoginIn(BaseModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def _not_empty(cls, v: str):
        if not (v or "").strip():
            raise ValueError("Field is required")
        return v

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str):
        return v.strip().lower()


class RefreshIn(BaseModel):
    """Body of /refresh and /logout; the token may also come from the cookie on /refresh."""
    model_config = ConfigDict(populate_by_name=True)
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class AdminOut(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    id: int
    name: str
    email: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
