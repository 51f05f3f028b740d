from __future__ import annotations
from enum import Enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Index

from database.base import Base


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Admin(Base):
    __tablename__ = "admins"
    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, default="Administrator")
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RefreshToken(Base):
    """One live refresh token of an employee or admin (their device sessions)."""
    __tablename__ = "refresh_tokens"
    id = Column(Integer, primary_key=True)
    role = Column(SQLEnum(Role, values_callable=lambda e: [m.value for m in e]), nullable=False)
    principal_id = Column(Integer, nullable=False)
    token = Column(String(1024), unique=True, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    __table_args__ = (Index("ix_refresh_tokens_principal", "role", "principal_id"),)
