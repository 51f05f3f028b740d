# modules/employees/routes.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from core.errors import ok
from core.logging import get_logger
from database.connection import get_db
from modules.security.deps import (
    clear_refresh_cookie,
    refresh_token_from,
    require_admin,
    require_employee,
    set_refresh_cookie,
)
from modules.security.model import Admin, Role
from modules.security.schemas import LoginIn, RefreshIn
from modules.security.tokens import token_manager

from . import services
from .models import Employee
from .schemas import EmployeeAdminUpdate, EmployeeRegister, ProfileUpdate

logger = get_logger("UserAuth")

router = APIRouter(prefix="/api/auth/user", tags=["Users"])


# ---------- Auth ----------
@router.post("/register", status_code=201)
def register(payload: EmployeeRegister, response: Response, db: Session = Depends(get_db)):
    emp, pair = services.register_employee(db, payload)
    set_refresh_cookie(response, pair.refresh_token)
    return ok(
        {"user": services.employee_dict(emp), **pair.as_dict()},
        message="User registered successfully",
    )


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    emp, pair = services.login_employee(db, payload.email, payload.password)
    set_refresh_cookie(response, pair.refresh_token)
    return ok({"user": services.employee_dict(emp), **pair.as_dict()}, message="Login successful")


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = Body(None),
    db: Session = Depends(get_db),
):
    token = refresh_token_from(request, payload.refresh_token if payload else None)
    pair, _claims = token_manager.rotate(db, token, role=Role.USER)
    set_refresh_cookie(response, pair.refresh_token)
    return ok(pair.as_dict(), message="Token refreshed successfully")


@router.post("/logout")
def logout(
    response: Response,
    payload: Optional[RefreshIn] = Body(None),
    emp: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
):
    token = payload.refresh_token if payload else None
    removed = token_manager.revoke(db, Role.USER, emp.id, token)
    if token:
        logger.info("User %s logged out from single device", emp.id)
    else:
        logger.info("User %s logged out from all devices (%d sessions)", emp.id, removed)
    clear_refresh_cookie(response)
    return ok(message="Logout successful")


# ---------- Profile ----------
@router.get("/profile")
def get_profile(emp: Employee = Depends(require_employee), db: Session = Depends(get_db)):
    return ok({"user": services.get_profile(db, emp)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    emp: Employee = Depends(require_employee),
    db: Session = Depends(get_db),
):
    emp = services.update_profile(db, emp, payload)
    return ok({"user": services.employee_dict(emp)}, message="Profile updated successfully")


# ---------- Public ----------
@router.get("/supervisors")
def supervisors(db: Session = Depends(get_db)):
    return ok({"supervisors": services.supervisor_counts(db)})


# ---------- Admin ----------
@router.get("/admin/all")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    supervisor: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    _admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ok(services.list_employees(db, page=page, limit=limit, supervisor=supervisor, search=search))


@router.get("/admin/{user_id}")
def get_user(user_id: int, _admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    emp = services.get_employee(db, user_id)
    return ok({"user": services.get_profile(db, emp)})


@router.put("/admin/{user_id}")
def update_user(
    user_id: int,
    payload: EmployeeAdminUpdate,
    _admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    emp = services.update_employee(db, user_id, payload)
    return ok({"user": services.employee_dict(emp)}, message="User updated successfully")


@router.delete("/admin/{user_id}")
def delete_user(user_id: int, _admin: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    services.delete_employee(db, user_id)
    return ok(message="User deleted successfully")
