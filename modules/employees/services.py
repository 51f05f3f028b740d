# modules/employees/services.py
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import AuthenticationError, Conflict, NotFound
from core.logging import get_logger
from modules.leave.services import balance_view, ensure_ledger, get_ledger, pagination
from modules.security.model import Role
from modules.security.passwords import hash_password, needs_rehash, verify_password
from modules.security.tokens import TokenPair, token_manager

from .models import Employee, EmployeePhone, Supervisor
from .schemas import EmployeeAdminUpdate, EmployeeOut, EmployeeRegister, ProfileUpdate

logger = get_logger("UserManagement")
auth_logger = get_logger("UserAuth")


def employee_dict(emp: Employee) -> dict:
    return EmployeeOut.model_validate(emp).model_dump(by_alias=True)


# =====================================================================
# Uniqueness checks
# =====================================================================

def _assert_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    q = db.query(Employee.id).filter(func.lower(Employee.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    if q.first():
        raise Conflict("User already exists with this email" if exclude_id is None else "Email already exists")


def _assert_phones_free(db: Session, numbers: Iterable[str], exclude_id: Optional[int] = None) -> None:
    numbers = list(numbers)
    if not numbers:
        return
    q = db.query(EmployeePhone.number).filter(EmployeePhone.number.in_(numbers))
    if exclude_id is not None:
        q = q.filter(EmployeePhone.employee_id != exclude_id)
    taken = [n for (n,) in q.all()]
    if taken:
        if exclude_id is None:
            raise Conflict("User already exists with this phone number", errors=taken)
        raise Conflict("Phone number already exists", errors=taken)


def _set_phones(emp: Employee, numbers: list[str]) -> None:
    # keep rows whose number survives so the unique index never sees a delete+insert of the same value
    existing = {p.number: p for p in emp.phones}
    emp.phones = [existing.get(n) or EmployeePhone(number=n) for n in numbers]


# =====================================================================
# Registration / login
# =====================================================================

def register_employee(db: Session, data: EmployeeRegister) -> tuple[Employee, TokenPair]:
    """
    Two steps: the employee row is committed first, then the ledger.
    A failed ledger insert leaves the employee in place; the ledger is created on first access.
    """
    _assert_email_free(db, data.email)
    _assert_phones_free(db, data.phone_numbers)

    emp = Employee(
        name=data.name,
        email=data.email,
        password_hash=hash_password(data.password),
        education=data.education,
        address=data.address,
        supervisor=data.supervisor.value,
        phones=[EmployeePhone(number=n) for n in data.phone_numbers],
    )
    db.add(emp)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        auth_logger.warning("User registration failed - duplicate email or phone: %s", data.email)
        raise Conflict("User already exists with this email or phone number")
    db.refresh(emp)

    try:
        ensure_ledger(db, emp.id)
    except SQLAlchemyError:
        db.rollback()
        auth_logger.exception("Leave record creation failed for new user %s; will retry on first access", emp.id)

    pair = token_manager.login(db, emp, Role.USER)
    auth_logger.info("New user registered successfully: %s (%s)", emp.id, emp.supervisor)
    return emp, pair


def authenticate_employee(db: Session, email: str, password: str) -> Employee:
    email = (email or "").strip().lower()
    emp = db.query(Employee).filter(func.lower(Employee.email) == email).first()
    if emp is None or not verify_password(password, emp.password_hash):
        auth_logger.warning("User login failed for %s", email)
        raise AuthenticationError("Invalid email or password")

    # bcrypt hash from an import -> current scheme
    if needs_rehash(emp.password_hash):
        emp.password_hash = hash_password(password)
        db.commit()
    return emp


def login_employee(db: Session, email: str, password: str) -> tuple[Employee, TokenPair]:
    emp = authenticate_employee(db, email, password)
    pair = token_manager.login(db, emp, Role.USER)
    auth_logger.info("User login successful: %s", emp.id)
    return emp, pair


# =====================================================================
# Profile
# =====================================================================

def get_profile(db: Session, emp: Employee) -> dict:
    out = employee_dict(emp)
    ledger = ensure_ledger(db, emp.id)
    out["leave"] = {
        **balance_view(ledger),
        "currentLeave": ledger.current_leave,
        "lastUpdated": ledger.updated_at,
    }
    return out


def _apply_update(db: Session, emp: Employee, data: ProfileUpdate) -> list[str]:
    fields = data.model_fields_set
    if "name" in fields and data.name:
        emp.name = data.name
    if "phone_numbers" in fields and data.phone_numbers:
        _assert_phones_free(db, data.phone_numbers, exclude_id=emp.id)
        _set_phones(emp, data.phone_numbers)
    if "education" in fields and data.education:
        emp.education = data.education
    if "address" in fields and data.address:
        emp.address = data.address
    return sorted(fields)


def _commit_update(db: Session, emp: Employee) -> Employee:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email or phone number already exists")
    db.refresh(emp)
    return emp


def update_profile(db: Session, emp: Employee, data: ProfileUpdate) -> Employee:
    changed = _apply_update(db, emp, data)
    emp = _commit_update(db, emp)
    logger.info("User profile updated: %s fields=%s", emp.id, changed)
    return emp


# =====================================================================
# Admin
# =====================================================================

def list_employees(
    db: Session,
    page: int = 1,
    limit: int = 10,
    supervisor: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    page = max(1, int(page))
    limit = max(1, int(limit))

    q = db.query(Employee)
    if supervisor:
        q = q.filter(Employee.supervisor == supervisor)
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(or_(func.lower(Employee.name).like(like), func.lower(Employee.email).like(like)))

    total = q.count()
    rows = (
        q.order_by(Employee.created_at.desc(), Employee.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    users = []
    for emp in rows:
        item = employee_dict(emp)
        ledger = get_ledger(db, emp.id)
        item["leave"] = None if ledger is None else balance_view(ledger)
        users.append(item)
    return {"users": users, "pagination": pagination(page, limit, total)}


def get_employee(db: Session, employee_id: int) -> Employee:
    emp = db.get(Employee, employee_id)
    if emp is None:
        raise NotFound("User not found")
    return emp


def update_employee(db: Session, employee_id: int, data: EmployeeAdminUpdate) -> Employee:
    emp = get_employee(db, employee_id)
    fields = data.model_fields_set
    if "email" in fields and data.email and data.email != emp.email:
        _assert_email_free(db, data.email, exclude_id=emp.id)
        emp.email = data.email
    if "supervisor" in fields and data.supervisor:
        emp.supervisor = data.supervisor.value
    changed = _apply_update(db, emp, data)
    emp = _commit_update(db, emp)
    logger.info("User %s updated by admin fields=%s", emp.id, changed)
    return emp


def delete_employee(db: Session, employee_id: int) -> None:
    """Removes the employee with their ledger, history and refresh tokens."""
    emp = get_employee(db, employee_id)
    revoked = token_manager.revoke(db, Role.USER, emp.id)
    db.delete(emp)
    db.commit()
    logger.info("User %s deleted (revoked %d refresh tokens)", employee_id, revoked)


def supervisor_counts(db: Session) -> list[dict]:
    counts = dict(
        db.query(Employee.supervisor, func.count(Employee.id))
        .group_by(Employee.supervisor)
        .all()
    )
    return [{"name": name, "userCount": counts.get(name, 0)} for name in Supervisor.names()]
