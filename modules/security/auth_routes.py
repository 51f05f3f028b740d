# modules/security/auth_routes.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.errors import AuthenticationError, ok
from core.logging import get_logger
from database.connection import get_db
from modules.security.deps import clear_refresh_cookie, refresh_token_from, require_admin, set_refresh_cookie
from modules.security.model import Admin, Role
from modules.security.passwords import hash_password, needs_rehash, verify_password
from modules.security.schemas import AdminOut, LoginIn, RefreshIn
from modules.security.tokens import token_manager

logger = get_logger("AdminAuth")

router = APIRouter(prefix="/api/auth/admin", tags=["Admin"])


def _admin_dict(admin: Admin) -> dict:
    return AdminOut.model_validate(admin).model_dump(by_alias=True)


@router.post("/login")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(func.lower(Admin.email) == payload.email).first()
    if admin is None or not verify_password(payload.password, admin.password_hash):
        client = request.client.host if request.client else "-"
        logger.warning("Admin login failed for %s from %s", payload.email, client)
        raise AuthenticationError("Invalid email or password")

    # migrate hash (bcrypt from an import) -> current scheme
    if needs_rehash(admin.password_hash):
        admin.password_hash = hash_password(payload.password)
    admin.last_login = datetime.utcnow()
    db.commit()

    pair = token_manager.login(db, admin, Role.ADMIN)
    set_refresh_cookie(response, pair.refresh_token)
    logger.info("Admin login successful: %s", admin.id)
    return ok({"admin": _admin_dict(admin), **pair.as_dict()}, message="Admin login successful")


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshIn] = Body(None),
    db: Session = Depends(get_db),
):
    token = refresh_token_from(request, payload.refresh_token if payload else None)
    pair, claims = token_manager.rotate(db, token, role=Role.ADMIN)
    set_refresh_cookie(response, pair.refresh_token)
    logger.info("Admin token refreshed: %s", claims["id"])
    return ok(pair.as_dict(), message="Token refreshed successfully")


@router.post("/logout")
def logout(
    response: Response,
    payload: Optional[RefreshIn] = Body(None),
    admin: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    token = payload.refresh_token if payload else None
    removed = token_manager.revoke(db, Role.ADMIN, admin.id, token)
    logger.info("Admin %s logged out (%d sessions)", admin.id, removed)
    clear_refresh_cookie(response)
    return ok(message="Logout successful")


@router.get("/profile")
def profile(admin: Admin = Depends(require_admin)):
    return ok({"admin": _admin_dict(admin)})
