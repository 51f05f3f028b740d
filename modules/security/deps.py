# modules/security/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from config.settings import settings
from core.errors import AuthenticationError, AuthorizationError, NotFound
from core.logging import get_logger
from database.connection import get_db
from modules.employees.models import Employee
from modules.security.model import Admin, Role
from modules.security.tokens import token_manager

logger = get_logger("AuthMiddleware")


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_token_claims(request: Request) -> dict:
    """
    Verify the bearer access token without touching storage.
    Missing -> 401, invalid/expired -> 403.
    """
    token = _bearer_token(request)
    if not token:
        logger.warning("Access token missing: %s %s", request.method, request.url.path)
        raise AuthenticationError("Access token required")
    return token_manager.verify_access(token)


def _require_role(claims: dict, role: Role, request: Request) -> None:
    try:
        token_manager.authorize(claims, role)
    except AuthorizationError:
        logger.warning("Role %s attempted %s route %s", claims.get("role"), role.value, request.url.path)
        raise


# ------------------------------------------------------------
# Current principal dependencies
# ------------------------------------------------------------
def require_employee(
    request: Request,
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> Employee:
    """Employee-only routes; admin tokens are rejected."""
    _require_role(claims, Role.USER, request)
    emp = db.get(Employee, int(claims["id"]))
    if not emp:
        logger.warning("User not found during authentication: %s", claims["id"])
        raise NotFound("User not found")
    return emp


def require_admin(
    request: Request,
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> Admin:
    """Admin-only routes; employee tokens are rejected."""
    _require_role(claims, Role.ADMIN, request)
    admin = db.get(Admin, int(claims["id"]))
    if not admin:
        logger.warning("Admin not found during authentication: %s", claims["id"])
        raise NotFound("Admin not found")
    return admin


# ------------------------------------------------------------
# Refresh cookie
# ------------------------------------------------------------
def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, httponly=True, samesite="strict")


def refresh_token_from(request: Request, body_token: Optional[str]) -> str:
    """Body wins over cookie."""
    token = body_token or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        logger.warning("Refresh token missing in request")
        raise AuthenticationError("Refresh token required")
    return token
