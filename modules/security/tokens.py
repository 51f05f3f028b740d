# modules/security/tokens.py
"""
Access/refresh token pairs for employees and admins.

Access tokens are verified statelessly. Refresh tokens are also recorded per
principal (``refresh_tokens``); a refresh token is usable only while its record
exists, and using it (rotation) deletes the record, so each refresh token
works exactly once. Logout removes one record or all of them.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from config.settings import Settings, settings as default_settings
from core.errors import AuthorizationError, InvalidToken, UnknownToken
from core.logging import get_logger
from modules.employees.models import Employee
from modules.security.model import Admin, RefreshToken, Role

logger = get_logger("TokenManager")

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def as_dict(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


def _principal_model(role: Role):
    return Admin if role == Role.ADMIN else Employee


class TokenManager:
    def __init__(self, cfg: Settings = default_settings):
        self.cfg = cfg
        self.access_ttl = timedelta(minutes=cfg.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=cfg.REFRESH_TOKEN_EXPIRE_DAYS)

    # ---------- signing ----------
    def _secret(self, kind: str, role: Role) -> str:
        if role == Role.ADMIN:
            return self.cfg.JWT_ADMIN_ACCESS_SECRET if kind == ACCESS else self.cfg.JWT_ADMIN_REFRESH_SECRET
        return self.cfg.JWT_ACCESS_SECRET if kind == ACCESS else self.cfg.JWT_REFRESH_SECRET

    def _encode(self, principal_id: int, email: str, role: Role, kind: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "id": int(principal_id),
            "email": email,
            "role": role.value,
            "type": kind,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(claims, self._secret(kind, role), algorithm=self.cfg.ALGORITHM)

    def _decode(self, token: str, kind: str) -> dict:
        if not token:
            raise InvalidToken()
        try:
            # role picks the secret; the signature check below is what proves it
            unverified = jwt.decode(token, options={"verify_signature": False})
            role = Role(unverified.get("role"))
        except (jwt.PyJWTError, ValueError):
            raise InvalidToken()
        try:
            claims = jwt.decode(token, self._secret(kind, role), algorithms=[self.cfg.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Token has expired")
        except jwt.PyJWTError:
            raise InvalidToken()
        if claims.get("type") != kind or "id" not in claims:
            raise InvalidToken()
        return claims

    # ---------- public API ----------
    def issue_pair(self, principal_id: int, email: str, role: Role) -> TokenPair:
        role = Role(role)
        return TokenPair(
            access_token=self._encode(principal_id, email, role, ACCESS, self.access_ttl),
            refresh_token=self._encode(principal_id, email, role, REFRESH, self.refresh_ttl),
        )

    def verify_access(self, token: str) -> dict:
        return self._decode(token, ACCESS)

    @staticmethod
    def authorize(claims: dict, required_role: Role) -> None:
        if claims.get("role") != Role(required_role).value:
            if required_role == Role.ADMIN:
                raise AuthorizationError("Admin access required - employees cannot access admin panel")
            raise AuthorizationError("Employee access required - admins cannot access employee features")

    def verify_refresh(self, db: Session, token: str) -> dict:
        claims = self._decode(token, REFRESH)
        role = Role(claims["role"])
        principal = db.get(_principal_model(role), int(claims["id"]))
        if principal is None or not self.is_live(db, role, principal.id, token):
            logger.warning("Refresh token not live for %s %s", role.value, claims["id"])
            raise UnknownToken()
        return claims

    def is_live(self, db: Session, role: Role, principal_id: int, token: str) -> bool:
        row = db.execute(
            select(RefreshToken.id).where(
                RefreshToken.role == Role(role),
                RefreshToken.principal_id == principal_id,
                RefreshToken.token == token,
                RefreshToken.expires_at > datetime.utcnow(),
            )
        ).first()
        return row is not None

    def record_refresh(self, db: Session, role: Role, principal_id: int, token: str, commit: bool = True) -> None:
        now = datetime.utcnow()
        db.execute(
            delete(RefreshToken).where(
                RefreshToken.role == Role(role),
                RefreshToken.principal_id == principal_id,
                RefreshToken.expires_at <= now,
            )
        )
        db.add(RefreshToken(
            role=Role(role),
            principal_id=principal_id,
            token=token,
            issued_at=now,
            expires_at=now + self.refresh_ttl,
        ))
        if commit:
            db.commit()

    def login(self, db: Session, principal, role: Role) -> TokenPair:
        """Issue a pair for an authenticated principal and record its refresh token."""
        pair = self.issue_pair(principal.id, principal.email, role)
        self.record_refresh(db, role, principal.id, pair.refresh_token)
        return pair

    def rotate(self, db: Session, old_refresh_token: str, role: Optional[Role] = None) -> tuple[TokenPair, dict]:
        """Exchange a live refresh token for a new pair; the old one stops working."""
        claims = self.verify_refresh(db, old_refresh_token)
        if role is not None and claims["role"] != Role(role).value:
            logger.warning("%s refresh token presented to %s refresh", claims["role"], Role(role).value)
            raise InvalidToken()
        role = Role(claims["role"])
        principal_id = int(claims["id"])

        # deleting the record is the claim on the token; a concurrent rotation gets rowcount 0
        res = db.execute(
            delete(RefreshToken).where(
                RefreshToken.role == role,
                RefreshToken.principal_id == principal_id,
                RefreshToken.token == old_refresh_token,
            )
        )
        if res.rowcount != 1:
            db.rollback()
            raise UnknownToken()

        principal = db.get(_principal_model(role), principal_id)
        pair = self.issue_pair(principal_id, principal.email, role)
        self.record_refresh(db, role, principal_id, pair.refresh_token, commit=False)
        db.commit()
        logger.info("Token refreshed for %s %s", role.value, principal_id)
        return pair, claims

    def revoke(self, db: Session, role: Role, principal_id: int, token: Optional[str] = None) -> int:
        stmt = delete(RefreshToken).where(
            RefreshToken.role == Role(role),
            RefreshToken.principal_id == principal_id,
        )
        if token:
            stmt = stmt.where(RefreshToken.token == token)
        res = db.execute(stmt)
        db.commit()
        return res.rowcount or 0


token_manager = TokenManager()
