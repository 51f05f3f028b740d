# modules/security/bootstrap.py
from typing import Optional

from sqlalchemy import func, select

from config.settings import Settings, settings as default_settings
from core.logging import get_logger
from database.connection import SessionLocal
from modules.security.model import Admin
from modules.security.passwords import hash_password, verify_password

logger = get_logger("Bootstrap")


def ensure_default_admin(cfg: Settings = default_settings, session_factory=SessionLocal) -> Optional[int]:
    """
    Make sure exactly one admin matches ADMIN_EMAIL / ADMIN_PASSWORD.
    - not configured -> nothing to do
    - missing -> create it
    - password changed in the environment -> re-hash
    Returns the admin id (or None when not configured).
    """
    email = (cfg.ADMIN_EMAIL or "").strip().lower()
    password = cfg.ADMIN_PASSWORD or ""
    if not email or not password:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not configured; no admin provisioned")
        return None

    with session_factory() as db:
        admin = db.execute(
            select(Admin).where(func.lower(Admin.email) == email)
        ).scalars().first()

        if admin is None:
            admin = Admin(email=email, name=cfg.ADMIN_NAME, password_hash=hash_password(password))
            db.add(admin)
            db.commit()
            logger.info("Created admin %s", email)
            return admin.id

        if not verify_password(password, admin.password_hash):
            admin.password_hash = hash_password(password)
            db.commit()
            logger.info("Updated admin password from environment for %s", email)
        return admin.id
