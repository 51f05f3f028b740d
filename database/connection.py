# database/connection.py
import time
from typing import Generator

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from config.settings import settings
from core.logging import get_logger
from database.base import Base

logger = get_logger("Database")

DATABASE_URL = settings.DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    # SQLite needs this per connection for ON DELETE CASCADE
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


# ---------- small helpers ----------
def table_names(bind) -> set[str]:
    return set(inspect(bind).get_table_names())


def column_names(bind, table: str) -> set[str]:
    return {c["name"] for c in inspect(bind).get_columns(table)}


def ping_db(bind: Engine = engine) -> bool:
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except OperationalError:
        return False


def wait_for_database(bind: Engine = engine, retries: int | None = None, backoff: float | None = None) -> None:
    """
    Probe the database with exponential backoff.
    Exits the process when it stays unreachable; no traffic is served without a store.
    """
    retries = max(1, retries if retries is not None else settings.DB_CONNECT_RETRIES)
    delay = backoff if backoff is not None else settings.DB_CONNECT_BACKOFF_SECONDS
    for attempt in range(1, retries + 1):
        if ping_db(bind):
            logger.info("Database reachable (attempt %d)", attempt)
            return
        logger.warning("Database unreachable (attempt %d/%d)", attempt, retries)
        if attempt < retries:
            time.sleep(delay)
            delay *= 2
    logger.critical("Giving up on database after %d attempts", retries)
    raise SystemExit(1)


# ---------- session ----------
def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------- bootstrap ----------
def create_all_tables(bind: Engine = engine) -> None:
    # models must be imported before create_all
    from modules.employees import models as _emp_models  # noqa: F401
    from modules.leave import models as _leave_models  # noqa: F401
    from modules.security import model as _sec_models  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")
