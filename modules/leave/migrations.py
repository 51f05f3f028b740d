# modules/leave/migrations.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import insert, text
from sqlalchemy.engine import Engine

from config.settings import settings
from core.logging import get_logger
from database.connection import column_names, engine as default_engine, table_names

from .models import LeaveLedger, LeaveType

logger = get_logger("Database")

LEGACY_TABLE = "leaves"
_REQUIRED = {"user_id", "annual_leave", "sick_leave", "casual_leave"}


def _as_date(v) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def flat_to_structured(record: dict, caps: dict) -> dict:
    """
    Flat row {annual_leave, sick_leave, casual_leave, start_date, end_date}
    -> ledger column values.
    - remaining = flat value clamped to [0, cap], total = cap, used = total - remaining
    - the single global period becomes the current leave (no type)
    """
    out: dict = {}
    for lt in LeaveType:
        cap = float(caps[lt.value])
        raw = record.get(f"{lt.value}_leave")
        remaining = cap if raw is None else min(max(float(raw), 0.0), cap)
        out[f"{lt.value}_total"] = cap
        out[f"{lt.value}_used"] = cap - remaining
        out[f"{lt.value}_remaining"] = remaining

    start = _as_date(record.get("start_date"))
    end = _as_date(record.get("end_date"))
    if start and end and end >= start:
        out["current_leave_start"] = start
        out["current_leave_end"] = end
        out["current_leave_days"] = float((end - start).days + 1)
    else:
        out["current_leave_start"] = None
        out["current_leave_end"] = None
        out["current_leave_days"] = 0.0
    out["current_leave_type"] = None
    return out


def migrate_flat_leaves(engine: Engine = default_engine, caps: Optional[dict] = None) -> int:
    """
    Convert rows of the legacy ``leaves`` table into ledgers.
    Only employees without a ledger are touched, so running it again is a no-op.
    """
    tables = table_names(engine)
    if LEGACY_TABLE not in tables or LeaveLedger.__tablename__ not in tables:
        return 0

    cols = column_names(engine, LEGACY_TABLE)
    missing = _REQUIRED - cols
    if missing:
        logger.warning("Legacy %s table lacks columns %s; skipped", LEGACY_TABLE, sorted(missing))
        return 0

    caps = caps or settings.leave_defaults
    select_cols = ", ".join(
        f"l.{c}" if c in cols else f"NULL AS {c}"
        for c in ("user_id", "annual_leave", "sick_leave", "casual_leave", "start_date", "end_date")
    )

    with engine.begin() as conn:
        rows = conn.execute(text(
            f"SELECT {select_cols} FROM {LEGACY_TABLE} l "
            "WHERE EXISTS (SELECT 1 FROM employees e WHERE e.id = l.user_id) "
            "AND NOT EXISTS (SELECT 1 FROM leave_ledgers g WHERE g.employee_id = l.user_id)"
        )).mappings().all()

        seen = set()
        for row in rows:
            # duplicate legacy rows for one employee: first one wins
            if row["user_id"] in seen:
                continue
            seen.add(row["user_id"])
            values = flat_to_structured(dict(row), caps)
            conn.execute(insert(LeaveLedger.__table__).values(employee_id=row["user_id"], **values))

    if seen:
        logger.info("Migrated %d flat leave records", len(seen))
    return len(seen)
