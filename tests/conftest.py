from __future__ import annotations

import itertools
import os
import tempfile

import pytest

# The app reads its settings at import time: point it at a scratch database first.
_TMP_DIR = tempfile.mkdtemp(prefix="leave-ledger-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "AdminPass123"
os.environ["DB_CONNECT_RETRIES"] = "1"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402

from database.base import Base  # noqa: E402
from database.connection import SessionLocal, create_all_tables, engine  # noqa: E402
from modules.employees.models import Employee, EmployeePhone, Supervisor  # noqa: E402
from modules.leave.services import ensure_ledger  # noqa: E402
from modules.security.passwords import hash_password  # noqa: E402

ADMIN_EMAIL = os.environ["ADMIN_EMAIL"]
ADMIN_PASSWORD = os.environ["ADMIN_PASSWORD"]
DEFAULT_PASSWORD = "secret123"

_seq = itertools.count(1)


@pytest.fixture(autouse=True)
def _fresh_db():
    create_all_tables(engine)
    with engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE IF EXISTS leaves")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def app_client():
    import main

    # the context manager runs the startup hooks (tables, migrations, admin bootstrap)
    with TestClient(main.app) as client:
        yield main.app, client


def _seed_employee(
    *,
    name: str = "Aung Min",
    email: str | None = None,
    password: str = DEFAULT_PASSWORD,
    supervisor: str = Supervisor.DIMPLE.value,
    phones: list[str] | None = None,
    with_ledger: bool = True,
) -> int:
    n = next(_seq)
    with SessionLocal() as db:
        emp = Employee(
            name=name,
            email=email or f"user{n}@example.com",
            password_hash=hash_password(password),
            education="B.Sc. Computer Science",
            address="12 Pyay Road, Yangon",
            supervisor=supervisor,
            phones=[EmployeePhone(number=p) for p in (phones or [f"09{n:09d}"])],
        )
        db.add(emp)
        db.commit()
        if with_ledger:
            ensure_ledger(db, emp.id)
        return emp.id


@pytest.fixture()
def seed_employee():
    return _seed_employee


@pytest.fixture()
def login(app_client):
    """login(email, password, role="user") -> (headers, data)"""
    _app, client = app_client

    def _login(email: str, password: str = DEFAULT_PASSWORD, role: str = "user"):
        path = "/api/auth/admin/login" if role == "admin" else "/api/auth/user/login"
        res = client.post(path, json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        return {"Authorization": f"Bearer {data['accessToken']}"}, data

    return _login


@pytest.fixture()
def admin_headers(login):
    headers, _data = login(ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")
    return headers
