from __future__ import annotations

from datetime import date, datetime, timedelta

from database.connection import SessionLocal
from modules.leave import services
from modules.leave.models import LeaveHistory, LeaveStatus, LeaveType


def _future(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _request(client, headers, **overrides):
    body = {
        "leaveType": "annualLeave",
        "days": 2,
        "startDate": _future(3),
        "endDate": _future(4),
        "reason": "wedding",
    }
    body.update(overrides)
    return client.post("/api/auth/leave/request", json=body, headers=headers)


def test_request_flow(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="leave@example.com")
    headers, _ = login("leave@example.com")

    res = _request(client, headers)
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["leaveRequest"]["status"] == "approved"
    assert data["leaveRequest"]["approvedBy"] == "Auto-approved"
    assert data["leaveRequest"]["leaveType"] == "annualLeave"
    assert data["updatedBalance"]["annualLeave"] == {"total": 10, "used": 2, "remaining": 8}

    res = client.get("/api/auth/leave/balance", headers=headers)
    assert res.json()["data"]["annualLeave"]["remaining"] == 8

    res = client.get("/api/auth/leave/history", headers=headers)
    hist = res.json()["data"]
    assert hist["pagination"]["total"] == 1
    assert hist["history"][0]["reason"] == "wedding"


def test_request_validation(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="val@example.com")
    headers, _ = login("val@example.com")

    yesterday = (date.today() - timedelta(days=1)).isoformat()
    cases = [
        {"startDate": yesterday, "endDate": _future(1)},
        {"startDate": _future(5), "endDate": _future(4)},
        {"days": 0},
        {"days": -2},
        {"leaveType": "holiday"},
    ]
    for overrides in cases:
        res = _request(client, headers, **overrides)
        assert res.status_code == 400, overrides
        assert res.json()["message"] == "Validation failed"

    # same-day leave is allowed
    res = _request(client, headers, days=1, startDate=_future(1), endDate=_future(1))
    assert res.status_code == 200


def test_insufficient_balance_over_http(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="short@example.com")
    headers, _ = login("short@example.com")

    res = _request(client, headers, leaveType="casualLeave", days=6)
    assert res.status_code == 400
    assert res.json()["message"] == "Insufficient casualLeave balance. Available: 5 days, Requested: 6 days"


def test_overlap_over_http(app_client, seed_employee, login):
    _app, client = app_client
    seed_employee(email="overlap@example.com")
    headers, _ = login("overlap@example.com")
    assert _request(client, headers).status_code == 200
    res = _request(client, headers, leaveType="sickLeave", days=1, startDate=_future(4), endDate=_future(4))
    assert res.status_code == 400
    assert res.json()["message"].startswith("Requested period overlaps")


def test_cancel_over_http(app_client, seed_employee, login):
    _app, client = app_client
    emp_id = seed_employee(email="cancel@example.com")
    headers, _ = login("cancel@example.com")

    approved_id = _request(client, headers).json()["data"]["leaveRequest"]["id"]
    res = client.post(f"/api/auth/leave/cancel/{approved_id}", headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Only pending requests can be cancelled"

    with SessionLocal() as db:
        ledger = services.get_ledger(db, emp_id)
        pending = LeaveHistory(
            ledger_id=ledger.id, leave_type=LeaveType.SICK, start_date=date(2099, 1, 1),
            end_date=date(2099, 1, 1), days=1, status=LeaveStatus.PENDING,
        )
        db.add(pending)
        db.commit()
        pending_id = pending.id

    res = client.post(f"/api/auth/leave/cancel/{pending_id}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["leaveRequest"]["status"] == "cancelled"

    res = client.post("/api/auth/leave/cancel/987654", headers=headers)
    assert res.status_code == 404


def test_admin_list_pagination(app_client, seed_employee, admin_headers):
    _app, client = app_client
    for i in range(25):
        seed_employee(name=f"Worker {i:02d}")

    res = client.get("/api/auth/leave/admin/all", params={"page": 2, "limit": 10}, headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert len(data["leaves"]) == 10
    assert data["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalUsers": 25,
        "hasNext": True,
        "hasPrev": True,
    }

    res = client.get("/api/auth/leave/admin/all", params={"page": 0}, headers=admin_headers)
    assert res.status_code == 400


def test_admin_reset_and_adjust(app_client, seed_employee, login, admin_headers):
    _app, client = app_client
    emp_id = seed_employee(email="adj@example.com")
    headers, _ = login("adj@example.com")
    assert _request(client, headers).status_code == 200

    res = client.patch(
        f"/api/auth/leave/admin/{emp_id}/adjust",
        json={"leaveType": "annualLeave", "adjustment": 5, "reason": "carry over"},
        headers=admin_headers,
    )
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert (data["oldBalance"], data["adjustment"], data["newBalance"]) == (8, 5, 13)
    assert data["adjustedBy"] == "admin@example.com"

    res = client.patch(
        f"/api/auth/leave/admin/{emp_id}/adjust",
        json={"leaveType": "annualLeave", "adjustment": -20},
        headers=admin_headers,
    )
    assert res.json()["data"]["balance"] == {"total": 15, "used": 15, "remaining": 0}

    res = client.put(
        f"/api/auth/leave/admin/{emp_id}/reset",
        json={"annualLeave": 12},
        headers=admin_headers,
    )
    assert res.status_code == 200
    bal = res.json()["data"]["leaveBalance"]
    assert bal["annualLeave"] == {"total": 12, "used": 0, "remaining": 12}
    assert bal["sickLeave"] == {"total": 14, "used": 0, "remaining": 14}

    res = client.put(f"/api/auth/leave/admin/{emp_id}/reset", headers=admin_headers)
    assert res.json()["data"]["leaveBalance"]["annualLeave"]["total"] == 10

    res = client.put(f"/api/auth/leave/admin/{emp_id}/reset", json={"sickLeave": -1}, headers=admin_headers)
    assert res.status_code == 400

    res = client.put("/api/auth/leave/admin/424242/reset", headers=admin_headers)
    assert res.status_code == 404


def test_statistics_endpoint(app_client, seed_employee, login, admin_headers):
    _app, client = app_client
    seed_employee(email="stat@example.com")
    headers, _ = login("stat@example.com")
    _request(client, headers)

    res = client.get("/api/auth/leave/statistics", headers=admin_headers)
    assert res.status_code == 200
    stats = res.json()["data"]
    assert stats["totalUsers"] == 1
    assert stats["leaveDistributionByType"]["annualLeave"] == 2
    now = datetime.utcnow()
    assert stats["monthlyLeaveDistribution"] == [{"month": now.strftime("%b"), "year": now.year, "count": 1}]

    assert client.get("/api/auth/leave/statistics", headers=headers).status_code == 403


def test_employee_cannot_use_admin_leave_routes(app_client, seed_employee, login):
    _app, client = app_client
    emp_id = seed_employee(email="nosy@example.com")
    headers, _ = login("nosy@example.com")

    assert client.get("/api/auth/leave/admin/all", headers=headers).status_code == 403
    res = client.patch(
        f"/api/auth/leave/admin/{emp_id}/adjust",
        json={"leaveType": "annualLeave", "adjustment": 100},
        headers=headers,
    )
    assert res.status_code == 403
    assert client.put(f"/api/auth/leave/admin/{emp_id}/reset", headers=headers).status_code == 403
