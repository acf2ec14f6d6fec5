import pytest

from portal.db.models.notification import EmployeeNotification
from portal.db.models.payroll import Payroll


@pytest.fixture
def payroll_id(client, employee, admin_headers):
    response = client.post("/payroll/", json={
        "employee_id": employee.id,
        "period": "2024-02",
        "base_salary": 5000,
        "allowances": 200,
        "deductions": 100,
    }, headers=admin_headers)
    assert response.status_code == 201
    return response.json()["id"]


def test_create_payroll(client, db, payroll_id, admin_headers):
    data = client.get("/payroll/?period=2024-02", headers=admin_headers).json()[0]
    assert data["status"] == "Generated"
    assert data["gross_pay"] == 5200
    assert data["net_pay"] == 5100
    # employee.payroll_day is 31, clamped to February's last day
    assert data["payroll_date"] == "2024-02-29"
    assert db.query(EmployeeNotification).one().title == "Payroll Created"


def test_duplicate_period_rejected(client, employee, payroll_id, admin_headers):
    response = client.post("/payroll/", json={
        "employee_id": employee.id, "period": "2024-02", "base_salary": 4000,
    }, headers=admin_headers)
    assert response.status_code == 400
    assert "already exists" in response.json()["detail"]


def test_month_and_year_filter(client, payroll_id, admin_headers):
    assert len(client.get("/payroll/?month=2&year=2024", headers=admin_headers).json()) == 1
    assert client.get("/payroll/?month=3&year=2024", headers=admin_headers).json() == []


def test_negative_net_pay_leaves_record_unchanged(client, db, payroll_id, admin_headers):
    response = client.patch(f"/payroll/{payroll_id}", json={"deductions": 5300}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "NegativeNetPay"

    payroll = db.get(Payroll, payroll_id)
    assert payroll.deductions == 100
    assert payroll.net_pay == 5100


def test_failed_status_change_discards_monetary_edit(client, db, payroll_id, admin_headers):
    response = client.patch(
        f"/payroll/{payroll_id}", json={"base_salary": 9000, "status": "Completed"}, headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "InvalidTransition"
    assert db.get(Payroll, payroll_id).base_salary == 5000


def test_full_lifecycle(client, db, payroll_id, admin_headers, employee_headers):
    sent = client.patch(f"/payroll/{payroll_id}", json={"status": "Pending Signature"}, headers=admin_headers)
    assert sent.json()["status"] == "Pending Signature"

    signed = client.put(
        f"/payroll/{payroll_id}/sign",
        json={"signature": "data:image/png;base64,AAA", "confirmed": True},
        headers={**employee_headers, "User-Agent": "pytest-agent"},
    ).json()
    assert signed["status"] == "Signed"
    assert signed["signed_at"] is not None

    twice = client.put(
        f"/payroll/{payroll_id}/sign", json={"signature": "x", "confirmed": True}, headers=employee_headers,
    )
    assert twice.status_code == 400
    assert twice.json()["detail"] == "Payroll has already been signed"

    completed = client.patch(f"/payroll/{payroll_id}", json={"status": "Completed"}, headers=admin_headers).json()
    assert completed["status"] == "Completed"
    assert completed["completed_at"] is not None

    # corrections stay possible after completion
    corrected = client.patch(f"/payroll/{payroll_id}", json={"allowances": 300}, headers=admin_headers).json()
    assert corrected["net_pay"] == 5200
    assert corrected["status"] == "Completed"

    assert db.get(Payroll, payroll_id).employee_sign_user_agent == "pytest-agent"
    assert client.delete(f"/payroll/{payroll_id}", headers=admin_headers).status_code == 400


def test_employee_rejects_and_admin_reissues(client, payroll_id, admin_headers, employee_headers):
    client.patch(f"/payroll/{payroll_id}", json={"status": "Pending Signature"}, headers=admin_headers)

    rejected = client.post(
        f"/payroll/{payroll_id}/reject", json={"reason": "Overtime missing"}, headers=employee_headers,
    ).json()
    assert rejected["status"] == "Rejected"
    assert rejected["employee_rejection_reason"] == "Overtime missing"

    signing_rejected = client.put(
        f"/payroll/{payroll_id}/sign", json={"signature": "x", "confirmed": True}, headers=employee_headers,
    )
    assert signing_rejected.json()["detail"] == "Rejected payrolls cannot be signed"

    reissued = client.patch(
        f"/payroll/{payroll_id}", json={"allowances": 450, "status": "Pending Signature"}, headers=admin_headers,
    ).json()
    assert reissued["status"] == "Pending Signature"
    assert reissued["net_pay"] == 5350


def test_admin_cannot_sign_on_behalf(client, payroll_id, admin_headers):
    client.patch(f"/payroll/{payroll_id}", json={"status": "Pending Signature"}, headers=admin_headers)
    response = client.patch(f"/payroll/{payroll_id}", json={"status": "Signed"}, headers=admin_headers)
    assert response.status_code == 400


def test_sign_requires_confirmation(client, payroll_id, admin_headers, employee_headers):
    client.patch(f"/payroll/{payroll_id}", json={"status": "Pending Signature"}, headers=admin_headers)
    response = client.put(f"/payroll/{payroll_id}/sign", json={"signature": "x"}, headers=employee_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "ValidationFailed"


def test_delete_generated_payroll(client, db, payroll_id, admin_headers):
    assert client.delete(f"/payroll/{payroll_id}", headers=admin_headers).json()["success"] is True
    assert db.get(Payroll, payroll_id) is None


def test_employee_cannot_create_payroll(client, employee, employee_headers):
    response = client.post("/payroll/", json={
        "employee_id": employee.id, "period": "2024-02", "base_salary": 4000,
    }, headers=employee_headers)
    assert response.status_code == 403
