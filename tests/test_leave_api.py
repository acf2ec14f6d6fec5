from datetime import date

from portal.db.models.activity import ActivityLog
from portal.db.models.leave import LeaveRequest
from portal.db.models.notification import AdminNotification, EmployeeNotification


def submit(client, headers, **overrides):
    body = {
        "type": "Annual",
        "unit": "FullDay",
        "start_date": "2024-03-12",
        "end_date": "2024-03-14",
        "reason": "Family trip",
    }
    body.update(overrides)
    return client.post("/leave/", json=body, headers=headers)


def test_requires_authentication(client):
    assert client.get("/leave/").status_code == 401


def test_submit_creates_pending_leave_and_notifies_admins(client, db, admin, employee_headers):
    response = submit(client, employee_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Pending"
    assert data["end_date"] == "2024-03-14"

    notice = db.query(AdminNotification).one()
    assert notice.kind == "leave_request"
    assert notice.related_id == data["id"]
    assert notice.business_unit == "G3"
    assert db.query(ActivityLog).filter_by(action="SUBMIT", entity_type="LEAVE").count() == 1


def test_validation_errors_are_400_with_code(client, employee_headers):
    response = submit(client, employee_headers, start_date="2024-03-01", end_date=None)
    assert response.status_code == 400
    assert response.json() == {"detail": "Backdated leave is only allowed for sick leave", "code": "InvalidRange"}

    response = submit(client, employee_headers, unit="HalfDay", start_time="13:00", end_time="12:00", end_date=None)
    assert response.json()["code"] == "InvalidTime"

    response = submit(client, employee_headers, reason="hi")
    assert response.json()["code"] == "ValidationFailed"


def test_sick_leave_with_certificate_needs_url(client, employee_headers):
    response = submit(client, employee_headers, type="SickWithCertificate", start_date="2024-03-01", end_date=None)
    assert response.status_code == 400
    assert "Certificate" in response.json()["detail"]

    response = submit(
        client, employee_headers, type="SickWithCertificate", start_date="2024-03-01", end_date=None,
        certificate_url="https://files.example.com/cert.pdf",
    )
    assert response.status_code == 201


def test_overlapping_submission_rejected(client, employee_headers):
    assert submit(client, employee_headers).status_code == 201
    response = submit(client, employee_headers, start_date="2024-03-14", end_date="2024-03-16")
    assert response.status_code == 400
    assert response.json()["code"] == "OverlapConflict"
    assert response.json()["detail"].startswith("You already have a pending or approved leave")


def test_adjacent_half_days_allowed(client, employee_headers):
    first = submit(client, employee_headers, unit="HalfDay", end_date=None, start_time="09:00", end_time="12:00")
    second = submit(client, employee_headers, unit="HalfDay", end_date=None, start_time="12:00", end_time="15:00")
    assert first.status_code == 201
    assert second.status_code == 201


def test_cancelled_leave_no_longer_blocks(client, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]
    response = client.post(f"/leave/{leave_id}/cancel", headers=employee_headers)
    assert response.json()["status"] == "Cancelled"

    assert submit(client, employee_headers).status_code == 201

    again = client.post(f"/leave/{leave_id}/cancel", headers=employee_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "InvalidTransition"


def test_admin_approves_with_message(client, db, admin_headers, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]

    response = client.post(f"/leave/{leave_id}/approve", json={"approval_message": " Enjoy "}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Approved"
    assert data["approval_message"] == "Enjoy"
    assert data["approved_at"] is not None

    notice = db.query(EmployeeNotification).one()
    assert notice.title == "Leave Request Approved"
    assert "Message: Enjoy" in notice.message
    assert db.query(AdminNotification).one().read_at is not None

    again = client.post(f"/leave/{leave_id}/reject", json={"rejection_reason": "No"}, headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Only pending leave requests can be approved or rejected"


def test_approval_rechecks_overlap(client, db, employee, admin_headers, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]
    # A conflicting leave that slipped in through another path
    db.add(LeaveRequest(
        employee_id=employee.id, business_unit="G3", type="Annual", unit="FullDay",
        start_date=date(2024, 3, 13),
        reason="Imported", status="Approved",
    ))
    db.commit()

    response = client.post(f"/leave/{leave_id}/approve", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("This leave now overlaps")


def test_reject_requires_reason(client, admin_headers, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]

    response = client.post(f"/leave/{leave_id}/reject", json={"rejection_reason": "  "}, headers=admin_headers)
    assert response.status_code == 400

    response = client.post(f"/leave/{leave_id}/reject", json={"rejection_reason": "Busy week"}, headers=admin_headers)
    data = response.json()
    assert data["status"] == "Rejected"
    assert data["rejection_reason"] == "Busy week"
    assert data["approved_by_id"] is None


def test_employees_cannot_approve(client, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]
    assert client.post(f"/leave/{leave_id}/approve", headers=employee_headers).status_code == 403


def test_documents_can_be_attached_after_decision(client, admin_headers, employee_headers):
    leave_id = submit(client, employee_headers).json()["id"]
    client.post(f"/leave/{leave_id}/approve", headers=admin_headers)

    response = client.post(
        f"/leave/{leave_id}/documents",
        json={"documents": [{"file_name": "ticket.pdf", "file_url": "https://files.example.com/ticket.pdf"}]},
        headers=employee_headers,
    )
    assert response.status_code == 200
    assert [d["file_name"] for d in response.json()["documents"]] == ["ticket.pdf"]


def test_admin_lists_only_own_business_unit(client, admin_headers, employee_headers):
    submit(client, employee_headers)
    response = client.get("/leave/", headers=admin_headers)
    assert len(response.json()) == 1
    assert client.get("/leave/?status=Approved", headers=admin_headers).json() == []
