from datetime import date, datetime
from typing import List, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Body, Query
from sqlalchemy.orm import Session

from portal.core.errors import OverlapConflict, ValidationFailed
from portal.db.models.enums import LeaveType, LeaveUnit, RequestStatus, Role
from portal.db.models.leave import LeaveRequest
from portal.db.models.notification import AdminNotification
from portal.db.models.user import User
from portal.routers import deps
from portal.utils.activity import log_activity
from portal.utils.approvals import approve_request, cancel_request, reject_request
from portal.utils.leave_validation import (
    ACTIVE_STATUSES, APPROVAL_OVERLAP_MESSAGE, SUBMISSION_OVERLAP_MESSAGE,
    is_leave_overlapping, validate_leave_range,
)
from portal.utils.notifications import notify_admins, notify_employee

router = APIRouter(
    prefix="/leave",
    tags=["leave"],
    dependencies=[Depends(deps.get_current_user)]
)

REASON_MIN = 5
REASON_MAX = 2000


class DocumentIn(pydantic.BaseModel):
    file_name: str
    file_url: str


class LeaveCreate(pydantic.BaseModel):
    type: LeaveType
    unit: LeaveUnit
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: str = ""
    certificate_url: Optional[str] = None
    documents: List[DocumentIn] = []


def serialize_leave(leave: LeaveRequest) -> dict:
    return {
        "id": leave.id,
        "employee_id": leave.employee_id,
        "employee_name": leave.employee.display_name if leave.employee else None,
        "business_unit": leave.business_unit,
        "type": leave.type,
        "unit": leave.unit,
        "start_date": leave.start_date.isoformat(),
        "end_date": leave.end_date.isoformat() if leave.end_date else None,
        "start_time": leave.start_time,
        "end_time": leave.end_time,
        "reason": leave.reason,
        "certificate_url": leave.certificate_url,
        "documents": leave.documents or [],
        "status": leave.status,
        "approved_by_id": leave.approved_by_id,
        "approved_at": leave.approved_at.isoformat() if leave.approved_at else None,
        "approval_message": leave.approval_message,
        "rejected_by_id": leave.rejected_by_id,
        "rejected_at": leave.rejected_at.isoformat() if leave.rejected_at else None,
        "rejection_reason": leave.rejection_reason,
    }


def _date_range_text(leave: LeaveRequest) -> str:
    text = f"from {leave.start_date.isoformat()}"
    if leave.end_date and leave.end_date != leave.start_date:
        text += f" to {leave.end_date.isoformat()}"
    return text


def _documents(documents: List[DocumentIn], now: datetime) -> list:
    return [
        {"file_name": d.file_name, "file_url": d.file_url, "uploaded_at": now.isoformat()}
        for d in documents
        if d.file_name and d.file_url.strip()
    ]


def get_leave_or_404(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).first()
    if not leave:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    return leave


def check_access(leave: LeaveRequest, user: User):
    if user.role == Role.ADMIN.value:
        if leave.business_unit != user.business_unit:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")
    elif leave.employee_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Leave request not found")


def _active_leaves(db: Session, employee_id: int, exclude_id: Optional[int] = None) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(LeaveRequest.id != exclude_id)
    return query.all()


def _close_admin_notifications(db: Session, leave: LeaveRequest, admin: User, now: datetime):
    db.query(AdminNotification).filter(
        AdminNotification.kind == "leave_request",
        AdminNotification.related_id == leave.id,
        AdminNotification.read_at == None,
    ).update({"read_at": now, "read_by_id": admin.id}, synchronize_session=False)


@router.get("/")
async def list_leaves(
    employee_id: Optional[int] = None,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    query = db.query(LeaveRequest)
    if user.role == Role.ADMIN.value:
        query = query.filter(LeaveRequest.business_unit == user.business_unit)
        if employee_id:
            query = query.filter(LeaveRequest.employee_id == employee_id)
    else:
        query = query.filter(LeaveRequest.employee_id == user.id)

    if status_filter:
        query = query.filter(LeaveRequest.status == status_filter.value)

    leaves = query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()
    return [serialize_leave(l) for l in leaves]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_leave(
    payload: LeaveCreate,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee),
    today: date = Depends(deps.get_today),
    now: datetime = Depends(deps.get_now)
):
    reason = payload.reason.strip()
    if len(reason) < REASON_MIN:
        raise ValidationFailed("Reason must be at least 5 characters")
    if len(reason) > REASON_MAX:
        raise ValidationFailed("Reason is too long")

    certificate_url = (payload.certificate_url or "").strip() or None
    if payload.type == LeaveType.SICK_WITH_CERTIFICATE and not certificate_url:
        raise ValidationFailed("Certificate file is required for sick leave with certificate")

    window = validate_leave_range(
        payload.type.value,
        payload.unit.value,
        payload.start_date,
        payload.end_date,
        payload.start_time,
        payload.end_time,
        today=today,
    )

    half_day = payload.unit == LeaveUnit.HALF_DAY
    candidate = {
        "start_date": window.start_date,
        "end_date": window.end_date,
        "start_time": payload.start_time if half_day else None,
        "end_time": payload.end_time if half_day else None,
        "unit": window.unit,
    }
    if is_leave_overlapping(_active_leaves(db, user.id), candidate):
        raise OverlapConflict(SUBMISSION_OVERLAP_MESSAGE)

    leave = LeaveRequest(
        employee_id=user.id,
        business_unit=user.business_unit,
        type=payload.type.value,
        unit=window.unit,
        start_date=window.start_date,
        end_date=window.end_date if window.end_date != window.start_date else None,
        start_time=candidate["start_time"],
        end_time=candidate["end_time"],
        reason=reason,
        certificate_url=certificate_url,
        documents=_documents(payload.documents, now) or None,
        status=RequestStatus.PENDING.value,
    )
    db.add(leave)
    db.flush()

    notify_admins(
        db, user.business_unit, "leave_request", leave.id, user,
        f"{user.display_name} requested {leave.type} leave {_date_range_text(leave)}.",
    )
    db.commit()
    db.refresh(leave)

    log_activity(db, user, "SUBMIT", "LEAVE", leave.id, f"{leave.type} {_date_range_text(leave)}")
    return serialize_leave(leave)


@router.post("/{leave_id}/cancel")
async def cancel_leave(
    leave_id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee)
):
    leave = get_leave_or_404(db, leave_id)
    check_access(leave, user)

    cancel_request(leave, kind="leave")
    db.commit()

    log_activity(db, user, "CANCEL", "LEAVE", leave.id)
    return serialize_leave(leave)


@router.post("/{leave_id}/approve")
async def approve_leave(
    leave_id: int,
    approval_message: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin),
    now: datetime = Depends(deps.get_now)
):
    leave = get_leave_or_404(db, leave_id)
    check_access(leave, user)

    # Other requests may have been approved since this one was submitted
    if leave.status == RequestStatus.PENDING.value and is_leave_overlapping(
        _active_leaves(db, leave.employee_id, exclude_id=leave.id), leave
    ):
        raise OverlapConflict(APPROVAL_OVERLAP_MESSAGE)

    approve_request(leave, user.id, approval_message, now=now, kind="leave")

    message = f"Your {leave.type} leave request {_date_range_text(leave)} has been approved."
    if leave.approval_message:
        message += f" Message: {leave.approval_message}"
    notify_employee(db, leave.employee, "leave_approval", "Leave Request Approved", message, leave.id, user)
    _close_admin_notifications(db, leave, user, now)
    db.commit()

    log_activity(db, user, "APPROVE", "LEAVE", leave.id)
    return serialize_leave(leave)


@router.post("/{leave_id}/reject")
async def reject_leave(
    leave_id: int,
    rejection_reason: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin),
    now: datetime = Depends(deps.get_now)
):
    leave = get_leave_or_404(db, leave_id)
    check_access(leave, user)

    reject_request(leave, user.id, rejection_reason, now=now, kind="leave")

    notify_employee(
        db, leave.employee, "leave_approval", "Leave Request Rejected",
        f"Your {leave.type} leave request {_date_range_text(leave)} has been rejected. Reason: {leave.rejection_reason}",
        leave.id, user,
    )
    _close_admin_notifications(db, leave, user, now)
    db.commit()

    log_activity(db, user, "REJECT", "LEAVE", leave.id, leave.rejection_reason)
    return serialize_leave(leave)


@router.post("/{leave_id}/documents")
async def attach_documents(
    leave_id: int,
    documents: List[DocumentIn] = Body(..., embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user),
    now: datetime = Depends(deps.get_now)
):
    """Documents can be attached in any status, including terminal ones."""
    leave = get_leave_or_404(db, leave_id)
    check_access(leave, user)

    added = _documents(documents, now)
    if not added:
        raise ValidationFailed("At least one document with a file name and URL is required")

    # Reassign so the JSON column is flagged as changed
    leave.documents = list(leave.documents or []) + added
    db.commit()

    log_activity(db, user, "ATTACH", "LEAVE", leave.id, ", ".join(d["file_name"] for d in added))
    return serialize_leave(leave)
