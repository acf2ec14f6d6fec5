from datetime import date, datetime
from typing import List, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Body, Query
from sqlalchemy.orm import Session

from portal.core.errors import InvalidDate, MissingTime, OverlapConflict
from portal.db.models.enums import RequestStatus, Role
from portal.db.models.notification import AdminNotification
from portal.db.models.overtime import OvertimeRequest
from portal.db.models.user import User
from portal.routers import deps
from portal.utils.activity import log_activity
from portal.utils.approvals import approve_request, cancel_request, reject_request
from portal.utils.leave_validation import ACTIVE_STATUSES
from portal.utils.overtime_validation import (
    APPROVAL_OVERLAP_MESSAGE, SUBMISSION_OVERLAP_MESSAGE,
    is_overtime_overlapping, validate_overtime_request,
)
from portal.utils.notifications import notify_admins, notify_employee
from portal.utils.time_range import to_date

router = APIRouter(
    prefix="/overtime",
    tags=["overtime"],
    dependencies=[Depends(deps.get_current_user)]
)


class OvertimeCreate(pydantic.BaseModel):
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    project: Optional[str] = None
    description: str = ""


def serialize_overtime(overtime: OvertimeRequest) -> dict:
    return {
        "id": overtime.id,
        "employee_id": overtime.employee_id,
        "employee_name": overtime.employee.display_name if overtime.employee else None,
        "business_unit": overtime.business_unit,
        "date": overtime.date.isoformat(),
        "start_time": overtime.start_time,
        "end_time": overtime.end_time,
        "hours": overtime.hours,
        "project": overtime.project,
        "description": overtime.description,
        "status": overtime.status,
        "approved_by_id": overtime.approved_by_id,
        "approved_at": overtime.approved_at.isoformat() if overtime.approved_at else None,
        "approval_message": overtime.approval_message,
        "rejected_by_id": overtime.rejected_by_id,
        "rejected_at": overtime.rejected_at.isoformat() if overtime.rejected_at else None,
        "rejection_reason": overtime.rejection_reason,
    }


def get_overtime_or_404(db: Session, overtime_id: int, user: User) -> OvertimeRequest:
    overtime = db.query(OvertimeRequest).filter(OvertimeRequest.id == overtime_id).first()
    if not overtime:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Overtime request not found")
    if user.role == Role.ADMIN.value:
        visible = overtime.business_unit == user.business_unit
    else:
        visible = overtime.employee_id == user.id
    if not visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Overtime request not found")
    return overtime


def _same_day_overtime(db: Session, employee_id: int, day: date, exclude_id: Optional[int] = None) -> List[OvertimeRequest]:
    query = db.query(OvertimeRequest).filter(
        OvertimeRequest.employee_id == employee_id,
        OvertimeRequest.date == day,
        OvertimeRequest.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(OvertimeRequest.id != exclude_id)
    return query.all()


def _close_admin_notifications(db: Session, overtime: OvertimeRequest, admin: User, now: datetime):
    db.query(AdminNotification).filter(
        AdminNotification.kind == "overtime_request",
        AdminNotification.related_id == overtime.id,
        AdminNotification.read_at == None,
    ).update({"read_at": now, "read_by_id": admin.id}, synchronize_session=False)


@router.get("/")
async def list_overtime(
    employee_id: Optional[int] = None,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    query = db.query(OvertimeRequest)
    if user.role == Role.ADMIN.value:
        query = query.filter(OvertimeRequest.business_unit == user.business_unit)
        if employee_id:
            query = query.filter(OvertimeRequest.employee_id == employee_id)
    else:
        query = query.filter(OvertimeRequest.employee_id == user.id)

    if status_filter:
        query = query.filter(OvertimeRequest.status == status_filter.value)

    rows = query.order_by(OvertimeRequest.date.desc(), OvertimeRequest.id.desc()).all()
    return [serialize_overtime(o) for o in rows]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_overtime(
    payload: OvertimeCreate,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee),
    today: date = Depends(deps.get_today)
):
    if not payload.date:
        raise InvalidDate("Date, start time, and end time are required")
    if not payload.start_time or not payload.end_time:
        raise MissingTime("Date, start time, and end time are required")

    hours = validate_overtime_request(
        payload.date, payload.start_time, payload.end_time, payload.description, today=today,
    )
    worked_on = to_date(payload.date)

    candidate = {"date": worked_on, "start_time": payload.start_time, "end_time": payload.end_time}
    if is_overtime_overlapping(_same_day_overtime(db, user.id, worked_on), candidate):
        raise OverlapConflict(SUBMISSION_OVERLAP_MESSAGE)

    overtime = OvertimeRequest(
        employee_id=user.id,
        business_unit=user.business_unit,
        date=worked_on,
        start_time=payload.start_time.strip(),
        end_time=payload.end_time.strip(),
        hours=hours,
        project=(payload.project or "").strip() or None,
        description=payload.description.strip(),
        status=RequestStatus.PENDING.value,
    )
    db.add(overtime)
    db.flush()

    notify_admins(
        db, user.business_unit, "overtime_request", overtime.id, user,
        f"{user.display_name} requested {hours} hours of overtime on {worked_on.isoformat()}.",
    )
    db.commit()
    db.refresh(overtime)

    log_activity(db, user, "SUBMIT", "OVERTIME", overtime.id, f"{worked_on.isoformat()} {hours}h")
    return serialize_overtime(overtime)


@router.post("/{overtime_id}/cancel")
async def cancel_overtime(
    overtime_id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee)
):
    overtime = get_overtime_or_404(db, overtime_id, user)
    cancel_request(overtime, kind="overtime")
    db.commit()

    log_activity(db, user, "CANCEL", "OVERTIME", overtime.id)
    return serialize_overtime(overtime)


@router.post("/{overtime_id}/approve")
async def approve_overtime(
    overtime_id: int,
    approval_message: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin),
    now: datetime = Depends(deps.get_now)
):
    overtime = get_overtime_or_404(db, overtime_id, user)

    if overtime.status == RequestStatus.PENDING.value and is_overtime_overlapping(
        _same_day_overtime(db, overtime.employee_id, overtime.date, exclude_id=overtime.id), overtime
    ):
        raise OverlapConflict(APPROVAL_OVERLAP_MESSAGE)

    approve_request(overtime, user.id, approval_message, now=now, kind="overtime")

    message = f"Your overtime request for {overtime.date.isoformat()} ({overtime.hours} hours) has been approved."
    if overtime.approval_message:
        message += f" Message: {overtime.approval_message}"
    notify_employee(db, overtime.employee, "overtime_approval", "Overtime Request Approved", message, overtime.id, user)
    _close_admin_notifications(db, overtime, user, now)
    db.commit()

    log_activity(db, user, "APPROVE", "OVERTIME", overtime.id)
    return serialize_overtime(overtime)


@router.post("/{overtime_id}/reject")
async def reject_overtime(
    overtime_id: int,
    rejection_reason: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin),
    now: datetime = Depends(deps.get_now)
):
    overtime = get_overtime_or_404(db, overtime_id, user)
    reject_request(overtime, user.id, rejection_reason, now=now, kind="overtime")

    notify_employee(
        db, overtime.employee, "overtime_approval", "Overtime Request Rejected",
        f"Your overtime request for {overtime.date.isoformat()} ({overtime.hours} hours) has been rejected. "
        f"Reason: {overtime.rejection_reason}",
        overtime.id, user,
    )
    _close_admin_notifications(db, overtime, user, now)
    db.commit()

    log_activity(db, user, "REJECT", "OVERTIME", overtime.id, overtime.rejection_reason)
    return serialize_overtime(overtime)
