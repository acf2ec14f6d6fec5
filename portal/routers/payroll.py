from datetime import datetime
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Body, Query, Request
from sqlalchemy.orm import Session

from portal.core.errors import InvalidTransition, ValidationFailed
from portal.db.models.enums import PayrollStatus, Role
from portal.db.models.payroll import Payroll
from portal.db.models.user import User
from portal.routers import deps
from portal.utils.activity import log_activity
from portal.utils.notifications import notify_employee
from portal.utils.payroll import (
    admin_set_status, apply_monetary_update, new_payroll, reject_payroll, sign_payroll,
)

router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
    dependencies=[Depends(deps.get_current_user)]
)

DELETABLE_STATUSES = (PayrollStatus.GENERATED.value, PayrollStatus.REJECTED.value)


class PayrollCreate(pydantic.BaseModel):
    employee_id: int
    period: str
    base_salary: float
    allowances: float = 0.0
    deductions: float = 0.0
    notes: Optional[str] = None
    payroll_date: Optional[str] = None


class PayrollUpdate(pydantic.BaseModel):
    base_salary: Optional[float] = None
    allowances: Optional[float] = None
    deductions: Optional[float] = None
    notes: Optional[str] = None
    payroll_date: Optional[str] = None
    status: Optional[PayrollStatus] = None


class SignPayload(pydantic.BaseModel):
    signature: str = ""
    confirmed: bool = False


def serialize_payroll(payroll: Payroll) -> dict:
    return {
        "id": payroll.id,
        "employee_id": payroll.employee_id,
        "employee_name": payroll.employee.display_name if payroll.employee else None,
        "business_unit": payroll.business_unit,
        "period": payroll.period,
        "payroll_date": payroll.payroll_date.isoformat() if payroll.payroll_date else None,
        "base_salary": payroll.base_salary,
        "allowances": payroll.allowances,
        "deductions": payroll.deductions,
        "gross_pay": payroll.gross_pay,
        "net_pay": payroll.net_pay,
        "status": payroll.status,
        "notes": payroll.notes,
        "employee_signature": payroll.employee_signature,
        "signed_at": payroll.signed_at.isoformat() if payroll.signed_at else None,
        "employee_rejection_reason": payroll.employee_rejection_reason,
        "employee_rejected_at": payroll.employee_rejected_at.isoformat() if payroll.employee_rejected_at else None,
        "generated_by_id": payroll.generated_by_id,
        "updated_by_id": payroll.updated_by_id,
        "completed_at": payroll.completed_at.isoformat() if payroll.completed_at else None,
    }


def get_payroll_or_404(db: Session, payroll_id: int, user: User) -> Payroll:
    payroll = db.query(Payroll).filter(Payroll.id == payroll_id).first()
    if payroll is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payroll not found")
    if user.role == Role.ADMIN.value:
        visible = payroll.business_unit == user.business_unit
    else:
        visible = payroll.employee_id == user.id
    if not visible:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payroll not found")
    return payroll


@router.get("/")
async def list_payrolls(
    employee_id: Optional[int] = None,
    period: Optional[str] = None,
    status_filter: Optional[PayrollStatus] = Query(None, alias="status"),
    month: Optional[int] = None,
    year: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    query = db.query(Payroll)
    if user.role == Role.ADMIN.value:
        query = query.filter(Payroll.business_unit == user.business_unit)
        if employee_id:
            query = query.filter(Payroll.employee_id == employee_id)
    else:
        query = query.filter(Payroll.employee_id == user.id)

    if period:
        query = query.filter(Payroll.period == period)
    elif month and year:
        query = query.filter(Payroll.period == f"{year:04d}-{month:02d}")

    if status_filter:
        query = query.filter(Payroll.status == status_filter.value)

    payrolls = query.order_by(Payroll.period.desc(), Payroll.id.desc()).all()
    return [serialize_payroll(p) for p in payrolls]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_payroll(
    payload: PayrollCreate,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin)
):
    employee = db.query(User).filter(
        User.id == payload.employee_id,
        User.business_unit == user.business_unit,
        User.role == Role.EMPLOYEE.value,
    ).first()
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    payroll = new_payroll(
        employee,
        payload.period,
        payload.base_salary,
        generated_by_id=user.id,
        allowances=payload.allowances,
        deductions=payload.deductions,
        notes=payload.notes,
        payroll_date=payload.payroll_date,
    )

    duplicate = db.query(Payroll).filter(
        Payroll.employee_id == employee.id,
        Payroll.period == payroll.period,
    ).first()
    if duplicate:
        raise ValidationFailed(f"Payroll for period {payroll.period} already exists for this employee")

    db.add(payroll)
    db.flush()
    notify_employee(
        db, employee, "payroll", "Payroll Created",
        f"Your payroll for period {payroll.period} has been created. Net Pay: {payroll.net_pay:.2f}",
        payroll.id, user,
    )
    db.commit()
    db.refresh(payroll)

    log_activity(db, user, "CREATE", "PAYROLL", payroll.id, f"{employee.username} {payroll.period}")
    return serialize_payroll(payroll)


@router.patch("/{payroll_id}")
async def update_payroll(
    payroll_id: int,
    payload: PayrollUpdate,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin),
    now: datetime = Depends(deps.get_now)
):
    """
    Monetary fields can be corrected in any status; a status change goes
    through the transition table. Nothing is saved unless both succeed.
    """
    payroll = get_payroll_or_404(db, payroll_id, user)
    changes = payload.model_dump(exclude_unset=True)
    requested_status = changes.pop("status", None)
    previous_status = payroll.status

    if changes:
        apply_monetary_update(payroll, **changes)

    if requested_status is not None:
        admin_set_status(payroll, requested_status, now=now)

    payroll.updated_by_id = user.id

    if payroll.status == PayrollStatus.PENDING_SIGNATURE.value and previous_status != payroll.status:
        notify_employee(
            db, payroll.employee, "payroll", "Payroll Ready for Signature",
            f"Your payroll for period {payroll.period} is ready for your review and signature.",
            payroll.id, user,
        )
    db.commit()
    db.refresh(payroll)

    log_activity(db, user, "UPDATE", "PAYROLL", payroll.id, f"{previous_status} -> {payroll.status}")
    return serialize_payroll(payroll)


@router.delete("/{payroll_id}")
async def delete_payroll(
    payroll_id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin)
):
    payroll = get_payroll_or_404(db, payroll_id, user)
    if payroll.status not in DELETABLE_STATUSES:
        raise InvalidTransition(f"Cannot delete a payroll in status {payroll.status}")

    db.delete(payroll)
    db.commit()

    log_activity(db, user, "DELETE", "PAYROLL", payroll_id)
    return {"success": True, "message": "Payroll deleted successfully"}


@router.put("/{payroll_id}/sign")
async def sign(
    payroll_id: int,
    payload: SignPayload,
    request: Request,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee),
    now: datetime = Depends(deps.get_now)
):
    payroll = get_payroll_or_404(db, payroll_id, user)

    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)

    sign_payroll(
        payroll,
        payload.signature,
        now=now,
        ip=ip,
        user_agent=request.headers.get("user-agent"),
        confirmed=payload.confirmed,
    )
    db.commit()
    db.refresh(payroll)

    log_activity(db, user, "SIGN", "PAYROLL", payroll.id)
    return serialize_payroll(payroll)


@router.post("/{payroll_id}/reject")
async def reject(
    payroll_id: int,
    reason: Optional[str] = Body(None, embed=True),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_employee),
    now: datetime = Depends(deps.get_now)
):
    payroll = get_payroll_or_404(db, payroll_id, user)
    reject_payroll(payroll, reason, now=now)
    db.commit()
    db.refresh(payroll)

    log_activity(db, user, "REJECT", "PAYROLL", payroll.id, payroll.employee_rejection_reason)
    return serialize_payroll(payroll)
