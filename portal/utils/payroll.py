"""
Payroll status lifecycle and pay recomputation.

    Generated -> Pending Signature -> Signed -> Completed
                        |
                        +-> Rejected -> Pending Signature | Generated

Admins move records between Generated, Pending Signature and Completed;
Signed and Rejected are only reached through the employee's own sign/reject
actions. Same-state requests are accepted as no-ops so retries are safe.
"""
import calendar
import re
from datetime import date, datetime
from types import MappingProxyType
from typing import Optional, Tuple

from portal.core.errors import InvalidTransition, NegativeNetPay, ValidationFailed, InvalidDate
from portal.db.models.enums import PayrollStatus
from portal.db.models.payroll import Payroll
from portal.utils.time_range import to_date

S = PayrollStatus

PAYROLL_TRANSITIONS = MappingProxyType({
    S.GENERATED.value: frozenset({S.GENERATED.value, S.PENDING_SIGNATURE.value}),
    S.PENDING_SIGNATURE.value: frozenset({S.PENDING_SIGNATURE.value, S.SIGNED.value, S.REJECTED.value}),
    S.REJECTED.value: frozenset({S.REJECTED.value, S.PENDING_SIGNATURE.value, S.GENERATED.value}),
    S.SIGNED.value: frozenset({S.SIGNED.value, S.COMPLETED.value}),
    S.COMPLETED.value: frozenset({S.COMPLETED.value}),
})

EMPLOYEE_ONLY_TARGETS = frozenset({S.SIGNED.value, S.REJECTED.value})

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")
_UNSET = object()


def can_transition(current: str, requested: str) -> bool:
    return requested in PAYROLL_TRANSITIONS.get(current, frozenset())


def transition_status(payroll: Payroll, to: str, *, now: datetime) -> Payroll:
    """Moves the payroll to `to`, raising InvalidTransition when the table forbids it."""
    current = payroll.status
    requested = to.value if isinstance(to, PayrollStatus) else to

    if not can_transition(current, requested):
        raise InvalidTransition(f"Cannot change payroll status from {current} to {requested}")

    if requested == current:
        return payroll

    if requested == S.COMPLETED.value:
        if current != S.SIGNED.value:
            raise InvalidTransition("Only signed payrolls can be marked as completed")
        payroll.completed_at = now

    payroll.status = requested
    return payroll


def admin_set_status(payroll: Payroll, to: str, *, now: datetime) -> Payroll:
    to = to.value if isinstance(to, PayrollStatus) else to
    if to in EMPLOYEE_ONLY_TARGETS and to != payroll.status:
        raise InvalidTransition(f"Cannot change payroll status from {payroll.status} to {to}")
    return transition_status(payroll, to, now=now)


def compute_pay(base_salary: float, allowances: float = 0.0, deductions: float = 0.0) -> Tuple[float, float]:
    gross = round(base_salary + (allowances or 0.0), 2)
    net = round(gross - (deductions or 0.0), 2)
    if net < 0:
        raise NegativeNetPay()
    return gross, net


def _check_amount(value, name: str, allow_zero: bool) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationFailed(f"{name} must be a number")
    if allow_zero and value < 0:
        raise ValidationFailed(f"{name} cannot be negative")
    if not allow_zero and value <= 0:
        raise ValidationFailed(f"{name} must be a positive number")
    return float(value)


def apply_monetary_update(
    payroll: Payroll,
    *,
    base_salary=_UNSET,
    allowances=_UNSET,
    deductions=_UNSET,
    notes=_UNSET,
    payroll_date=_UNSET,
) -> Payroll:
    """
    Edits pay fields in any status and recomputes gross/net pay.

    Everything is validated before the record is touched, so a rejected
    update leaves the payroll exactly as it was.
    """
    new_base = payroll.base_salary if base_salary is _UNSET else _check_amount(base_salary, "Base salary", False)
    new_allowances = payroll.allowances or 0.0
    if allowances is not _UNSET:
        new_allowances = _check_amount(allowances, "Allowances", True)
    new_deductions = payroll.deductions or 0.0
    if deductions is not _UNSET:
        new_deductions = _check_amount(deductions, "Deductions", True)

    new_payroll_date = payroll.payroll_date
    if payroll_date is not _UNSET:
        try:
            new_payroll_date = to_date(payroll_date)
        except ValueError:
            raise InvalidDate("Invalid payrollDate. Expected ISO date string.")

    gross, net = compute_pay(new_base, new_allowances, new_deductions)

    payroll.base_salary = new_base
    payroll.allowances = new_allowances
    payroll.deductions = new_deductions
    payroll.gross_pay = gross
    payroll.net_pay = net
    payroll.payroll_date = new_payroll_date
    if notes is not _UNSET:
        payroll.notes = notes or None
    return payroll


def sign_payroll(
    payroll: Payroll,
    signature: str,
    *,
    now: datetime,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    confirmed: bool = True,
) -> Payroll:
    if not signature:
        raise ValidationFailed("Signature is required")
    if payroll.status in (S.SIGNED.value, S.COMPLETED.value):
        raise InvalidTransition("Payroll has already been signed")
    if payroll.status == S.REJECTED.value:
        raise InvalidTransition("Rejected payrolls cannot be signed")
    if payroll.status != S.PENDING_SIGNATURE.value:
        raise InvalidTransition("Only payrolls pending your signature can be signed")
    if not confirmed:
        raise ValidationFailed("You must confirm that the payroll details are correct before signing")

    transition_status(payroll, S.SIGNED.value, now=now)
    payroll.employee_signature = signature
    payroll.signed_at = now
    if ip:
        payroll.employee_sign_ip = ip
    if user_agent:
        payroll.employee_sign_user_agent = user_agent
    return payroll


def reject_payroll(payroll: Payroll, reason: Optional[str], *, now: datetime) -> Payroll:
    text = (reason or "").strip()
    if not text:
        raise ValidationFailed("Rejection reason is required")
    if payroll.status in (S.SIGNED.value, S.COMPLETED.value):
        raise InvalidTransition("Signed or completed payrolls cannot be rejected")
    if payroll.status != S.PENDING_SIGNATURE.value:
        raise InvalidTransition("Only payrolls pending your signature can be rejected")

    transition_status(payroll, S.REJECTED.value, now=now)
    payroll.employee_rejection_reason = text
    payroll.employee_rejected_at = now
    return payroll


def validate_period(period: str) -> str:
    match = _PERIOD_RE.match(period or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValidationFailed("Period must be in format YYYY-MM")
    return period


def payroll_date_for_period(day_of_month: int, period: str) -> date:
    """
    Pay date for `period` on `day_of_month`, clamped to the month's last day
    (day 31 in February gives the 28th/29th).
    """
    match = _PERIOD_RE.match(period or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise InvalidDate("Invalid period format. Expected YYYY-MM.")
    year, month = int(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, max(1, min(day_of_month, last_day)))


def new_payroll(
    employee,
    period: str,
    base_salary,
    *,
    generated_by_id: int,
    allowances=0.0,
    deductions=0.0,
    notes: Optional[str] = None,
    payroll_date=None,
) -> Payroll:
    """Builds a Generated payroll; the pay date defaults from the employee's payroll day."""
    validate_period(period)
    base = _check_amount(base_salary, "Base salary", False)
    allowances = _check_amount(allowances or 0.0, "Allowances", True)
    deductions = _check_amount(deductions or 0.0, "Deductions", True)
    gross, net = compute_pay(base, allowances, deductions)

    if payroll_date:
        try:
            pay_date = to_date(payroll_date)
        except ValueError:
            raise InvalidDate("Invalid payrollDate. Expected ISO date string.")
    elif employee.payroll_day:
        pay_date = payroll_date_for_period(employee.payroll_day, period)
    else:
        pay_date = None

    return Payroll(
        employee_id=employee.id,
        business_unit=employee.business_unit,
        period=period,
        payroll_date=pay_date,
        base_salary=base,
        allowances=allowances,
        deductions=deductions,
        gross_pay=gross,
        net_pay=net,
        notes=notes or None,
        status=S.GENERATED.value,
        generated_by_id=generated_by_id,
    )
