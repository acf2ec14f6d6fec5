from datetime import datetime
from typing import Optional

from portal.core.errors import InvalidTransition, ValidationFailed
from portal.db.models.enums import RequestStatus

MAX_TEXT_LENGTH = 2000


def _require_pending(record, action: str, kind: str):
    if record.status != RequestStatus.PENDING.value:
        raise InvalidTransition(f"Only pending {kind} requests can be {action}")


def cancel_request(record, kind: str = "leave"):
    _require_pending(record, "cancelled", kind)
    record.status = RequestStatus.CANCELLED.value
    return record


def approve_request(record, admin_id: int, message: Optional[str] = None, *, now: datetime, kind: str = "leave"):
    """Approves a pending request, clearing any rejection metadata."""
    _require_pending(record, "approved or rejected", kind)

    text = (message or "").strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationFailed("Approval message is too long")

    record.status = RequestStatus.APPROVED.value
    record.approved_by_id = admin_id
    record.approved_at = now
    record.approval_message = text or None
    record.rejected_by_id = None
    record.rejected_at = None
    record.rejection_reason = None
    return record


def reject_request(record, admin_id: int, reason: Optional[str], *, now: datetime, kind: str = "leave"):
    """Rejects a pending request, clearing any approval metadata."""
    _require_pending(record, "approved or rejected", kind)

    text = (reason or "").strip()
    if not text:
        raise ValidationFailed(f"Rejection reason is required when rejecting a {kind} request")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationFailed("Rejection reason is too long")

    record.status = RequestStatus.REJECTED.value
    record.rejected_by_id = admin_id
    record.rejected_at = now
    record.rejection_reason = text
    record.approved_by_id = None
    record.approved_at = None
    record.approval_message = None
    return record
