from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from portal.db.models.enums import Role
from portal.db.models.notification import EmployeeNotification, AdminNotification
from portal.db.models.user import User
from portal.routers import deps

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(deps.get_current_user)]
)

def serialize_notification(n) -> dict:
    if isinstance(n, AdminNotification):
        return {
            "id": n.id,
            "kind": n.kind,
            "related_id": n.related_id,
            "employee_id": n.employee_id,
            "message": n.message,
            "created_at": n.created_at.isoformat() if n.created_at else None,
            "read_at": n.read_at.isoformat() if n.read_at else None,
        }
    return {
        "id": n.id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "related_id": n.related_id,
        "sent_at": n.sent_at.isoformat() if n.sent_at else None,
        "read_at": n.read_at.isoformat() if n.read_at else None,
    }

def _query(db: Session, user: User):
    # Admins see their unit's request notices, employees their own inbox
    if user.role == Role.ADMIN.value:
        return db.query(AdminNotification).filter(AdminNotification.business_unit == user.business_unit), AdminNotification
    return db.query(EmployeeNotification).filter(EmployeeNotification.employee_id == user.id), EmployeeNotification

@router.get("/")
async def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    query, model = _query(db, user)
    if unread_only:
        query = query.filter(model.read_at == None)
    return [serialize_notification(n) for n in query.order_by(model.id.desc()).all()]

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user),
    now: datetime = Depends(deps.get_now)
):
    query, model = _query(db, user)
    notification = query.filter(model.id == notification_id).first()
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")

    if notification.read_at is None:
        notification.read_at = now
        if isinstance(notification, AdminNotification):
            notification.read_by_id = user.id
        db.commit()
        db.refresh(notification)

    return serialize_notification(notification)
