from typing import List, Optional

from sqlalchemy.orm import Session

from portal.db.models.enums import Role
from portal.db.models.notification import EmployeeNotification, AdminNotification
from portal.db.models.user import User


def notify_employee(
    db: Session,
    employee: User,
    type: str,
    title: str,
    message: str,
    related_id: Optional[int] = None,
    created_by: Optional[User] = None,
) -> EmployeeNotification:
    notification = EmployeeNotification(
        employee_id=employee.id,
        business_unit=employee.business_unit,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        created_by_id=created_by.id if created_by else None,
    )
    db.add(notification)
    return notification


def notify_admins(db: Session, business_unit: str, kind: str, related_id: int, employee: User, message: str) -> AdminNotification:
    """One row per business unit; any admin of that unit can mark it read."""
    notification = AdminNotification(
        business_unit=business_unit,
        kind=kind,
        related_id=related_id,
        employee_id=employee.id,
        message=message,
    )
    db.add(notification)
    return notification


def admin_emails(db: Session, business_unit: str) -> List[str]:
    admins = db.query(User).filter(
        User.role == Role.ADMIN.value,
        User.business_unit == business_unit,
        User.is_active == True,
    ).all()
    return [admin.email for admin in admins if admin.email]
