import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.db.models.activity import ActivityLog
from portal.db.models.user import User

logger = logging.getLogger(__name__)


def log_activity(
    db: Session,
    user: User,
    action: str,
    entity_type: str,
    entity_id: int = None,
    details: str = None
):
    """
    Records an activity in the audit log.

    :param db: Database session
    :param user: The User performing the action
    :param action: What happened (e.g. SUBMIT, APPROVE, SIGN)
    :param entity_type: Resource kind (e.g. LEAVE, PAYROLL)
    :param entity_id: ID of the resource
    :param details: Optional free text
    """
    try:
        db.add(ActivityLog(
            user_id=user.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        ))
        db.commit()
    except SQLAlchemyError:
        logger.warning("Could not record %s %s activity for user %s", action, entity_type, user.id, exc_info=True)
        db.rollback()
