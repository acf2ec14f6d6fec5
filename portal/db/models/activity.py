from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from portal.db.base_class import Base

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    action = Column(String(50)) # SUBMIT, APPROVE, REJECT, CANCEL, SIGN, ...
    entity_type = Column(String(50)) # LEAVE, OVERTIME, PAYROLL, ASSET
    entity_id = Column(Integer, nullable=True) # ID of the affected object
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", backref="activities")
