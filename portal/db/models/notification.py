from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from portal.db.base_class import Base

class EmployeeNotification(Base):
    __tablename__ = "employee_notifications"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    type = Column(String(30), nullable=False) # leave_approval, overtime_approval, payroll
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Integer, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())
    read_at = Column(DateTime(timezone=True), nullable=True)

class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    kind = Column(String(30), nullable=False) # leave_request, overtime_request
    related_id = Column(Integer, nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    read_at = Column(DateTime(timezone=True), nullable=True)
    read_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
