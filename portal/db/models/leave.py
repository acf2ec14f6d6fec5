from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from portal.db.base_class import Base

class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    business_unit = Column(String(20), nullable=False, index=True)

    type = Column(String(30), nullable=False) # Annual, SickWithCertificate, SickWithoutCertificate
    unit = Column(String(10), nullable=False) # FullDay, HalfDay
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=True)
    start_time = Column(String(5), nullable=True) # HH:MM, half-day only
    end_time = Column(String(5), nullable=True)
    reason = Column(Text, nullable=False)
    certificate_url = Column(String(500), nullable=True)
    documents = Column(JSON, nullable=True) # [{file_name, file_url, uploaded_at}]

    status = Column(String(20), default="Pending", index=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approval_message = Column(Text, nullable=True)
    rejected_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id])
