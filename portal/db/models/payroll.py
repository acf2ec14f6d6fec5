from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from portal.db.base_class import Base

class Payroll(Base):
    __tablename__ = "payrolls"
    __table_args__ = (
        UniqueConstraint("employee_id", "period", name="uq_payroll_employee_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    period = Column(String(7), nullable=False, index=True) # YYYY-MM
    payroll_date = Column(Date, nullable=True)

    base_salary = Column(Float, nullable=False)
    allowances = Column(Float, default=0.0)
    deductions = Column(Float, default=0.0)
    gross_pay = Column(Float, nullable=False)
    net_pay = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)

    status = Column(String(20), default="Generated", index=True)

    # Employee side
    employee_signature = Column(Text, nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    employee_sign_ip = Column(String(64), nullable=True)
    employee_sign_user_agent = Column(String(255), nullable=True)
    employee_rejection_reason = Column(Text, nullable=True)
    employee_rejected_at = Column(DateTime(timezone=True), nullable=True)

    generated_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    updated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("User", foreign_keys=[employee_id])
