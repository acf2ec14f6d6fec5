from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey, Date, DateTime, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from portal.db.base_class import Base

class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    plate_number = Column(String(30), nullable=False, index=True)
    vehicle_type = Column(String(30), nullable=True) # Car, Van, Truck, Forklift, Other
    status = Column(String(30), default="Active")

    registration_number = Column(String(50), nullable=True)
    registration_expiry_date = Column(Date, nullable=True)
    insurance_provider = Column(String(100), nullable=True)
    insurance_expiry_date = Column(Date, nullable=True)
    next_service_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class CompanyRegistration(Base):
    __tablename__ = "company_registrations"

    id = Column(Integer, primary_key=True, index=True)
    business_unit = Column(String(20), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    registration_type = Column(String(50), default="Other") # Trade License, VAT Certificate, ...
    registration_number = Column(String(50), nullable=True)
    issuing_authority = Column(String(100), nullable=True)
    issue_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=False)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class RentalMachine(Base):
    __tablename__ = "rental_machines"

    id = Column(Integer, primary_key=True, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    customer_name = Column(String(100), nullable=False)
    machine_model = Column(String(100), nullable=False)
    serial_number = Column(String(50), nullable=True)
    rental_start_date = Column(Date, nullable=True)
    rental_end_date = Column(Date, nullable=True)
    monthly_rent = Column(Float, nullable=True)
    status = Column(String(30), default="Active")

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class ITEquipment(Base):
    __tablename__ = "it_equipment"

    id = Column(Integer, primary_key=True, index=True)
    business_unit = Column(String(20), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(30), nullable=True) # Printer, Laptop, Server, Network Device, Other
    serial_number = Column(String(50), nullable=True)
    warranty_end_date = Column(Date, nullable=True)
    amc_end_date = Column(Date, nullable=True)
    status = Column(String(30), default="Active")

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

class AssetDate(Base):
    """A tracked expiry/renewal date derived from an asset's own date fields."""
    __tablename__ = "asset_dates"
    __table_args__ = (
        UniqueConstraint("category_key", "asset_id", "date_type", "date_value", name="uq_asset_date_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    category_key = Column(String(30), nullable=False, index=True)
    asset_id = Column(Integer, nullable=False, index=True)
    business_unit = Column(String(20), nullable=True, index=True)
    date_type = Column(String(50), nullable=False) # registration_expiry, insurance_expiry, rental_end, ...
    date_value = Column(Date, nullable=False, index=True)
    status = Column(String(20), default="upcoming", index=True) # upcoming, overdue, resolved
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    reminders = relationship("AssetReminder", back_populates="asset_date", cascade="all, delete-orphan")

class AssetReminder(Base):
    """Append-only log of reminders sent; one row per (asset date, offset)."""
    __tablename__ = "asset_reminders"
    __table_args__ = (
        UniqueConstraint("asset_date_id", "reminder_offset_days", name="uq_asset_reminder_offset"),
    )

    id = Column(Integer, primary_key=True, index=True)
    asset_date_id = Column(Integer, ForeignKey("asset_dates.id"), nullable=False, index=True)
    # positive = days before due, negative = days overdue
    reminder_offset_days = Column(Integer, nullable=False)
    sent_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    sent_to = Column(JSON, default=list)
    channel = Column(String(20), default="email")
    is_overdue_escalation = Column(Boolean, default=False)

    asset_date = relationship("AssetDate", back_populates="reminders")
