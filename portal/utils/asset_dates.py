import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from portal.db.models.assets import AssetDate, Vehicle, CompanyRegistration, RentalMachine, ITEquipment
from portal.db.models.enums import AssetCategory, AssetDateStatus

logger = logging.getLogger(__name__)


def compute_date_status(date_value: date, today: date) -> str:
    if date_value < today:
        return AssetDateStatus.OVERDUE.value
    return AssetDateStatus.UPCOMING.value


def upsert_asset_date(
    db: Session,
    category_key: str,
    asset_id: int,
    business_unit: Optional[str],
    date_type: str,
    date_value: Optional[date],
    *,
    today: date,
) -> Optional[AssetDate]:
    """
    Keeps the tracked row for (category, asset, date type) in line with the
    asset.

    A changed date (a renewal) resolves the old row and tracks the new date
    in a fresh row, so the reminder log of the old cycle stays untouched and
    the new cycle gets its own reminders. Clearing the date resolves the row.
    """
    db.flush()
    rows = db.query(AssetDate).filter(
        AssetDate.category_key == category_key,
        AssetDate.asset_id == asset_id,
        AssetDate.date_type == date_type,
    ).all()

    current = None
    for row in rows:
        if date_value is not None and row.date_value == date_value:
            current = row
        elif row.status != AssetDateStatus.RESOLVED.value:
            row.status = AssetDateStatus.RESOLVED.value
            row.resolved_at = datetime.now(timezone.utc)

    if date_value is None:
        return None

    if current is None:
        current = AssetDate(category_key=category_key, asset_id=asset_id, date_type=date_type, date_value=date_value)
        db.add(current)

    current.business_unit = business_unit
    current.status = compute_date_status(date_value, today)
    current.resolved_at = None
    return current


def sync_vehicle_dates(db: Session, vehicle: Vehicle, *, today: date):
    for date_type, value in (
        ("registration_expiry", vehicle.registration_expiry_date),
        ("insurance_expiry", vehicle.insurance_expiry_date),
        ("next_service_date", vehicle.next_service_date),
    ):
        upsert_asset_date(db, AssetCategory.VEHICLES.value, vehicle.id, vehicle.business_unit, date_type, value, today=today)


def sync_registration_dates(db: Session, registration: CompanyRegistration, *, today: date):
    upsert_asset_date(
        db, AssetCategory.REGISTRATIONS.value, registration.id, registration.business_unit,
        "registration_expiry", registration.expiry_date, today=today,
    )


def sync_rental_machine_dates(db: Session, machine: RentalMachine, *, today: date):
    upsert_asset_date(
        db, AssetCategory.RENTAL_MACHINES.value, machine.id, machine.business_unit,
        "rental_end", machine.rental_end_date, today=today,
    )


def sync_it_equipment_dates(db: Session, equipment: ITEquipment, *, today: date):
    for date_type, value in (
        ("warranty_end", equipment.warranty_end_date),
        ("amc_end", equipment.amc_end_date),
    ):
        upsert_asset_date(db, AssetCategory.IT_EQUIPMENT.value, equipment.id, equipment.business_unit, date_type, value, today=today)


def refresh_asset_date_statuses(db: Session, *, today: date) -> int:
    """Flips upcoming dates that have passed to overdue. Returns how many changed."""
    count = db.query(AssetDate).filter(
        AssetDate.status == AssetDateStatus.UPCOMING.value,
        AssetDate.date_value < today,
    ).update({"status": AssetDateStatus.OVERDUE.value}, synchronize_session=False)
    db.commit()
    if count:
        logger.info("Marked %s asset date(s) overdue", count)
    return count
