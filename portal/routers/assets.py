from datetime import date
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from portal.db.models.assets import AssetDate, Vehicle, CompanyRegistration, RentalMachine, ITEquipment
from portal.db.models.enums import AssetCategory, AssetDateStatus
from portal.db.models.user import User
from portal.routers import deps
from portal.utils.activity import log_activity
from portal.utils.asset_dates import (
    sync_vehicle_dates, sync_registration_dates, sync_rental_machine_dates, sync_it_equipment_dates,
)

router = APIRouter(
    prefix="/assets",
    tags=["assets"],
    dependencies=[Depends(deps.require_admin)]
)


class VehicleIn(pydantic.BaseModel):
    name: str
    plate_number: str
    vehicle_type: Optional[str] = None
    status: str = "Active"
    registration_number: Optional[str] = None
    registration_expiry_date: Optional[date] = None
    insurance_provider: Optional[str] = None
    insurance_expiry_date: Optional[date] = None
    next_service_date: Optional[date] = None
    notes: Optional[str] = None


class RegistrationIn(pydantic.BaseModel):
    name: str
    registration_type: str = "Other"
    registration_number: Optional[str] = None
    issuing_authority: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: date
    notes: Optional[str] = None


class RentalMachineIn(pydantic.BaseModel):
    customer_name: str
    machine_model: str
    serial_number: Optional[str] = None
    rental_start_date: Optional[date] = None
    rental_end_date: Optional[date] = None
    monthly_rent: Optional[float] = None
    status: str = "Active"
    notes: Optional[str] = None


class ITEquipmentIn(pydantic.BaseModel):
    name: str
    category: Optional[str] = None
    serial_number: Optional[str] = None
    warranty_end_date: Optional[date] = None
    amc_end_date: Optional[date] = None
    status: str = "Active"
    notes: Optional[str] = None


# route segment -> (model, date sync, category key)
ASSET_KINDS = {
    "vehicles": (Vehicle, sync_vehicle_dates, AssetCategory.VEHICLES.value),
    "registrations": (CompanyRegistration, sync_registration_dates, AssetCategory.REGISTRATIONS.value),
    "rental-machines": (RentalMachine, sync_rental_machine_dates, AssetCategory.RENTAL_MACHINES.value),
    "it-equipment": (ITEquipment, sync_it_equipment_dates, AssetCategory.IT_EQUIPMENT.value),
}


def serialize_asset(obj, fields) -> dict:
    data = {"id": obj.id, "business_unit": obj.business_unit}
    for name in fields:
        value = getattr(obj, name)
        data[name] = value.isoformat() if isinstance(value, date) else value
    return data


def serialize_asset_date(row: AssetDate) -> dict:
    return {
        "id": row.id,
        "category_key": row.category_key,
        "asset_id": row.asset_id,
        "business_unit": row.business_unit,
        "date_type": row.date_type,
        "date_value": row.date_value.isoformat(),
        "status": row.status,
        "resolved_at": row.resolved_at.isoformat() if row.resolved_at else None,
    }


def _save_asset(db: Session, user: User, kind: str, payload: pydantic.BaseModel, today: date, asset_id: Optional[int] = None):
    model, sync, category_key = ASSET_KINDS[kind]
    data = payload.model_dump()

    if asset_id is None:
        obj = model(business_unit=user.business_unit, **data)
        db.add(obj)
        action = "CREATE"
    else:
        obj = db.query(model).filter(model.id == asset_id, model.business_unit == user.business_unit).first()
        if obj is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found")
        for name, value in data.items():
            setattr(obj, name, value)
        action = "UPDATE"

    db.flush()
    sync(db, obj, today=today)
    db.commit()
    db.refresh(obj)

    log_activity(db, user, action, "ASSET", obj.id, category_key)
    return serialize_asset(obj, data.keys())


@router.post("/vehicles", status_code=status.HTTP_201_CREATED)
async def create_vehicle(payload: VehicleIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "vehicles", payload, today)


@router.put("/vehicles/{asset_id}")
async def update_vehicle(asset_id: int, payload: VehicleIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "vehicles", payload, today, asset_id)


@router.post("/registrations", status_code=status.HTTP_201_CREATED)
async def create_registration(payload: RegistrationIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "registrations", payload, today)


@router.put("/registrations/{asset_id}")
async def update_registration(asset_id: int, payload: RegistrationIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "registrations", payload, today, asset_id)


@router.post("/rental-machines", status_code=status.HTTP_201_CREATED)
async def create_rental_machine(payload: RentalMachineIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "rental-machines", payload, today)


@router.put("/rental-machines/{asset_id}")
async def update_rental_machine(asset_id: int, payload: RentalMachineIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "rental-machines", payload, today, asset_id)


@router.post("/it-equipment", status_code=status.HTTP_201_CREATED)
async def create_it_equipment(payload: ITEquipmentIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "it-equipment", payload, today)


@router.put("/it-equipment/{asset_id}")
async def update_it_equipment(asset_id: int, payload: ITEquipmentIn, db: Session = Depends(deps.get_db), user: User = Depends(deps.require_admin), today: date = Depends(deps.get_today)):
    return _save_asset(db, user, "it-equipment", payload, today, asset_id)


@router.get("/dates")
async def list_asset_dates(
    category_key: Optional[AssetCategory] = None,
    status_filter: Optional[AssetDateStatus] = Query(None, alias="status"),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.require_admin)
):
    query = db.query(AssetDate).filter(AssetDate.business_unit == user.business_unit)
    if category_key:
        query = query.filter(AssetDate.category_key == category_key.value)
    if status_filter:
        query = query.filter(AssetDate.status == status_filter.value)
    else:
        query = query.filter(AssetDate.status != AssetDateStatus.RESOLVED.value)
    return [serialize_asset_date(r) for r in query.order_by(AssetDate.date_value).all()]
