import logging
import secrets
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Header
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.routers import deps
from portal.utils.asset_dates import refresh_asset_date_statuses
from portal.utils.email import send_email
from portal.utils.reminders import DEFAULT_REMINDER_POLICIES, run_asset_reminders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])

def get_sender():
    return send_email

def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)):
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")

@router.post("/asset-reminders", dependencies=[Depends(verify_cron_secret)])
async def asset_reminders(
    db: Session = Depends(deps.get_db),
    today: date = Depends(deps.get_today),
    send = Depends(get_sender)
):
    flipped = refresh_asset_date_statuses(db, today=today)
    summary = await run_asset_reminders(db, send, today=today, policies=DEFAULT_REMINDER_POLICIES)
    return {"ok": True, "marked_overdue": flipped, **summary.as_dict()}
