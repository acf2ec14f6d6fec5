"""
Runs the asset reminder scheduler once against the configured database.

Meant for a daily cron entry, e.g.:

    0 7 * * * cd /srv/portal && python run_reminders.py
"""
import asyncio
import logging
import sys
import os
from datetime import date

sys.path.append(os.getcwd())

from portal.core.config import settings
from portal.db.session import SessionLocal
from portal.utils.asset_dates import refresh_asset_date_statuses
from portal.utils.email import send_email
from portal.utils.reminders import DEFAULT_REMINDER_POLICIES, run_asset_reminders

def main():
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db = SessionLocal()
    try:
        today = date.today()
        refresh_asset_date_statuses(db, today=today)
        summary = asyncio.run(
            run_asset_reminders(db, send_email, today=today, policies=DEFAULT_REMINDER_POLICIES)
        )
    finally:
        db.close()

    print(f"Reminders sent: {summary.sent}, skipped: {summary.skipped}, failed: {summary.failed}")

if __name__ == "__main__":
    main()
