"""
Asset-date reminder scheduler.

Each run walks the configured (category, date type) policies. A reminder
fires only when the days left until the date exactly match one of the
policy's offsets, and overdue dates are escalated every N days. The pair
(asset date, offset) is claimed by inserting the reminder row under its
unique constraint before anything is sent, so two concurrent runs can never
both notify for the same slot.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.db.models.assets import AssetDate, AssetReminder
from portal.db.models.enums import AssetCategory, AssetDateStatus
from portal.utils.notifications import admin_emails

logger = logging.getLogger(__name__)

BATCH_LIMIT = 2000
TEMPLATE_NAME = "asset_reminder.html"

Sender = Callable[[str, str, str, dict], Awaitable[None]]


@dataclass(frozen=True)
class ReminderPolicy:
    category_key: str
    date_type: str
    offsets: Tuple[int, ...]
    subject: str
    overdue_escalation_every_days: Optional[int] = None

    @property
    def horizon_days(self) -> int:
        return max(self.offsets, default=0)


DEFAULT_REMINDER_POLICIES: Tuple[ReminderPolicy, ...] = (
    ReminderPolicy(
        AssetCategory.VEHICLES.value, "registration_expiry", (60, 30, 7, 2),
        "Vehicle Registration Expiry Reminder", overdue_escalation_every_days=1,
    ),
    ReminderPolicy(
        AssetCategory.VEHICLES.value, "insurance_expiry", (45, 15, 3, 2),
        "Vehicle Insurance Expiry Reminder", overdue_escalation_every_days=1,
    ),
    ReminderPolicy(
        AssetCategory.VEHICLES.value, "next_service_date", (14, 3, 2),
        "Vehicle Service Due Reminder",
    ),
    ReminderPolicy(
        AssetCategory.REGISTRATIONS.value, "registration_expiry", (90, 60, 30, 15, 7, 2),
        "Company Registration / License Expiry Reminder", overdue_escalation_every_days=3,
    ),
    ReminderPolicy(
        AssetCategory.RENTAL_MACHINES.value, "rental_end", (5,),
        "Rental Machine End Date Reminder", overdue_escalation_every_days=1,
    ),
)


@dataclass
class ReminderRunSummary:
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return {"sent": self.sent, "skipped": self.skipped, "failed": self.failed}


def claim_reminder(db: Session, asset_date: AssetDate, offset_days: int, *, is_overdue_escalation: bool = False) -> Optional[AssetReminder]:
    """
    Inserts the reminder row for (asset_date, offset_days) and commits it.

    Returns None when the row already exists, i.e. the slot was already sent
    or is being sent by another run.
    """
    reminder = AssetReminder(
        asset_date_id=asset_date.id,
        reminder_offset_days=offset_days,
        is_overdue_escalation=is_overdue_escalation,
        sent_to=[],
    )
    db.add(reminder)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    return reminder


def release_reminder(db: Session, reminder: AssetReminder):
    db.delete(reminder)
    db.commit()


def due_offset(policy: ReminderPolicy, asset_date: AssetDate, today: date) -> Optional[int]:
    """The dedup offset to fire today for `asset_date`, or None when nothing is due."""
    if asset_date.status == AssetDateStatus.UPCOMING.value:
        days_until = (asset_date.date_value - today).days
        return days_until if days_until in policy.offsets else None

    if asset_date.status == AssetDateStatus.OVERDUE.value and policy.overdue_escalation_every_days:
        days_overdue = (today - asset_date.date_value).days
        if days_overdue > 0 and days_overdue % policy.overdue_escalation_every_days == 0:
            return -days_overdue

    return None


def _candidates(db: Session, policy: ReminderPolicy, today: date) -> List[AssetDate]:
    query = db.query(AssetDate).filter(
        AssetDate.category_key == policy.category_key,
        AssetDate.date_type == policy.date_type,
    )
    upcoming = []
    if policy.offsets:
        upcoming = query.filter(
            AssetDate.status == AssetDateStatus.UPCOMING.value,
            AssetDate.date_value >= today,
            AssetDate.date_value <= today + timedelta(days=policy.horizon_days),
        ).limit(BATCH_LIMIT).all()

    overdue = []
    if policy.overdue_escalation_every_days:
        overdue = query.filter(
            AssetDate.status == AssetDateStatus.OVERDUE.value,
        ).limit(BATCH_LIMIT).all()

    return upcoming + overdue


def _email_context(policy: ReminderPolicy, asset_date: AssetDate, offset_days: int) -> dict:
    return {
        "is_overdue": offset_days < 0,
        "days": abs(offset_days),
        "date_label": policy.date_type.replace("_", " "),
        "business_unit": asset_date.business_unit,
        "category_key": policy.category_key,
        "asset_id": asset_date.asset_id,
        "event_date": asset_date.date_value.isoformat(),
    }


async def _deliver(send: Sender, recipients: Iterable[str], subject: str, context: dict, summary: ReminderRunSummary) -> List[str]:
    delivered = []
    for to in recipients:
        try:
            await send(to, subject, TEMPLATE_NAME, context)
        except Exception:
            logger.exception("Failed to send reminder '%s' to %s", subject, to)
            summary.failed += 1
            continue
        delivered.append(to)
    return delivered


async def _run_policy(
    db: Session,
    send: Sender,
    policy: ReminderPolicy,
    today: date,
    summary: ReminderRunSummary,
    recipients_cache: Dict[str, List[str]],
):
    for asset_date in _candidates(db, policy, today):
        offset = due_offset(policy, asset_date, today)
        if offset is None:
            continue

        business_unit = asset_date.business_unit
        if not business_unit:
            summary.skipped += 1
            continue
        if business_unit not in recipients_cache:
            recipients_cache[business_unit] = admin_emails(db, business_unit)
        recipients = recipients_cache[business_unit]
        if not recipients:
            summary.skipped += 1
            continue

        is_escalation = offset < 0
        context = _email_context(policy, asset_date, offset)
        reminder = claim_reminder(db, asset_date, offset, is_overdue_escalation=is_escalation)
        if reminder is None:
            summary.skipped += 1
            continue

        subject = f"Overdue: {policy.subject}" if is_escalation else policy.subject
        delivered = await _deliver(send, recipients, subject, context, summary)

        if not delivered:
            logger.warning(
                "No recipient received %s reminder for asset date %s (offset %s); will retry next run",
                policy.category_key, reminder.asset_date_id, offset,
            )
            release_reminder(db, reminder)
            continue

        reminder.sent_to = delivered
        reminder.sent_at = datetime.now(timezone.utc)
        db.commit()
        summary.sent += 1


async def run_asset_reminders(
    db: Session,
    send: Sender,
    *,
    today: date,
    policies: Iterable[ReminderPolicy],
) -> ReminderRunSummary:
    """
    Sends every reminder due on `today` under `policies`.

    A failing batch is logged and rolled back without stopping the others;
    a failing send only affects its own recipient.
    """
    summary = ReminderRunSummary()
    recipients_cache: Dict[str, List[str]] = {}

    for policy in policies:
        try:
            await _run_policy(db, send, policy, today, summary, recipients_cache)
        except Exception:
            logger.exception("Reminder batch %s/%s failed", policy.category_key, policy.date_type)
            db.rollback()
            summary.failed += 1

    logger.info(
        "Asset reminders for %s: %s sent, %s skipped, %s failed",
        today.isoformat(), summary.sent, summary.skipped, summary.failed,
    )
    return summary
