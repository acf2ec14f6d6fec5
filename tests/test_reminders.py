import asyncio
from datetime import date, timedelta

import pytest

from portal.db.models.assets import AssetDate, AssetReminder
from portal.db.models.user import User
from portal.utils.reminders import (
    DEFAULT_REMINDER_POLICIES, ReminderPolicy, claim_reminder, due_offset, run_asset_reminders,
)

TODAY = date(2024, 3, 10)

VEHICLE_REGISTRATION = ReminderPolicy(
    "vehicles", "registration_expiry", (60, 30, 7, 2), "Vehicle Registration Expiry Reminder",
    overdue_escalation_every_days=1,
)
REGISTRATION_EXPIRY = ReminderPolicy(
    "registrations", "registration_expiry", (90, 60, 30, 15, 7, 2), "License Expiry Reminder",
    overdue_escalation_every_days=3,
)
SERVICE_DUE = ReminderPolicy("vehicles", "next_service_date", (14, 3, 2), "Vehicle Service Due Reminder")


@pytest.fixture
def admins(db):
    users = [
        User(username="g3-admin-1", hashed_password="x", role="admin", business_unit="G3", email="a1@g3.example.com"),
        User(username="g3-admin-2", hashed_password="x", role="admin", business_unit="G3", email="a2@g3.example.com"),
        User(username="g3-admin-no-mail", hashed_password="x", role="admin", business_unit="G3", email=None),
        User(username="g3-employee", hashed_password="x", role="employee", business_unit="G3", email="e@g3.example.com"),
        User(username="it-admin", hashed_password="x", role="admin", business_unit="IT", email="admin@it.example.com"),
    ]
    db.add_all(users)
    db.commit()
    return users


def add_date(db, days_from_today, category_key="vehicles", date_type="registration_expiry",
             business_unit="G3", status=None):
    value = TODAY + timedelta(days=days_from_today)
    row = AssetDate(
        category_key=category_key,
        asset_id=db.query(AssetDate).count() + 1,
        business_unit=business_unit,
        date_type=date_type,
        date_value=value,
        status=status or ("overdue" if value < TODAY else "upcoming"),
    )
    db.add(row)
    db.commit()
    return row


def run(db, sender, policies=(VEHICLE_REGISTRATION,), today=TODAY):
    return asyncio.run(run_asset_reminders(db, sender, today=today, policies=policies))


def test_default_policies():
    keys = {(p.category_key, p.date_type): p for p in DEFAULT_REMINDER_POLICIES}
    assert keys[("vehicles", "registration_expiry")].offsets == (60, 30, 7, 2)
    assert keys[("vehicles", "insurance_expiry")].overdue_escalation_every_days == 1
    assert keys[("vehicles", "next_service_date")].overdue_escalation_every_days is None
    assert keys[("registrations", "registration_expiry")].overdue_escalation_every_days == 3
    assert keys[("rental_machines", "rental_end")].offsets == (5,)


def test_due_offset_is_sparse():
    row = AssetDate(date_value=TODAY + timedelta(days=30), status="upcoming")
    assert due_offset(VEHICLE_REGISTRATION, row, TODAY) == 30
    row.date_value = TODAY + timedelta(days=29)
    assert due_offset(VEHICLE_REGISTRATION, row, TODAY) is None


def test_due_offset_escalation_modulo():
    row = AssetDate(date_value=TODAY - timedelta(days=6), status="overdue")
    assert due_offset(REGISTRATION_EXPIRY, row, TODAY) == -6
    row.date_value = TODAY - timedelta(days=4)
    assert due_offset(REGISTRATION_EXPIRY, row, TODAY) is None
    assert due_offset(SERVICE_DUE, row, TODAY) is None


def test_due_offset_ignores_resolved_rows():
    row = AssetDate(date_value=TODAY + timedelta(days=30), status="resolved")
    assert due_offset(VEHICLE_REGISTRATION, row, TODAY) is None


def test_reminder_sent_once_per_offset(db, admins, sender):
    row = add_date(db, 30)

    summary = run(db, sender)
    assert summary.sent == 1
    assert sorted(to for to, *_ in sender.sent) == ["a1@g3.example.com", "a2@g3.example.com"]
    to, subject, template, context = sender.sent[0]
    assert subject == "Vehicle Registration Expiry Reminder"
    assert template == "asset_reminder.html"
    assert context["days"] == 30 and context["is_overdue"] is False
    assert context["event_date"] == (TODAY + timedelta(days=30)).isoformat()

    reminder = db.query(AssetReminder).one()
    assert reminder.asset_date_id == row.id
    assert reminder.reminder_offset_days == 30
    assert sorted(reminder.sent_to) == ["a1@g3.example.com", "a2@g3.example.com"]
    assert reminder.is_overdue_escalation is False

    second = run(db, sender)
    assert second.sent == 0
    assert second.skipped == 1
    assert len(sender.sent) == 2
    assert db.query(AssetReminder).count() == 1


def test_days_not_in_offsets_do_nothing(db, admins, sender):
    add_date(db, 29)
    add_date(db, 61)
    summary = run(db, sender)
    assert summary.sent == 0
    assert sender.sent == []


def test_next_offset_fires_on_a_later_run(db, admins, sender):
    row = add_date(db, 30)
    run(db, sender)
    run(db, sender, today=TODAY + timedelta(days=23))
    offsets = sorted(r.reminder_offset_days for r in db.query(AssetReminder).filter_by(asset_date_id=row.id))
    assert offsets == [7, 30]


def test_overdue_escalation_every_n_days(db, admins, sender):
    add_date(db, -3, category_key="registrations")
    add_date(db, -4, category_key="registrations")

    summary = run(db, sender, policies=(REGISTRATION_EXPIRY,))
    assert summary.sent == 1
    reminder = db.query(AssetReminder).one()
    assert reminder.reminder_offset_days == -3
    assert reminder.is_overdue_escalation is True
    assert all(subject == "Overdue: License Expiry Reminder" for _, subject, _, _ in sender.sent)
    assert sender.sent[0][3]["is_overdue"] is True


def test_no_escalation_without_interval(db, admins, sender):
    add_date(db, -1, date_type="next_service_date")
    assert run(db, sender, policies=(SERVICE_DUE,)).sent == 0
    assert sender.sent == []


def test_escalation_only_policy(db, admins, sender):
    overdue_only = ReminderPolicy(
        "vehicles", "registration_expiry", (), "Vehicle Registration Expiry Reminder",
        overdue_escalation_every_days=1,
    )
    add_date(db, -2)
    add_date(db, 7)

    summary = run(db, sender, policies=(overdue_only,))
    assert (summary.sent, summary.failed) == (1, 0)
    assert db.query(AssetReminder).one().reminder_offset_days == -2
    assert overdue_only.horizon_days == 0


def test_units_without_admins_are_skipped(db, admins, sender):
    add_date(db, 30, business_unit="PrintersUAE")
    add_date(db, 7, business_unit=None)
    summary = run(db, sender)
    assert summary.sent == 0
    assert summary.skipped == 2
    assert db.query(AssetReminder).count() == 0


def test_recipients_are_admins_of_the_same_unit(db, admins, sender):
    add_date(db, 2, business_unit="IT")
    run(db, sender)
    assert [to for to, *_ in sender.sent] == ["admin@it.example.com"]


def test_partial_send_failure_keeps_the_reminder(db, admins, sender):
    sender.failing.add("a1@g3.example.com")
    add_date(db, 7)

    summary = run(db, sender)
    assert summary.sent == 1
    assert summary.failed == 1
    assert db.query(AssetReminder).one().sent_to == ["a2@g3.example.com"]


def test_total_send_failure_releases_the_claim(db, admins, sender):
    sender.failing.update({"a1@g3.example.com", "a2@g3.example.com"})
    add_date(db, 7)

    summary = run(db, sender)
    assert summary.sent == 0
    assert summary.failed == 2
    assert db.query(AssetReminder).count() == 0

    sender.failing.clear()
    assert run(db, sender).sent == 1
    assert db.query(AssetReminder).count() == 1


def test_failing_batch_does_not_stop_the_others(db, admins, sender):
    broken = ReminderPolicy("vehicles", "insurance_expiry", (), "Broken")
    add_date(db, 30)
    summary = run(db, sender, policies=(broken, VEHICLE_REGISTRATION))
    assert summary.failed == 1
    assert summary.sent == 1


def test_claim_is_insert_if_absent(db):
    row = add_date(db, 30)
    first = claim_reminder(db, row, 30)
    assert first is not None
    assert claim_reminder(db, row, 30) is None
    assert claim_reminder(db, row, 7) is not None
    assert db.query(AssetReminder).count() == 2
