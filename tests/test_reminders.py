import datetime

import pytest

from reminders import (
    build_ics_calendar,
    cancel_notification,
    due_notifications,
    next_occurrence,
    notification_counts,
    reschedule_all,
    schedule_notification,
    sync_notification,
)

DT = datetime.datetime


def reminder(**overrides):
    r = {
        "id": "rem_1",
        "title": "Submit lab",
        "body": "Upload PDF",
        "date": "2024-03-10T09:00:00",
        "recurrence": "none",
        "completed": False,
        "notification_id": None,
    }
    r.update(overrides)
    return r


# -------------------------------
# next_occurrence
# -------------------------------

def test_one_shot_occurrence():
    when = DT(2024, 3, 10, 9)
    assert next_occurrence(when, "none", DT(2024, 3, 1)) == when
    assert next_occurrence(when, "none", DT(2024, 3, 10, 9)) is None
    assert next_occurrence(when, "none", DT(2024, 4, 1)) is None


def test_daily_rolls_forward_past_now():
    when = DT(2024, 1, 1, 9)
    assert next_occurrence(when, "daily", DT(2024, 1, 5, 10)) == DT(2024, 1, 6, 9)
    assert next_occurrence(when, "daily", DT(2024, 1, 5, 8)) == DT(2024, 1, 5, 9)
    assert next_occurrence(when, "daily", DT(2024, 1, 5, 9)) == DT(2024, 1, 6, 9)


def test_weekly():
    when = DT(2024, 1, 1, 18, 30)
    assert next_occurrence(when, "weekly", DT(2024, 1, 20)) == DT(2024, 1, 22, 18, 30)


def test_monthly_clamps_to_month_end_without_drifting():
    when = DT(2024, 1, 31, 9)
    assert next_occurrence(when, "monthly", DT(2024, 2, 1)) == DT(2024, 2, 29, 9)
    assert next_occurrence(when, "monthly", DT(2024, 3, 1)) == DT(2024, 3, 31, 9)
    assert next_occurrence(when, "monthly", DT(2024, 3, 31, 10)) == DT(2024, 4, 30, 9)


def test_unknown_recurrence():
    with pytest.raises(ValueError):
        next_occurrence(DT(2024, 1, 1), "yearly", DT(2024, 2, 1))


# -------------------------------
# Scheduling
# -------------------------------

def test_schedule_notification():
    notif = schedule_notification(reminder(), DT(2024, 3, 1))
    assert notif["reminder_id"] == "rem_1"
    assert notif["fire_at"] == "2024-03-10T09:00:00"
    assert notif["repeat"] == "none"
    assert notif["id"].startswith("notif_")


def test_nothing_scheduled_for_past_or_completed_reminders():
    assert schedule_notification(reminder(), DT(2024, 4, 1)) is None
    assert schedule_notification(reminder(completed=True), DT(2024, 3, 1)) is None
    assert schedule_notification(reminder(date=None), DT(2024, 3, 1)) is None


def test_past_recurring_reminder_is_still_scheduled():
    notif = schedule_notification(reminder(recurrence="weekly"), DT(2024, 3, 20))
    assert notif["fire_at"] == "2024-03-24T09:00:00"


def test_sync_replaces_previous_notification():
    user_data = {"reminders": [], "notifications": []}
    r = reminder()
    first = sync_notification(user_data, r, DT(2024, 3, 1))
    assert r["notification_id"] == first["id"]

    r["date"] = "2024-03-12T09:00:00"
    second = sync_notification(user_data, r, DT(2024, 3, 1))
    assert [n["id"] for n in user_data["notifications"]] == [second["id"]]
    assert user_data["notifications"][0]["fire_at"] == "2024-03-12T09:00:00"


def test_completing_cancels_and_uncompleting_reschedules():
    user_data = {"reminders": [], "notifications": []}
    r = reminder()
    sync_notification(user_data, r, DT(2024, 3, 1))

    r["completed"] = True
    assert sync_notification(user_data, r, DT(2024, 3, 1)) is None
    assert r["notification_id"] is None
    assert user_data["notifications"] == []

    r["completed"] = False
    assert sync_notification(user_data, r, DT(2024, 3, 1)) is not None
    assert len(user_data["notifications"]) == 1


def test_cancel_notification():
    user_data = {"notifications": [{"id": "notif_a"}, {"id": "notif_b"}]}
    assert cancel_notification(user_data, "notif_a")
    assert not cancel_notification(user_data, "notif_a")
    assert not cancel_notification(user_data, None)
    assert user_data["notifications"] == [{"id": "notif_b"}]


def test_reschedule_all():
    user_data = {
        "reminders": [
            reminder(id="r1"),
            reminder(id="r2", date="2024-01-01T09:00:00"),
            reminder(id="r3", date="2024-01-01T09:00:00", recurrence="daily"),
        ],
        "notifications": [],
    }
    assert reschedule_all(user_data, DT(2024, 3, 1)) == 2
    assert {n["reminder_id"] for n in user_data["notifications"]} == {"r1", "r3"}


def test_unreadable_reminder_date_is_skipped():
    bad = reminder(id="r1", date="31.02.2024")
    assert schedule_notification(bad, DT(2024, 3, 1)) is None

    user_data = {"reminders": [bad, reminder(id="r2")], "notifications": []}
    assert reschedule_all(user_data, DT(2024, 3, 1)) == 1
    assert [n["reminder_id"] for n in user_data["notifications"]] == ["r2"]
    assert bad["notification_id"] is None


def test_due_notifications_fire_once_and_recurring_roll_forward():
    one_shot = reminder(id="r1")
    daily = reminder(id="r2", recurrence="daily")
    user_data = {"reminders": [one_shot, daily], "notifications": []}
    sync_notification(user_data, one_shot, DT(2024, 3, 1))
    sync_notification(user_data, daily, DT(2024, 3, 1))

    assert due_notifications(user_data, DT(2024, 3, 10, 8)) == []

    fired = due_notifications(user_data, DT(2024, 3, 10, 9, 5))
    assert {n["reminder_id"] for n in fired} == {"r1", "r2"}
    assert one_shot["notification_id"] is None
    assert [n["reminder_id"] for n in user_data["notifications"]] == ["r2"]
    assert user_data["notifications"][0]["fire_at"] == "2024-03-11T09:00:00"

    assert due_notifications(user_data, DT(2024, 3, 10, 23)) == []


def test_due_notifications_drop_unreadable_entries():
    user_data = {"reminders": [], "notifications": [{"id": "n1", "fire_at": "whenever", "repeat": "none"}]}
    assert due_notifications(user_data, DT(2024, 3, 1)) == []
    assert user_data["notifications"] == []


# -------------------------------
# Counts / calendar
# -------------------------------

def test_notification_counts():
    today = datetime.date(2024, 3, 10)
    user_data = {
        "assignments": [
            {"id": "a1", "due_date": "2024-03-09T23:59:00", "completed": False},
            {"id": "a2", "due_date": "2024-03-10T12:00:00", "completed": False},
            {"id": "a3", "due_date": "2024-03-11T12:00:00", "completed": True},
            {"id": "a4", "due_date": None, "completed": False},
        ],
        "reminders": [
            reminder(id="r1", date="2024-03-11T08:00:00"),
            reminder(id="r2", date="2024-02-01T08:00:00", recurrence="daily"),
            reminder(id="r3", date="2024-02-11T08:00:00", recurrence="monthly"),
        ],
    }
    assert notification_counts(user_data, today) == {"overdue": 1, "today": 2, "tomorrow": 2}


def test_build_ics_calendar():
    ics = build_ics_calendar([
        reminder(id="r1", title="Office hours; room 3", recurrence="weekly"),
        reminder(id="r2", title="Exam", body=""),
        reminder(id="r3", date=None),
    ], calendar_name="Term")

    lines = ics.split("\n")
    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "X-WR-CALNAME:Term" in lines
    assert lines.count("BEGIN:VEVENT") == 2
    assert "SUMMARY:Office hours\\; room 3" in lines
    assert "RRULE:FREQ=WEEKLY" in lines
    assert "DTSTART:20240310T090000" in lines
    assert "UID:r2@studentorganizer" in lines
