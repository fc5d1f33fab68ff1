import datetime

import pytest

from forms import (
    format_day_month_year,
    form_round,
    format_number,
    parse_clock,
    parse_day_month_year,
    parse_iso_datetime,
    parse_number,
    parse_weekdays,
    reset_form,
    validate_assignment,
    validate_reminder,
    validate_schedule_course,
)


# -------------------------------
# Parsers
# -------------------------------

@pytest.mark.parametrize("raw,expected", [("12", 12.0), (" 7.5 ", 7.5), (3, 3.0), (0.25, 0.25), ("-4", -4.0)])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_number_blank_is_none(raw):
    assert parse_number(raw) is None


@pytest.mark.parametrize("raw", ["abc", "12%", "nan", "inf", True, [1]])
def test_parse_number_rejects_non_numbers(raw):
    with pytest.raises(ValueError):
        parse_number(raw)


def test_parse_clock():
    assert parse_clock("08:30") == datetime.time(8, 30)
    assert parse_clock(" 23:59 ") == datetime.time(23, 59)
    for bad in ("8:30", "24:00", "12:60", "noon", ""):
        with pytest.raises(ValueError):
            parse_clock(bad)


def test_parse_day_month_year():
    assert parse_day_month_year("05.09.2024") == datetime.date(2024, 9, 5)
    assert format_day_month_year(datetime.date(2024, 9, 5)) == "05.09.2024"
    for bad in ("2024-09-05", "5.9.2024", "31.02.2024", ""):
        with pytest.raises(ValueError):
            parse_day_month_year(bad)


@pytest.mark.parametrize("value", [12.3456789, 91.23456789, 0.1, 1e-7, 33.3, 100.0, 40, 1234567.891])
def test_format_number_parses_back_to_the_same_value(value):
    assert parse_number(format_number(value)) == value


def test_format_number():
    assert format_number(None) == ""
    assert format_number("") == ""
    assert format_number(40.0) == "40"
    assert format_number("12.5") == "12.5"
    assert format_number("n/a") == "n/a"


def test_parse_weekdays():
    assert parse_weekdays("Monday, Wednesday") == ["Monday", "Wednesday"]
    assert parse_weekdays(["Friday"]) == ["Friday"]
    for bad in ("Saturday", "Monday, Sunday", "", "monday"):
        with pytest.raises(ValueError):
            parse_weekdays(bad)


def test_parse_iso_datetime():
    assert parse_iso_datetime("2024-05-01T09:15:00") == datetime.datetime(2024, 5, 1, 9, 15)
    assert parse_iso_datetime(datetime.date(2024, 5, 1)) == datetime.datetime(2024, 5, 1)
    assert parse_iso_datetime("") is None
    with pytest.raises(ValueError):
        parse_iso_datetime("tomorrow")


# -------------------------------
# Schedule course
# -------------------------------

def schedule_course(**overrides):
    course = {
        "id": None,
        "name": "Linear Algebra",
        "start_time": "09:00",
        "end_time": "10:30",
        "start_date": "02.09.2024",
        "end_date": "20.12.2024",
        "days": "Monday, Thursday",
        "location": "Room 204",
    }
    course.update(overrides)
    return course


def test_valid_schedule_course():
    assert validate_schedule_course(schedule_course(), []) == {}


def test_schedule_course_reports_every_bad_field():
    errors = validate_schedule_course(
        schedule_course(name=" ", start_time="9am", end_date="2024-12-20", days="Saturday", location=""),
        [],
    )
    assert set(errors) == {"name", "start_time", "end_date", "days", "location"}
    assert errors["start_time"] == "Start time must be in HH:MM format (24-hour)."
    assert errors["days"] == "Days must be from Monday to Friday only."


def test_schedule_course_end_must_follow_start():
    errors = validate_schedule_course(schedule_course(end_time="09:00", end_date="02.09.2024"), [])
    assert errors == {
        "end_time": "End time must be greater than start time.",
        "end_date": "End date must be greater than start date.",
    }


def test_schedule_course_name_unique_except_itself():
    existing = [schedule_course(id="course_1", name="Linear Algebra")]
    assert validate_schedule_course(schedule_course(name=" linear algebra "), existing) == {
        "name": "Course name must be unique."
    }
    assert validate_schedule_course(schedule_course(id="course_1"), existing) == {}


# -------------------------------
# Assignment
# -------------------------------

def assignment(**overrides):
    a = {
        "id": None,
        "title": "Essay draft",
        "course": "Writing 101",
        "due_date": "2024-10-01T23:59:00",
        "priority": "High",
    }
    a.update(overrides)
    return a


def test_valid_assignment():
    assert validate_assignment(assignment(), []) == {}


def test_assignment_required_fields():
    errors = validate_assignment(assignment(title="", course="", due_date=None, priority="Urgent"), [])
    assert errors["title"] == "Title is required"
    assert errors["course"] == "Course is required"
    assert errors["due_date"] == "Due Date is required"
    assert "priority" in errors


def test_assignment_title_unique_except_itself():
    existing = [assignment(id="asg_1", title="Essay Draft")]
    assert validate_assignment(assignment(), existing) == {"title": "Title must be unique"}
    assert validate_assignment(assignment(id="asg_1"), existing) == {}


def test_assignment_priority_defaults_to_medium():
    assert validate_assignment(assignment(priority=None), []) == {}


# -------------------------------
# Reminder
# -------------------------------

def test_validate_reminder():
    ok = {"title": "Pay tuition", "date": "2024-08-15T09:00:00", "recurrence": "monthly"}
    assert validate_reminder(ok) == {}

    errors = validate_reminder({"title": " ", "date": "", "recurrence": "yearly"})
    assert set(errors) == {"title", "date", "recurrence"}


# -------------------------------
# Form reset
# -------------------------------

def test_form_round_changes_only_on_reset():
    state = {}
    assert form_round(state, "asg_ada") == 0
    assert form_round(state, "asg_ada") == 0

    reset_form(state, "asg_ada")
    assert form_round(state, "asg_ada") == 1
    assert form_round(state, "rem_ada") == 0

    reset_form(state, "asg_ada")
    assert form_round(state, "asg_ada") == 2
