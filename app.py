import json
import datetime
from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st
from supabase import create_client

from config import DATA_FILE, setup_logging, supabase_cfg, supabase_enabled
from forms import (
    PRIORITIES,
    RECURRENCE_OPTIONS,
    WEEKDAYS,
    format_day_month_year,
    form_round,
    format_number,
    parse_day_month_year,
    parse_iso_datetime,
    reset_form,
    validate_assignment,
    validate_reminder,
    validate_schedule_course,
)
from grade_engine import (
    apply_admission,
    course_summary,
    new_course,
    remove_component,
    validate_component_admission,
)
from organizer import (
    export_user_csvs,
    find_record,
    generate_id,
    is_course_active,
    now_stamp,
    schedule_label,
    search,
    sort_by_due,
    toggle_completed,
)
from reminders import (
    build_ics_calendar,
    cancel_notification,
    due_notifications,
    notification_counts,
    reschedule_all,
    sync_notification,
)
from storage import LocalJsonBackend, Store, StorageError, SupabaseBackend

logger = setup_logging()


# -------------------------------
# Session / storage wiring
# -------------------------------

def init_app_state():
    mode = "supabase" if supabase_enabled() else "local"
    if st.session_state.get("storage_mode") != mode:
        st.session_state.storage_mode = mode

    # current_user is the auth uuid with Supabase and the profile name locally;
    # current_username is the email or the profile name
    for key in ("current_user", "current_username", "sb_session"):
        st.session_state.setdefault(key, None)


def _sb():
    """Session-scoped Supabase client, rebuilt when the configured project changes."""
    cfg = supabase_cfg()
    if not (cfg["url"] and cfg["anon_key"]):
        return None

    project = (cfg["url"], cfg["anon_key"])
    if st.session_state.get("_sb_project") != project:
        st.session_state["_sb_client"] = create_client(*project)
        st.session_state["_sb_project"] = project
    return st.session_state["_sb_client"]


def _sb_authed():
    client = _sb()
    tokens = st.session_state.get("sb_session") or {}
    if client is not None and tokens.get("access_token") and tokens.get("refresh_token"):
        try:
            client.auth.set_session(tokens["access_token"], tokens["refresh_token"])
        except Exception as e:
            logger.warning("Supabase session could not be restored: %s", e)
    return client


def open_store(username: str) -> Store:
    if st.session_state.get("storage_mode") == "supabase":
        cfg = supabase_cfg()
        backend = SupabaseBackend(_sb_authed(), cfg["table"], st.session_state.current_user)
    else:
        backend = LocalJsonBackend(DATA_FILE)

    store = Store(backend, username)
    store.load()
    return store


def _persist(fn, *args) -> Any:
    """Run a store call; storage failures become an error message instead of a crash."""
    try:
        result = fn(*args)
        return True if result is None else result
    except StorageError as e:
        st.error(str(e))
        return None


def _show_errors(errors: Dict[str, str]) -> None:
    for msg in errors.values():
        st.error(msg)


def _confirm(key: str, record_id: str, prompt: str) -> Optional[bool]:
    """Two-step delete prompt; True once the user confirms."""
    if st.session_state.get(key) != record_id:
        return None
    st.warning(prompt)
    cA, cB = st.columns(2)
    with cA:
        if st.button("Yes, delete", key=f"{key}_yes_{record_id}"):
            st.session_state.pop(key, None)
            return True
    with cB:
        if st.button("Cancel", key=f"{key}_no_{record_id}"):
            st.session_state.pop(key, None)
            st.rerun()
    return None


# -------------------------------
# UI: sign-in
# -------------------------------

def _field(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _signed_in_identity(res) -> Optional[Dict[str, str]]:
    session = _field(res, "session")
    user = _field(res, "user") or _field(session, "user")
    identity = {
        "user_id": _field(user, "id"),
        "email": _field(user, "email"),
        "access_token": _field(session, "access_token"),
        "refresh_token": _field(session, "refresh_token"),
    }
    if not all(identity.values()):
        return None
    return {k: str(v) for k, v in identity.items()}


def _sign_out(client) -> None:
    try:
        client.auth.sign_out()
    except Exception as e:
        logger.warning("Supabase sign out failed: %s", e)
    for k in ("current_user", "current_username", "sb_session", "_sb_client", "_sb_project"):
        st.session_state.pop(k, None)
    st.rerun()


def account_panel() -> None:
    st.sidebar.header("Account")

    client = _sb_authed()
    if client is None:
        st.sidebar.error("Cannot reach Supabase. Check the url and anon_key secrets.")
        return

    if st.session_state.get("current_user"):
        st.sidebar.success(f"Logged in: {st.session_state.current_username}")
        if st.sidebar.button("Log out", key="sb_signout"):
            _sign_out(client)
        return

    action = st.sidebar.radio("Account", ["Log in", "Create account"], key="sb_mode", label_visibility="collapsed")
    email = st.sidebar.text_input("Email", key="sb_email").strip()
    password = st.sidebar.text_input("Password", type="password", key="sb_password")
    if action == "Create account":
        st.sidebar.caption("Depending on the project's auth settings you may have to confirm your email first.")
    if not st.sidebar.button(action, type="primary", key="sb_submit"):
        return
    if not (email and password):
        st.sidebar.error("Email and password are both required.")
        return

    credentials = {"email": email, "password": password}
    if action == "Create account":
        try:
            client.auth.sign_up(credentials)
        except Exception as e:
            logger.warning("Sign up failed for %s: %s", email, e)
            st.sidebar.error(f"Could not create the account: {e}")
        else:
            st.sidebar.success("Account created. Log in to continue.")
        return

    try:
        identity = _signed_in_identity(client.auth.sign_in_with_password(credentials))
    except Exception as e:
        logger.warning("Login failed for %s: %s", email, e)
        st.sidebar.error(f"Could not log in: {e}")
        return
    if identity is None:
        st.sidebar.error("Login failed. Check your email and password.")
        return

    st.session_state.sb_session = {k: identity[k] for k in ("access_token", "refresh_token")}
    st.session_state.current_user = identity["user_id"]
    st.session_state.current_username = identity["email"]
    logger.info("Signed in %s", identity["email"])
    st.rerun()


def profile_panel() -> None:
    st.sidebar.header("Student profile")
    st.sidebar.caption("Profiles are kept in a local file. Configure Supabase secrets for real accounts.")

    backend = LocalJsonBackend(DATA_FILE)
    profiles = backend.usernames()

    action = st.sidebar.radio(
        "Profile", ["Open profile", "New profile"], key="mode_user_selector", label_visibility="collapsed"
    )
    if action == "Open profile":
        if not profiles:
            st.sidebar.info("No profiles saved yet. Create one first.")
            return
        selected = st.sidebar.selectbox("Profile", profiles, key="login_select_name")
        if st.sidebar.button("Open", key="login_use_profile"):
            st.session_state.current_user = selected
            st.session_state.current_username = selected
        return

    name = st.sidebar.text_input("Your name", key="new_student_name").strip()
    if st.sidebar.button("Create profile", key="new_student_create"):
        if not name:
            st.sidebar.error("A profile needs a name.")
            return
        store = Store(backend, name)
        store.load()
        if _persist(store.save):
            logger.info("Created local profile %s", name)
            st.session_state.current_user = name
            st.session_state.current_username = name
            st.sidebar.success(f"Profile created for {name}")


def user_selector():
    if st.session_state.get("storage_mode") == "supabase":
        account_panel()
    else:
        profile_panel()


# -------------------------------
# Notifications (toast/banner)
# -------------------------------

def maybe_show_notifications(store: Store) -> None:
    settings = store.data.get("settings") or {}
    if not settings.get("notify_enabled", True):
        return

    now = datetime.datetime.now()

    # notifications for reminders created before this session
    boot_key = f"notify_booted_{store.username}"
    if not st.session_state.get(boot_key):
        if not store.data.get("notifications"):
            reschedule_all(store.data, now)
            _persist(store.save)
        st.session_state[boot_key] = True

    fired = due_notifications(store.data, now)
    if fired:
        _persist(store.save)
        for n in fired:
            msg = n.get("title") or "Reminder"
            if n.get("body"):
                msg = f"{msg} — {n['body']}"
            if settings.get("notify_toast", True):
                st.toast(f"🔔 {msg}")
            if settings.get("notify_banner", True):
                st.info(f"🔔 {msg}")

    today_str = datetime.date.today().isoformat()
    state_key = f"notify_last_shown_{store.username}"
    if st.session_state.get(state_key) == today_str:
        return

    counts = notification_counts(store.data)
    st.session_state[state_key] = today_str
    if counts["overdue"] == 0 and counts["today"] == 0 and counts["tomorrow"] == 0:
        return

    msg = f"Overdue: {counts['overdue']} · Today: {counts['today']} · Tomorrow: {counts['tomorrow']}"
    if settings.get("notify_toast", True):
        st.toast(msg)
    if settings.get("notify_banner", True):
        st.warning(f"🔔 Reminders — {msg}")


# -------------------------------
# UI: Assignments
# -------------------------------

def _due_parts(value: Any) -> datetime.datetime:
    try:
        due = parse_iso_datetime(value)
    except ValueError:
        due = None
    return (due or datetime.datetime.now()).replace(second=0, microsecond=0)


def assignments_view(store: Store):
    K = f"asg_{store.username}"
    edit_key = f"{K}_editing"

    st.header("Assignments")

    assignments = sort_by_due(store.list("assignments"))
    current = find_record(assignments, st.session_state.get(edit_key)) or {}
    form_id = current.get("id") or f"new{form_round(st.session_state, K)}"

    with st.expander("✏️ Edit assignment" if current else "➕ Add assignment", expanded=bool(current)):
        due0 = _due_parts(current.get("due_date"))
        with st.form(key=f"{K}_form_{form_id}"):
            title = st.text_input("Assignment title *", value=current.get("title", ""), key=f"{K}_title_{form_id}")
            course = st.text_input("Course name *", value=current.get("course", ""), key=f"{K}_course_{form_id}")
            c1, c2 = st.columns(2)
            with c1:
                due_date = st.date_input("Due date *", value=due0.date(), key=f"{K}_due_{form_id}")
            with c2:
                due_time = st.time_input("Due time", value=due0.time(), key=f"{K}_due_time_{form_id}")
            description = st.text_area("Description", value=current.get("description", ""), key=f"{K}_desc_{form_id}")
            prio = current.get("priority") if current.get("priority") in PRIORITIES else "Medium"
            priority = st.selectbox("Priority", PRIORITIES, index=PRIORITIES.index(prio), key=f"{K}_prio_{form_id}")

            submitted = st.form_submit_button("Save")

        if submitted:
            candidate = {
                "id": current.get("id"),
                "title": title.strip(),
                "course": course.strip(),
                "due_date": datetime.datetime.combine(due_date, due_time).isoformat(),
                "description": description.strip(),
                "priority": priority,
                "completed": bool(current.get("completed", False)),
            }
            errors = validate_assignment(candidate, assignments)
            if errors:
                _show_errors(errors)
            elif _persist(store.upsert, "assignments", candidate):
                logger.info("Saved assignment %r", candidate["title"])
                reset_form(st.session_state, K)
                st.session_state.pop(edit_key, None)
                st.success("Assignment updated." if current else "Assignment added.")
                st.rerun()

        if current and st.button("Cancel editing", key=f"{K}_cancel_edit"):
            st.session_state.pop(edit_key, None)
            st.rerun()

    st.write("---")

    query = st.text_input("Search by course or assignment", key=f"{K}_search")
    shown = search(assignments, query, ["title", "course"])

    if not shown:
        st.caption("No assignments." if not query else "No assignments match your search.")
        return

    for a in shown:
        aid = a["id"]
        due = _due_parts(a.get("due_date"))
        done_val = bool(a.get("completed", False))

        col_chk, col_info, col_act = st.columns([1, 8, 3])
        with col_chk:
            new_done = st.checkbox("Done", value=done_val, key=f"{K}_done_{aid}", label_visibility="collapsed")
        with col_info:
            title_md = f"~~{a.get('title', '')}~~" if done_val else f"**{a.get('title', '')}**"
            st.markdown(
                f"{title_md} · {a.get('course', '')}  \n"
                f"Due: {due.strftime('%d.%m.%Y %H:%M')} · Priority: {a.get('priority', 'Medium')}"
            )
            if a.get("description"):
                st.caption(a["description"])
        with col_act:
            b1, b2, b3 = st.columns(3)
            with b1:
                if st.button("🧮", key=f"{K}_grade_{aid}", help="Track grades for this assignment"):
                    st.session_state["tracking_assignment"] = a.get("title", "")
                    st.info("Open the **Grades** tab to track this assignment.")
            with b2:
                if st.button("✏️", key=f"{K}_edit_{aid}", help="Edit"):
                    st.session_state[edit_key] = aid
                    st.rerun()
            with b3:
                if st.button("🗑️", key=f"{K}_del_{aid}", help="Delete"):
                    if _persist(store.remove, "assignments", aid):
                        st.rerun()

        if new_done != done_val:
            toggle_completed(store.data["assignments"], aid)
            if _persist(store.save):
                st.rerun()


# -------------------------------
# UI: Course schedule
# -------------------------------

def _date_or_today(value: Any) -> datetime.date:
    try:
        return parse_day_month_year(value)
    except ValueError:
        return datetime.date.today()


def schedule_view(store: Store):
    K = f"sched_{store.username}"
    edit_key = f"{K}_editing"
    confirm_key = f"{K}_confirm_delete"

    st.header("Course schedule")

    courses = store.list("schedule")
    current = find_record(courses, st.session_state.get(edit_key)) or {}
    form_id = current.get("id") or f"new{form_round(st.session_state, K)}"

    with st.expander("✏️ Edit course" if current else "➕ Add course", expanded=bool(current)):
        with st.form(key=f"{K}_form_{form_id}"):
            name = st.text_input("Course name", value=current.get("name", ""), key=f"{K}_name_{form_id}")
            c1, c2 = st.columns(2)
            with c1:
                start_time = st.text_input("Start time (HH:MM)", value=current.get("start_time", ""), key=f"{K}_st_{form_id}")
                start_date = st.date_input("Start date", value=_date_or_today(current.get("start_date")), format="DD.MM.YYYY", key=f"{K}_sd_{form_id}")
            with c2:
                end_time = st.text_input("End time (HH:MM)", value=current.get("end_time", ""), key=f"{K}_et_{form_id}")
                end_date = st.date_input("End date", value=_date_or_today(current.get("end_date")), format="DD.MM.YYYY", key=f"{K}_ed_{form_id}")
            current_days = [d.strip() for d in str(current.get("days") or "").split(",") if d.strip() in WEEKDAYS]
            days = st.multiselect("Days", WEEKDAYS, default=current_days, key=f"{K}_days_{form_id}")
            location = st.text_input("Location", value=current.get("location", ""), key=f"{K}_loc_{form_id}")

            submitted = st.form_submit_button("Save")

        if submitted:
            candidate = {
                "id": current.get("id"),
                "name": name.strip(),
                "start_time": start_time.strip(),
                "end_time": end_time.strip(),
                "start_date": format_day_month_year(start_date),
                "end_date": format_day_month_year(end_date),
                "days": ", ".join(days),
                "location": location.strip(),
            }
            errors = validate_schedule_course(candidate, courses)
            if errors:
                _show_errors(errors)
            elif _persist(store.upsert, "schedule", candidate):
                logger.info("Saved schedule course %r", candidate["name"])
                reset_form(st.session_state, K)
                st.session_state.pop(edit_key, None)
                st.success("Course updated successfully!" if current else "Course added successfully!")
                st.rerun()

        if current and st.button("Cancel editing", key=f"{K}_cancel_edit"):
            st.session_state.pop(edit_key, None)
            st.rerun()

    st.write("---")

    query = st.text_input("Search by course name", key=f"{K}_search")
    shown = search(courses, query, ["name"])
    if not shown:
        st.caption("No courses yet." if not query else "No courses match your search.")
        return

    today = datetime.date.today()
    for c in shown:
        cid = c["id"]
        active = is_course_active(c, today)
        col_info, col_act = st.columns([9, 2])
        with col_info:
            badge = ":green[Active]" if active else ":red[Ended]"
            st.markdown(
                f"**{c.get('name', '')}** · {badge}  \n"
                f"{schedule_label(c)}  \n"
                f"📍 {c.get('location', '')}"
            )
        with col_act:
            b1, b2 = st.columns(2)
            with b1:
                if st.button("✏️", key=f"{K}_edit_{cid}", help="Edit"):
                    st.session_state[edit_key] = cid
                    st.rerun()
            with b2:
                if st.button("🗑️", key=f"{K}_del_{cid}", help="Delete"):
                    st.session_state[confirm_key] = cid

        if _confirm(confirm_key, cid, "Are you sure you want to delete this course?"):
            if _persist(store.remove, "schedule", cid):
                st.success("Course deleted successfully!")
                st.rerun()


# -------------------------------
# UI: Grade calculator
# -------------------------------

def _component_form(store: Store, course: Dict[str, Any], K: str) -> None:
    cid = course["id"]
    edit_key = f"{K}_edit_comp_{cid}"
    current = find_record(course.get("components") or [], st.session_state.get(edit_key)) or {}
    form_id = f"{cid}_{current.get('id') or 'new'}{form_round(st.session_state, edit_key)}"

    st.markdown("**Edit grade component**" if current else "**Add grade component**")
    with st.form(key=f"{K}_comp_form_{form_id}"):
        name = st.text_input("Component name *", value=current.get("name", ""), key=f"{K}_cname_{form_id}")
        c1, c2 = st.columns(2)
        with c1:
            weight = st.text_input("Weight (%) *", value=format_number(current.get("weight")), key=f"{K}_cw_{form_id}")
        with c2:
            score = st.text_input("Score (%)", value=format_number(current.get("score")), placeholder="optional", key=f"{K}_cs_{form_id}")
        submitted = st.form_submit_button("Save component")

    if submitted:
        admission = validate_component_admission(course, {
            "id": current.get("id"),
            "name": name,
            "weight": weight,
            "score": score,
        })
        if not admission.ok:
            st.error(admission.message)
        elif _persist(store.upsert, "grade_courses", apply_admission(course, admission.component)):
            logger.info("Saved component %r in %r", admission.component["name"], course.get("name"))
            reset_form(st.session_state, edit_key)
            st.session_state.pop(edit_key, None)
            st.rerun()

    if current and st.button("Cancel editing", key=f"{K}_cancel_comp_{cid}"):
        st.session_state.pop(edit_key, None)
        st.rerun()


def grades_view(store: Store):
    K = f"grades_{store.username}"
    confirm_course_key = f"{K}_confirm_delete_course"
    confirm_comp_key = f"{K}_confirm_delete_comp"

    st.header("Grade calculator")

    tracking = st.session_state.get("tracking_assignment")
    if tracking:
        st.caption(f"Tracking grades for: **{tracking}**")

    with st.expander("➕ Add course", expanded=False):
        new_id = form_round(st.session_state, f"{K}_new_course")
        with st.form(key=f"{K}_new_course_{new_id}"):
            course_name = st.text_input("Course name *", key=f"{K}_new_course_name_{new_id}")
            submitted = st.form_submit_button("Save")
        if submitted:
            try:
                course = new_course(course_name)
            except ValueError as e:
                st.error(str(e))
            else:
                if _persist(store.upsert, "grade_courses", course):
                    reset_form(st.session_state, f"{K}_new_course")
                    st.rerun()

    query = st.text_input("Search by course name", key=f"{K}_search")
    courses = search(store.list("grade_courses"), query, ["name"])
    if not courses:
        st.caption("No courses yet." if not query else "No courses match your search.")
        return

    for course in courses:
        cid = course["id"]
        summary = course_summary(course)

        st.markdown(f"### {course.get('name', '')}")

        components = course.get("components") or []
        if components:
            df = pd.DataFrame([
                {
                    "Assignment": comp.get("name", ""),
                    "Weight (%)": comp.get("weight"),
                    "Score (%)": comp.get("score") if comp.get("score") is not None else 0.0,
                }
                for comp in components
            ])
            st.dataframe(df, use_container_width=True, hide_index=True)

            for comp in components:
                comp_id = comp["id"]
                cA, cB, cC = st.columns([8, 1, 1])
                with cA:
                    st.caption(comp.get("name", ""))
                with cB:
                    if st.button("✏️", key=f"{K}_edit_{comp_id}", help="Edit component"):
                        st.session_state[f"{K}_edit_comp_{cid}"] = comp_id
                        st.rerun()
                with cC:
                    if st.button("🗑️", key=f"{K}_del_{comp_id}", help="Delete component"):
                        st.session_state[confirm_comp_key] = comp_id

                if _confirm(confirm_comp_key, comp_id, "Are you sure you want to delete this component?"):
                    if _persist(store.upsert, "grade_courses", remove_component(course, comp_id)):
                        st.success("Component has been successfully deleted.")
                        st.rerun()
        else:
            st.caption("No grade components yet.")

        m1, m2, m3 = st.columns(3)
        m1.metric("Current grade", f"{summary['grade']:.1f}%")
        m2.metric("GPA", f"{summary['gpa']:.2f} / 10")
        m3.metric("Weight left", f"{summary['remaining_weight']:g}%")

        _component_form(store, course, K)

        if st.button("🗑️ Delete course", key=f"{K}_delete_course_{cid}"):
            st.session_state[confirm_course_key] = cid
        if _confirm(confirm_course_key, cid, "Are you sure? This removes the course and all of its components."):
            if _persist(store.remove, "grade_courses", cid):
                st.success("Course has been successfully deleted.")
                st.rerun()

        st.write("---")


# -------------------------------
# UI: Reminders
# -------------------------------

def reminders_view(store: Store):
    K = f"rem_{store.username}"
    edit_key = f"{K}_editing"
    confirm_key = f"{K}_confirm_delete"

    st.header("Reminders")

    reminders = store.list("reminders")
    current = find_record(reminders, st.session_state.get(edit_key)) or {}
    form_id = current.get("id") or f"new{form_round(st.session_state, K)}"

    with st.expander("✏️ Edit reminder" if current else "➕ Add reminder", expanded=bool(current)):
        when0 = _due_parts(current.get("date"))
        with st.form(key=f"{K}_form_{form_id}"):
            title = st.text_input("Title *", value=current.get("title", ""), key=f"{K}_title_{form_id}")
            body = st.text_area("Description", value=current.get("body", ""), key=f"{K}_body_{form_id}")
            c1, c2 = st.columns(2)
            with c1:
                date = st.date_input("Date", value=when0.date(), key=f"{K}_date_{form_id}")
            with c2:
                time = st.time_input("Time", value=when0.time(), key=f"{K}_time_{form_id}")
            rec0 = current.get("recurrence") or "none"
            recurring = st.toggle("Enable recurrence", value=rec0 != "none", key=f"{K}_rec_on_{form_id}")
            recurrence = st.selectbox(
                "Recurrence",
                RECURRENCE_OPTIONS,
                index=RECURRENCE_OPTIONS.index(rec0) if rec0 in RECURRENCE_OPTIONS else 0,
                format_func=str.capitalize,
                key=f"{K}_rec_{form_id}",
            )
            submitted = st.form_submit_button("Save")

        if submitted:
            candidate = {
                "id": current.get("id") or generate_id("rem"),
                "title": title.strip(),
                "body": body.strip(),
                "date": datetime.datetime.combine(date, time).isoformat(),
                "recurrence": recurrence if recurring else "none",
                "completed": bool(current.get("completed", False)),
                "notification_id": current.get("notification_id"),
            }
            errors = validate_reminder(candidate)
            if errors:
                _show_errors(errors)
            else:
                saved = _save_reminder(store, candidate)
                if saved:
                    reset_form(st.session_state, K)
                    st.session_state.pop(edit_key, None)
                    st.success("Reminder updated successfully!" if current else "Reminder added successfully!")
                    st.rerun()

        if current and st.button("Cancel editing", key=f"{K}_cancel_edit"):
            st.session_state.pop(edit_key, None)
            st.rerun()

    st.write("---")

    if not reminders:
        st.caption("No reminders yet.")
        return

    now = datetime.datetime.now()
    for r in reminders:
        rid = r["id"]
        done_val = bool(r.get("completed", False))
        when = _due_parts(r.get("date"))

        col_chk, col_info, col_act = st.columns([1, 9, 2])
        with col_chk:
            new_done = st.checkbox("Done", value=done_val, key=f"{K}_done_{rid}", label_visibility="collapsed")
        with col_info:
            title_md = f"~~{r.get('title', '')}~~" if done_val else f"**{r.get('title', '')}**"
            rec = (r.get("recurrence") or "none").capitalize()
            st.markdown(f"{title_md}  \n{when.strftime('%d.%m.%Y %H:%M')} · Recurrence: {rec}")
            if r.get("body"):
                st.caption(r["body"])
        with col_act:
            b1, b2 = st.columns(2)
            with b1:
                if st.button("✏️", key=f"{K}_edit_{rid}", help="Edit"):
                    st.session_state[edit_key] = rid
                    st.rerun()
            with b2:
                if st.button("🗑️", key=f"{K}_del_{rid}", help="Delete"):
                    st.session_state[confirm_key] = rid

        if new_done != done_val:
            updated = toggle_completed(store.data["reminders"], rid)
            if updated["completed"]:
                cancel_notification(store.data, updated.get("notification_id"))
                updated["notification_id"] = None
            else:
                sync_notification(store.data, updated, now)
            if _persist(store.save):
                if updated["completed"]:
                    st.success("Reminder marked as completed!")
                st.rerun()

        if _confirm(confirm_key, rid, f"Are you sure you want to delete the reminder: {r.get('title', '')}?"):
            cancel_notification(store.data, r.get("notification_id"))
            if _persist(store.remove, "reminders", rid):
                st.success("Reminder deleted successfully!")
                st.rerun()

    st.write("---")
    with st.expander("📅 Calendar export (ICS)", expanded=False):
        open_reminders = [r for r in reminders if not bool(r.get("completed", False))]
        ics_text = build_ics_calendar(open_reminders, calendar_name=f"Student Organizer - {store.username}")
        st.download_button(
            "Download calendar (.ics)",
            data=ics_text.encode("utf-8"),
            file_name=f"student_organizer_{store.username}_{now_stamp()}.ics",
            mime="text/calendar",
            key=f"{K}_ics_download",
        )
        st.caption(f"Calendar will include {len(open_reminders)} reminder(s).")


def _save_reminder(store: Store, candidate: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sync_notification(store.data, candidate, datetime.datetime.now())
    saved = _persist(store.upsert, "reminders", candidate)
    if saved:
        logger.info("Saved reminder %r (notification %s)", candidate["title"], candidate.get("notification_id"))
    return saved


# -------------------------------
# UI: Settings / data
# -------------------------------

def settings_view(store: Store):
    K = f"settings_{store.username}"
    s = store.data["settings"]

    st.header("Settings")

    st.subheader("Notifications")

    prev = (bool(s.get("notify_enabled", True)), bool(s.get("notify_toast", True)), bool(s.get("notify_banner", True)))

    notify_enabled = st.checkbox("Enable reminders", value=prev[0], key=f"{K}_notify_enabled")
    notify_toast = st.checkbox("Show toast notification", value=prev[1], key=f"{K}_notify_toast")
    notify_banner = st.checkbox("Show banner at top", value=prev[2], key=f"{K}_notify_banner")

    if (notify_enabled, notify_toast, notify_banner) != prev:
        s["notify_enabled"] = notify_enabled
        s["notify_toast"] = notify_toast
        s["notify_banner"] = notify_banner
        _persist(store.save)

    st.write("---")

    st.subheader("CSV export")
    csvs = export_user_csvs(store.data)
    cols = st.columns(len(csvs))
    for col, (name, text) in zip(cols, csvs.items()):
        with col:
            st.download_button(
                f"Download {name.replace('_', ' ')} CSV",
                data=text,
                file_name=f"{name}_{store.username}.csv",
                mime="text/csv",
                key=f"{K}_dl_{name}_csv",
            )

    st.write("---")
    st.subheader("Data info")
    if st.session_state.get("storage_mode") == "supabase":
        st.write("Your data is stored in Supabase (real multi-user).")
    else:
        st.write("Your data is stored on the server running this app (local JSON mode).")

    backup_obj = {
        "version": 1,
        "exported_at": datetime.datetime.now().isoformat(),
        "username": store.username,
        "user_data": store.data,
    }
    st.download_button(
        label="Download full backup (JSON)",
        data=json.dumps(backup_obj, indent=2, ensure_ascii=False, default=str).encode("utf-8"),
        file_name=f"student_organizer_backup_{store.username}.json",
        mime="application/json",
        key=f"{K}_download_backup",
    )


# -------------------------------
# Main
# -------------------------------

def main():
    st.set_page_config(page_title="Student Organizer", page_icon="🎓", layout="wide")
    init_app_state()

    st.title("🎓 Student Organizer")
    user_selector()

    if st.session_state.current_user is None:
        st.info("Sign in (or create/select a profile on the left) to get started.")
        return

    # In Supabase mode, current_user is UUID and current_username is email
    username = st.session_state.current_username or st.session_state.current_user
    store = open_store(username)

    maybe_show_notifications(store)

    tabs = st.tabs(["Assignments", "Course schedule", "Grades", "Reminders", "Settings"])

    with tabs[0]:
        assignments_view(store)
    with tabs[1]:
        schedule_view(store)
    with tabs[2]:
        grades_view(store)
    with tabs[3]:
        reminders_view(store)
    with tabs[4]:
        settings_view(store)


if __name__ == "__main__":
    main()
