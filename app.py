"""
🧠 SCHOOL TIMETABLE BUILDER
===========================
- Set up periods, subjects, classes, teachers and rules (saved to disk)
- Check the setup, then generate a full week in one click
- Move single lessons by hand, with undo/redo and live score
- Download PDF / CSV / Excel
Run: streamlit run app.py
"""

import logging
import threading
from datetime import datetime

import pandas as pd
import streamlit as st

from editing import EditHistory, ProposedChange, check_hard_constraints
from errors import GenerationCancelled, GenerationInProgress, PreconditionError
from heatmaps import (
    day_congestion, render_day_congestion_heatmap, render_subject_coverage_heatmap,
    render_teacher_load_heatmap, subject_coverage, teacher_daily_loads,
)
from models import (
    DEFAULT_DAYS, PERIOD_KINDS, PRIORITIES, Class, Constraints, Period, SchoolData,
    Subject, Teacher, TeacherPreferences,
)
from pdf_export import export_class_timetables_pdf, export_teacher_timetables_pdf
from scoring import score_breakdown
from solver import TimetableGenerator
from storage import (
    append_history, load_grid, load_history, load_school, save_grid, save_school,
)
from validator import validate_school
from views import (
    SEARCH_KINDS, class_frames, class_view, export_csv, export_excel, search_timetable,
    teacher_frames, teacher_view, view_to_frame,
)


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

st.set_page_config(page_title="School Timetable Builder", page_icon="📅", layout="wide")


# ---------------------------------------------------------------------------
# SESSION STATE — Load from disk
# ---------------------------------------------------------------------------

def _init_session():
    if "initialized" not in st.session_state:
        st.session_state.school = load_school()
        st.session_state.grid = load_grid(st.session_state.school)
        st.session_state.generator = TimetableGenerator()
        st.session_state.cancel = threading.Event()
        st.session_state.edits = None
        st.session_state.last_result = None
        st.session_state.initialized = True
    if st.session_state.grid is not None and st.session_state.edits is None:
        st.session_state.edits = EditHistory(st.session_state.grid, st.session_state.school)


_init_session()


def _set_school(school: SchoolData) -> None:
    """Persist a new setup. The old timetable no longer matches it."""
    save_school(school)
    st.session_state.school = school
    st.session_state.grid = None
    st.session_state.edits = None


def _split(text) -> list:
    return [part.strip() for part in str(text or "").split(",") if part.strip()]


def _rows(df: pd.DataFrame) -> list:
    """Editor rows that have an id."""
    return [r for r in df.to_dict("records") if str(r.get("id") or "").strip()]


# ---------------------------------------------------------------------------
# DEMO DATA — Predefined for quick testing
# ---------------------------------------------------------------------------

def _demo_school() -> SchoolData:
    periods = [
        Period("p1", "Period 1", "08:00", "08:40"),
        Period("p2", "Period 2", "08:40", "09:20"),
        Period("b1", "Break", "09:20", "09:40", "break"),
        Period("p3", "Period 3", "09:40", "10:20"),
        Period("p4", "Period 4", "10:20", "11:00"),
        Period("l1", "Lunch", "12:20", "13:00", "lunch"),
        Period("p5", "Period 5", "13:00", "13:40"),
        Period("p6", "Period 6", "13:40", "14:20"),
    ]
    subjects = [
        Subject("math", "Mathematics", 6, "high", "MAT"),
        Subject("eng", "English", 5, "high", "ENG"),
        Subject("sci", "Science", 4, "medium", "SCI"),
        Subject("hist", "History", 3, "low", "HIS"),
    ]
    classes = [Class("7e", "7", "East", 38), Class("7w", "7", "West", 36), Class("8e", "8", "East", 40)]
    teachers = [
        Teacher("t1", "Grace Achieng", ["math"], ["7", "8"], preferences=TeacherPreferences(True)),
        Teacher("t2", "Peter Otieno", ["math", "sci"], ["7", "8"]),
        Teacher("t3", "Mary Wanjiru", ["eng"], ["7", "8"]),
        Teacher("t4", "John Kamau", ["eng", "hist"], ["7", "8"]),
        Teacher("t5", "Ann Mwangi", ["sci", "hist"], ["7", "8"]),
    ]
    return SchoolData(periods, subjects, classes, teachers, Constraints())


# ---------------------------------------------------------------------------
# SIDEBAR — Rules (persisted)
# ---------------------------------------------------------------------------

st.sidebar.title("⚙️ School Rules")
school: SchoolData = st.session_state.school
rules = school.constraints

with st.sidebar.form("rules_form"):
    days_input = st.text_input("Days (comma-separated)", value=",".join(school.days or DEFAULT_DAYS))
    max_daily = st.number_input("Max lessons per teacher per day", 1, 20, rules.max_daily_lessons)
    max_weekly = st.number_input("Max lessons per teacher per week", 1, 100, rules.max_weekly_lessons)
    min_subject = st.number_input("Min lessons per subject", 0, 50, rules.min_lessons_per_subject)
    max_subject = st.number_input("Max lessons per subject", 0, 50, rules.max_lessons_per_subject)
    prefer_morning = st.checkbox("Core subjects in the morning", rules.prefer_morning)
    balance = st.checkbox("Balance teacher workload", rules.balance_workload)
    if st.form_submit_button("Save rules"):
        school.days = _split(days_input) or list(DEFAULT_DAYS)
        school.constraints = Constraints(
            max_daily_lessons=int(max_daily),
            max_weekly_lessons=int(max_weekly),
            prefer_morning=prefer_morning,
            balance_workload=balance,
            min_lessons_per_subject=int(min_subject),
            max_lessons_per_subject=int(max_subject),
        )
        _set_school(school)
        append_history("edit", "Rules", "Updated school rules")
        st.toast("Rules saved")
        st.rerun()

if st.sidebar.button("Load demo school"):
    _set_school(_demo_school())
    append_history("add", "Demo", "Loaded demo school")
    st.rerun()


tab_setup, tab_generate, tab_edit, tab_export, tab_history = st.tabs(
    ["📝 Setup", "🚀 Generate", "✋ Edit", "📥 Export", "🕓 History"]
)


# ----- TAB 1: Setup -----
with tab_setup:
    st.header("School Setup")
    st.caption("Edit the tables, then press Save. Lists are comma-separated ids.")

    periods_df = st.data_editor(
        pd.DataFrame([vars(p) for p in school.periods], columns=["id", "name", "start_time", "end_time", "kind"]),
        num_rows="dynamic", key="periods_editor",
        column_config={"kind": st.column_config.SelectboxColumn("kind", options=list(PERIOD_KINDS))},
    )
    subjects_df = st.data_editor(
        pd.DataFrame([vars(s) for s in school.subjects], columns=["id", "name", "code", "target_lessons_per_week", "priority"]),
        num_rows="dynamic", key="subjects_editor",
        column_config={"priority": st.column_config.SelectboxColumn("priority", options=list(PRIORITIES))},
    )
    classes_df = st.data_editor(
        pd.DataFrame([vars(c) for c in school.classes], columns=["id", "level", "stream", "student_count"]),
        num_rows="dynamic", key="classes_editor",
    )
    teachers_df = st.data_editor(
        pd.DataFrame(
            [
                {
                    "id": t.id,
                    "name": t.name,
                    "subjects": ",".join(t.subjects),
                    "class_levels": ",".join(t.class_levels),
                    "morning_preference": t.prefers_morning,
                }
                for t in school.teachers
            ],
            columns=["id", "name", "subjects", "class_levels", "morning_preference"],
        ),
        num_rows="dynamic", key="teachers_editor",
    )

    if st.button("💾 Save setup", type="primary"):
        availability = {t.id: t.availability for t in school.teachers}
        new_school = SchoolData(
            periods=[Period(str(r["id"]), str(r["name"]), str(r["start_time"]), str(r["end_time"]), r["kind"] or "lesson") for r in _rows(periods_df)],
            subjects=[
                Subject(str(r["id"]), str(r["name"]), int(r["target_lessons_per_week"] or 0), r["priority"] or "medium", r["code"] if isinstance(r["code"], str) and r["code"] else None)
                for r in _rows(subjects_df)
            ],
            classes=[
                Class(str(r["id"]), str(r["level"]), str(r["stream"] or ""), int(r["student_count"]) if pd.notna(r["student_count"]) else None)
                for r in _rows(classes_df)
            ],
            teachers=[
                Teacher(
                    str(r["id"]), str(r["name"]), _split(r["subjects"]), _split(r["class_levels"]),
                    availability=availability.get(str(r["id"])),
                    preferences=TeacherPreferences(r["morning_preference"] is True),
                )
                for r in _rows(teachers_df)
            ],
            constraints=school.constraints,
            days=school.days,
        )
        _set_school(new_school)
        append_history("edit", "Setup", "Saved school setup")
        st.toast("Setup saved")
        st.rerun()

    issues = validate_school(school)
    if issues:
        st.warning("Setup check found issues:\n\n" + "\n".join(f"- {i}" for i in issues))
    else:
        st.success("Setup check passed.")


# ----- TAB 2: Generate -----
with tab_generate:
    st.header("Generate Timetable")
    col_go, col_stop = st.columns([1, 1])
    with col_stop:
        if st.button("⏹ Stop"):
            st.session_state.cancel.set()
    with col_go:
        go = st.button("🚀 Generate Timetable", type="primary")

    if go:
        st.session_state.cancel.clear()
        bar = st.progress(0, text="Starting...")
        try:
            result = st.session_state.generator.generate(
                school,
                cancel=st.session_state.cancel,
                progress=lambda pct, msg: bar.progress(pct, text=f"{msg}... {pct}%"),
            )
        except PreconditionError as e:
            st.error(str(e))
        except GenerationInProgress:
            st.warning("A timetable is already being generated.")
        except GenerationCancelled:
            st.info("Generation stopped. Nothing was saved.")
        else:
            st.session_state.grid = result.grid
            st.session_state.edits = EditHistory(result.grid, school)
            st.session_state.last_result = result
            save_grid(result.grid)
            append_history(
                "generate", "Timetable",
                f"Generated timetable (score {result.score})",
                "; ".join(str(w) for w in result.warnings),
            )
            st.toast("Timetable generated!")

    result = st.session_state.last_result
    if result is not None:
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Lessons placed", result.assigned)
        c2.metric("Score", result.score)
        c3.metric("Conflicts fixed", result.resolved_conflicts)
        c4.metric("Attempts", result.attempts)
        for warning in result.warnings:
            st.warning(str(warning))

    grid = st.session_state.grid
    if grid is not None:
        for cls in school.classes:
            st.subheader(cls.display_name or cls.id)
            st.dataframe(view_to_frame(class_view(grid, school, cls.id), grid), use_container_width=True)
        st.subheader("Heatmaps")
        st.dataframe(render_teacher_load_heatmap(teacher_daily_loads(grid, school), school.constraints.max_daily_lessons))
        st.dataframe(render_day_congestion_heatmap(day_congestion(grid)))
        st.dataframe(render_subject_coverage_heatmap(subject_coverage(grid, school)))
    else:
        st.info("Generate a timetable first.")


# ----- TAB 3: Manual edits -----
with tab_edit:
    st.header("Move a Lesson")
    grid = st.session_state.grid
    edits: EditHistory = st.session_state.edits
    if grid is None or not school.classes:
        st.info("Generate a timetable first.")
    else:
        period_names = {p.id: p.name for p in grid.periods}
        class_names = {c.id: c.display_name or c.id for c in school.classes}
        with st.form("move_form"):
            c1, c2 = st.columns(2)
            with c1:
                st.markdown("**From**")
                src_class = st.selectbox("Class", list(class_names), format_func=class_names.get, key="src_c")
                src_day = st.selectbox("Day", grid.days, key="src_d")
                src_period = st.selectbox("Period", list(period_names), format_func=period_names.get, key="src_p")
            with c2:
                st.markdown("**To**")
                dst_class = st.selectbox("Class", list(class_names), format_func=class_names.get, key="dst_c")
                dst_day = st.selectbox("Day", grid.days, key="dst_d")
                dst_period = st.selectbox("Period", list(period_names), format_func=period_names.get, key="dst_p")
            if st.form_submit_button("Move"):
                source = (src_day, src_period, src_class)
                target = (dst_day, dst_period, dst_class)
                lesson = grid[source]
                problems = check_hard_constraints(
                    ProposedChange(dst_day, dst_period, dst_class, lesson.subject_id, lesson.teacher_id, lesson.room_id),
                    grid, school, source=source,
                ) if lesson.has_lesson else []
                result = edits.move(source, target) if not problems else None
                if result:
                    save_grid(grid)
                    append_history("edit", "Timetable", result.message, f"{source} -> {target}")
                    st.success(result.message)
                else:
                    st.error("; ".join(problems) if problems else result.message)

        u1, u2 = st.columns(2)
        if u1.button("↩️ Undo", disabled=not edits.can_undo):
            outcome = edits.undo()
            if outcome:
                save_grid(grid)
            st.toast(outcome.message)
        if u2.button("↪️ Redo", disabled=not edits.can_redo):
            outcome = edits.redo()
            if outcome:
                save_grid(grid)
            st.toast(outcome.message)

        breakdown = score_breakdown(grid, school)
        st.metric("Current score", breakdown.total)
        st.caption(
            f"Frequency penalty {breakdown.frequency_penalty:g} · preference penalty "
            f"{breakdown.preference_penalty:g} · imbalance penalty {breakdown.imbalance_penalty:.1f}"
        )

        s1, s2 = st.columns([1, 3])
        search_kind = s1.selectbox("Search by", list(SEARCH_KINDS), format_func=str.capitalize)
        query = s2.text_input("Find lessons")
        if query:
            found = search_timetable(grid, school, query, search_kind)
            if found:
                st.dataframe(pd.DataFrame(found), hide_index=True)
            else:
                st.info("No lessons found.")

        teacher_names = {t.id: t.name for t in school.teachers}
        if teacher_names:
            pick = st.selectbox("Teacher timetable", list(teacher_names), format_func=teacher_names.get)
            st.dataframe(view_to_frame(teacher_view(grid, school, pick), grid), use_container_width=True)


# ----- TAB 4: Export -----
with tab_export:
    st.header("📥 Export")
    grid = st.session_state.grid
    if grid is None:
        st.info("Generate a timetable first.")
    else:
        stamp = datetime.now().strftime("%Y%m%d")
        kind = st.radio("Timetables for", ["Classes", "Teachers"], horizontal=True)
        frames = class_frames(grid, school) if kind == "Classes" else teacher_frames(grid, school)
        pdf = export_class_timetables_pdf(grid, school) if kind == "Classes" else export_teacher_timetables_pdf(grid, school)
        name = f"{kind.lower()}_timetables_{stamp}"
        c1, c2, c3 = st.columns(3)
        if c1.download_button("PDF", pdf, f"{name}.pdf", "application/pdf"):
            append_history("export", kind, f"Exported {kind.lower()} PDF")
        if c2.download_button("CSV", export_csv(frames), f"{name}.csv", "text/csv"):
            append_history("export", kind, f"Exported {kind.lower()} CSV")
        if c3.download_button(
            "Excel", export_excel(frames), f"{name}.xlsx",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ):
            append_history("export", kind, f"Exported {kind.lower()} Excel")


# ----- TAB 5: History -----
with tab_history:
    st.header("🕓 History")
    history = load_history()
    if history:
        for entry in history:
            ts = entry.get("ts", "")
            try:
                ts_fmt = datetime.fromisoformat(ts).strftime("%Y-%m-%d %H:%M")
            except (ValueError, TypeError):
                ts_fmt = ts
            icon = {"add": "➕", "edit": "✏️", "generate": "🚀", "export": "📥"}.get(entry.get("action"), "•")
            with st.expander(f"{icon} {ts_fmt} — {entry.get('summary', '')}"):
                st.markdown(f"**Action:** {entry.get('action', '')} | **Target:** {entry.get('target', '')}")
                if entry.get("details"):
                    st.caption(entry["details"])
    else:
        st.info("No history yet. Actions will appear here.")
