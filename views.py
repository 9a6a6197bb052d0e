"""
📋 TIMETABLE VIEWS & TABLE EXPORT
=================================
Read-only ways to look at a finished grid:
- one class's week ("Mathematics - Ms. Achieng", "Break", "Free")
- one teacher's week ("Mathematics - Grade 7 East")
- search by teacher, class or subject
- pandas tables (rows = periods, columns = days) for CSV / Excel download
"""

import re
from io import BytesIO, StringIO
from typing import Dict, List

import pandas as pd

from models import BREAK, Grid, SchoolData

TimetableView = Dict[str, Dict[str, str]]  # day -> period id -> label

SEARCH_KINDS = ("teacher", "class", "subject")
SHEET_NAME_LIMIT = 31
_BAD_SHEET_CHARS = re.compile(r"[\\/?*\[\]:]")


def _break_label(kind: str) -> str:
    return "Break" if kind == BREAK else "Lunch"


def class_view(grid: Grid, school: SchoolData, class_id: str) -> TimetableView:
    view: TimetableView = {}
    for day in grid.days:
        view[day] = {}
        for period in grid.periods:
            slot = grid.slot(day, period.id, class_id)
            if slot.is_break:
                label = _break_label(period.kind)
            elif slot.has_lesson:
                subject = school.subject_by_id.get(slot.subject_id)
                teacher = school.teacher_by_id.get(slot.teacher_id)
                label = f"{subject.name if subject else 'Unknown'} - {teacher.name if teacher else 'Unknown'}"
            else:
                label = "Free"
            view[day][period.id] = label
    return view


def teacher_view(grid: Grid, school: SchoolData, teacher_id: str) -> TimetableView:
    """Flip the board: where is this teacher each period?"""
    view: TimetableView = {}
    for day in grid.days:
        view[day] = {}
        for period in grid.periods:
            label = "Free"
            for slot in grid.slots_at(day, period.id):
                if slot.teacher_id == teacher_id and not slot.is_break:
                    subject = school.subject_by_id.get(slot.subject_id)
                    cls = school.class_by_id.get(slot.class_id)
                    label = f"{subject.name if subject else 'Unknown'} - {cls.display_name if cls else ''}".strip()
                    break
            view[day][period.id] = label
    return view


def search_timetable(grid: Grid, school: SchoolData, query: str, kind: str = "teacher") -> List[dict]:
    """
    Lessons of the first teacher, class ("level stream") or subject whose name
    contains the query (case-insensitive). No match = empty list.
    """
    if kind not in SEARCH_KINDS:
        raise ValueError(f"Unknown search kind: {kind}")
    term = query.lower().strip()
    if not term:
        return []

    if kind == "teacher":
        match = next((t for t in school.teachers if term in t.name.lower()), None)
        field = "teacher_id"
    elif kind == "class":
        match = next((c for c in school.classes if term in c.display_name.lower()), None)
        field = "class_id"
    else:
        match = next((s for s in school.subjects if term in s.name.lower()), None)
        field = "subject_id"
    if match is None:
        return []

    results = []
    for slot in grid.lessons():
        if getattr(slot, field) != match.id:
            continue
        teacher = school.teacher_by_id.get(slot.teacher_id)
        subject = school.subject_by_id.get(slot.subject_id)
        cls = school.class_by_id.get(slot.class_id)
        results.append({
            "teacher": teacher.name if teacher else slot.teacher_id,
            "day": slot.day,
            "period": grid.period(slot.period_id).name,
            "subject": subject.name if subject else slot.subject_id,
            "class": cls.display_name if cls else slot.class_id,
        })
    return results


def view_to_frame(view: TimetableView, grid: Grid) -> pd.DataFrame:
    """Rows = periods (in time order, labelled by name), columns = days."""
    data = {day: [view.get(day, {}).get(p.id, "") for p in grid.periods] for day in grid.days}
    df = pd.DataFrame(data, index=[p.name for p in grid.periods])
    df.index.name = "Period"
    return df


def class_frames(grid: Grid, school: SchoolData) -> Dict[str, pd.DataFrame]:
    return {c.display_name or c.id: view_to_frame(class_view(grid, school, c.id), grid) for c in school.classes}


def teacher_frames(grid: Grid, school: SchoolData) -> Dict[str, pd.DataFrame]:
    return {t.name: view_to_frame(teacher_view(grid, school, t.id), grid) for t in school.teachers}


def export_csv(frames: Dict[str, pd.DataFrame]) -> bytes:
    """All tables in one CSV, each under a title row."""
    buffer = StringIO()
    for name, df in frames.items():
        buffer.write(f"{name}\n")
        df.to_csv(buffer)
        buffer.write("\n")
    return buffer.getvalue().encode("utf-8")


def sheet_names(names: List[str]) -> List[str]:
    """
    Excel-safe, unique sheet names: no \\ / ? * [ ] :, at most 31 chars.
    Repeats get " (2)", " (3)"... squeezed in under the limit.
    """
    taken = set()
    result = []
    for name in names:
        base = _BAD_SHEET_CHARS.sub("", name).strip()[:SHEET_NAME_LIMIT] or "Sheet"
        candidate, n = base, 1
        while candidate.lower() in taken:
            n += 1
            suffix = f" ({n})"
            candidate = base[:SHEET_NAME_LIMIT - len(suffix)] + suffix
        taken.add(candidate.lower())
        result.append(candidate)
    return result


def export_excel(frames: Dict[str, pd.DataFrame]) -> bytes:
    """One sheet per table."""
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet, df in zip(sheet_names(list(frames)), frames.values()):
            df.to_excel(writer, sheet_name=sheet)
    return buffer.getvalue()
