"""
🔥 HEATMAPS
===========
Visual heatmaps for teacher load, day congestion and subject coverage.
Uses pandas Styler for cell coloring.
"""

from typing import Dict

import pandas as pd

from models import Grid, SchoolData


def _color_scale(val: float, low_rgb: str = "#22c55e", mid_rgb: str = "#eab308", high_rgb: str = "#ef4444") -> str:
    """Value 0-1 -> green (light) to red (overloaded)."""
    if val <= 0:
        return f"background-color: {low_rgb}; color: white;"
    if val >= 1:
        return f"background-color: {high_rgb}; color: white;"
    if val < 0.5:
        return f"background-color: {mid_rgb}; color: black;"
    return f"background-color: {high_rgb}; color: white;"


def teacher_daily_loads(grid: Grid, school: SchoolData) -> Dict[str, Dict[str, int]]:
    """Teacher name -> day -> lessons."""
    names = {t.id: t.name for t in school.teachers}
    loads: Dict[str, Dict[str, int]] = {t.name: {d: 0 for d in grid.days} for t in school.teachers}
    for slot in grid.lessons():
        name = names.get(slot.teacher_id, slot.teacher_id)
        loads.setdefault(name, {d: 0 for d in grid.days})
        loads[name][slot.day] += 1
    return loads


def day_congestion(grid: Grid) -> Dict[str, int]:
    """Day -> total lessons across all classes."""
    totals = {d: 0 for d in grid.days}
    for slot in grid.lessons():
        totals[slot.day] += 1
    return totals


def subject_coverage(grid: Grid, school: SchoolData) -> Dict[str, Dict[str, float]]:
    """Class -> subject -> delivered/target (1.0 = on target). Subjects with no target are left out."""
    result = {}
    for cls in school.classes:
        counts = grid.subject_counts(cls.id)
        result[cls.display_name or cls.id] = {
            s.name: counts.get(s.id, 0) / s.target_lessons_per_week
            for s in school.subjects
            if s.target_lessons_per_week
        }
    return result


def render_teacher_load_heatmap(loads: Dict[str, Dict[str, int]], max_daily: int):
    """Rows=teachers, Cols=days. Color by load vs the daily limit."""
    df = pd.DataFrame.from_dict(loads, orient="index").sort_index()

    def _style(val):
        if pd.isna(val):
            return ""
        return _color_scale(val / max_daily if max_daily else 0)

    return df.style.map(_style).set_caption("Teacher Load (red = at or over the daily limit)")


def render_day_congestion_heatmap(totals: Dict[str, int]):
    """One row: lessons per day."""
    df = pd.DataFrame([totals], index=["Lessons"])
    max_val = max(totals.values()) if totals else 0

    def _style(val):
        return _color_scale(val / max_val if max_val else 0)

    return df.style.map(_style).set_caption("Day Congestion")


def render_subject_coverage_heatmap(coverage: Dict[str, Dict[str, float]]):
    """Rows=classes, Cols=subjects. Green = on target, red = far off."""
    df = pd.DataFrame.from_dict(coverage, orient="index")

    def _style(val):
        if pd.isna(val):
            return ""
        return _color_scale(min(1.0, abs(1.0 - val) * 2))

    return df.style.map(_style).format("{:.0%}").set_caption("Subject Coverage (delivered / target)")
