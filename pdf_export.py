"""
🧠 PDF EXPORT — Baby-level explanation
======================================
Turns a finished grid into a clean, printable PDF.
- Light theme only (white background, black text)
- One table per class or per teacher: rows = periods, columns = days
- A4 landscape so a full week fits
"""

from io import BytesIO
from typing import Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from models import Grid, SchoolData
from views import TimetableView, class_view, teacher_view


def _light_theme_table_style() -> TableStyle:
    """Light theme: white/gray grid, black text."""
    return TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f0f0f0")),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#fafafa")]),
    ])


def _view_rows(view: TimetableView, grid: Grid) -> List[List[str]]:
    rows = [["Period"] + list(grid.days)]
    for period in grid.periods:
        label = f"{period.name}\n{period.start_time}-{period.end_time}"
        rows.append([label] + [view[day].get(period.id, "") for day in grid.days])
    return rows


def _build_pdf(title_prefix: str, views: Dict[str, TimetableView], grid: Grid) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4), leftMargin=1.5*cm, rightMargin=1.5*cm)
    styles = getSampleStyleSheet()
    story = []

    day_width = (landscape(A4)[0] - 3*cm - 3*cm) / max(1, len(grid.days))
    for name, view in views.items():
        t = Table(_view_rows(view, grid), colWidths=[3*cm] + [day_width] * len(grid.days))
        t.setStyle(_light_theme_table_style())
        story.append(Paragraph(f"<b>{title_prefix}: {name}</b>", styles["Heading2"]))
        story.append(Spacer(1, 0.3*cm))
        story.append(t)
        story.append(Spacer(1, 0.8*cm))

    doc.build(story)
    return buffer.getvalue()


def export_class_timetables_pdf(grid: Grid, school: SchoolData, class_ids: List[str] = None) -> bytes:
    """One table per class. class_ids limits which ones (default: all)."""
    classes = [c for c in school.classes if not class_ids or c.id in class_ids]
    views = {c.display_name or c.id: class_view(grid, school, c.id) for c in classes}
    return _build_pdf("Class", views, grid)


def export_teacher_timetables_pdf(grid: Grid, school: SchoolData, teacher_ids: List[str] = None) -> bytes:
    """One table per teacher. teacher_ids limits which ones (default: all)."""
    teachers = [t for t in school.teachers if not teacher_ids or t.id in teacher_ids]
    views = {t.name: teacher_view(grid, school, t.id) for t in teachers}
    return _build_pdf("Teacher", views, grid)
