"""
🧠 STORAGE — File-based persistence
===================================
All data saved to disk as JSON. Refresh → everything still there.
The timetable is stored as a flat list of slot records:
day, period_id, class_id, subject_id, teacher_id, room_id, is_break.
"""

import json
import logging
import os
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from models import (
    DEFAULT_DAYS,
    Class,
    Constraints,
    Grid,
    Period,
    SchoolData,
    Subject,
    Teacher,
    TeacherPreferences,
)


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("TIMETABLE_DATA_DIR", Path(__file__).parent / "data"))
PERIODS_FILE = "periods.json"
SUBJECTS_FILE = "subjects.json"
CLASSES_FILE = "classes.json"
TEACHERS_FILE = "teachers.json"
CONSTRAINTS_FILE = "constraints.json"
DAYS_FILE = "days.json"
TIMETABLE_FILE = "timetable.json"
HISTORY_FILE = "history.json"
HISTORY_LIMIT = 500


def _path(name: str, data_dir: Optional[Path] = None) -> Path:
    """Resolve a data file and make sure its folder exists."""
    folder = Path(data_dir) if data_dir is not None else DATA_DIR
    folder.mkdir(parents=True, exist_ok=True)
    return folder / name


def _read(name: str, default, data_dir: Optional[Path] = None):
    path = _path(name, data_dir)
    if not path.exists():
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError:
        logger.warning("Could not read %s, using defaults", path)
        return default


def _write(name: str, data, data_dir: Optional[Path] = None) -> None:
    with open(_path(name, data_dir), "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def _dict_to_teacher(d: dict) -> Teacher:
    """Convert dict from JSON back to Teacher."""
    prefs = d.get("preferences")
    return Teacher(
        id=d["id"],
        name=d.get("name", d["id"]),
        subjects=d.get("subjects", []),
        class_levels=d.get("class_levels", []),
        availability=d.get("availability"),
        preferences=TeacherPreferences(**prefs) if prefs else None,
    )


def load_periods(data_dir: Optional[Path] = None) -> List[Period]:
    try:
        return [Period(**d) for d in _read(PERIODS_FILE, [], data_dir)]
    except (TypeError, KeyError):
        logger.warning("Periods file is malformed, ignoring it")
        return []


def save_periods(periods: List[Period], data_dir: Optional[Path] = None) -> None:
    _write(PERIODS_FILE, [asdict(p) for p in periods], data_dir)


def load_subjects(data_dir: Optional[Path] = None) -> List[Subject]:
    try:
        return [Subject(**d) for d in _read(SUBJECTS_FILE, [], data_dir)]
    except (TypeError, KeyError):
        logger.warning("Subjects file is malformed, ignoring it")
        return []


def save_subjects(subjects: List[Subject], data_dir: Optional[Path] = None) -> None:
    _write(SUBJECTS_FILE, [asdict(s) for s in subjects], data_dir)


def load_classes(data_dir: Optional[Path] = None) -> List[Class]:
    try:
        return [Class(**d) for d in _read(CLASSES_FILE, [], data_dir)]
    except (TypeError, KeyError):
        logger.warning("Classes file is malformed, ignoring it")
        return []


def save_classes(classes: List[Class], data_dir: Optional[Path] = None) -> None:
    _write(CLASSES_FILE, [asdict(c) for c in classes], data_dir)


def load_teachers(data_dir: Optional[Path] = None) -> List[Teacher]:
    """Load all teachers from disk. Returns empty list if file doesn't exist."""
    try:
        return [_dict_to_teacher(d) for d in _read(TEACHERS_FILE, [], data_dir)]
    except (TypeError, KeyError):
        logger.warning("Teachers file is malformed, ignoring it")
        return []


def save_teachers(teachers: List[Teacher], data_dir: Optional[Path] = None) -> None:
    """Save all teachers to disk. Overwrites existing file."""
    _write(TEACHERS_FILE, [asdict(t) for t in teachers], data_dir)


def load_constraints(data_dir: Optional[Path] = None) -> Constraints:
    """Saved rules, or the defaults (6 a day, 25 a week, mornings preferred...)."""
    data = _read(CONSTRAINTS_FILE, {}, data_dir)
    known = {k: v for k, v in data.items() if k in Constraints.__dataclass_fields__}
    return Constraints(**known)


def save_constraints(constraints: Constraints, data_dir: Optional[Path] = None) -> None:
    _write(CONSTRAINTS_FILE, asdict(constraints), data_dir)


def load_days(data_dir: Optional[Path] = None) -> List[str]:
    return _read(DAYS_FILE, None, data_dir) or list(DEFAULT_DAYS)


def save_days(days: List[str], data_dir: Optional[Path] = None) -> None:
    _write(DAYS_FILE, list(days), data_dir)


def load_school(data_dir: Optional[Path] = None) -> SchoolData:
    """Everything the engine needs, in one go."""
    return SchoolData(
        periods=load_periods(data_dir),
        subjects=load_subjects(data_dir),
        classes=load_classes(data_dir),
        teachers=load_teachers(data_dir),
        constraints=load_constraints(data_dir),
        days=load_days(data_dir),
    )


def save_school(school: SchoolData, data_dir: Optional[Path] = None) -> None:
    save_periods(school.periods, data_dir)
    save_subjects(school.subjects, data_dir)
    save_classes(school.classes, data_dir)
    save_teachers(school.teachers, data_dir)
    save_constraints(school.constraints, data_dir)
    save_days(school.days, data_dir)


def save_grid(grid: Grid, data_dir: Optional[Path] = None) -> None:
    """Save the timetable as flat slot records."""
    _write(TIMETABLE_FILE, grid.to_records(), data_dir)


def load_grid(school: SchoolData, data_dir: Optional[Path] = None) -> Optional[Grid]:
    """Load the saved timetable onto the current periods/classes. None if nothing saved."""
    records = _read(TIMETABLE_FILE, None, data_dir)
    if not records:
        return None
    try:
        return Grid.from_records(records, school.days, school.periods, [c.id for c in school.classes])
    except (KeyError, ValueError):
        logger.warning("Saved timetable is malformed, ignoring it")
        return None


def clear_grid(data_dir: Optional[Path] = None) -> None:
    path = _path(TIMETABLE_FILE, data_dir)
    if path.exists():
        path.unlink()


def load_history(data_dir: Optional[Path] = None) -> List[dict]:
    """Load activity history. Newest first."""
    return _read(HISTORY_FILE, [], data_dir)


def append_history(action: str, target: str, summary: str, details: str = "", data_dir: Optional[Path] = None) -> None:
    """Append one history entry. Keeps last 500 entries."""
    history = load_history(data_dir)
    entry = {
        "ts": datetime.now().isoformat(),
        "action": action,
        "target": target,
        "summary": summary,
        "details": details,
    }
    history.insert(0, entry)
    _write(HISTORY_FILE, history[:HISTORY_LIMIT], data_dir)
