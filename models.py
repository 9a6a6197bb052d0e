"""
🧠 DATA MODELS — Baby-level explanation
========================================
These are little boxes that hold info about periods, subjects, classes and teachers.
The Grid is the big weekly board: one Slot per (day, period, class).
Think of a Slot as one square on that board: "Monday, Period 1, Grade 7 East -> Maths with Ms. K".
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple


LESSON = "lesson"
BREAK = "break"
LUNCH = "lunch"
PERIOD_KINDS = (LESSON, BREAK, LUNCH)

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
PRIORITIES = (HIGH, MEDIUM, LOW)

DEFAULT_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
MORNING_CUTOFF = "12:00"


def time_to_minutes(value: str) -> int:
    """'08:30' -> 510. Minutes since midnight."""
    hours, minutes = value.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


@dataclass
class Period:
    """
    One period of the school day.
    - kind: "lesson", "break" or "lunch". Only lesson periods ever hold a lesson.
    - start_time / end_time: "HH:MM"
    """

    id: str
    name: str
    start_time: str
    end_time: str
    kind: str = LESSON

    @property
    def is_lesson(self) -> bool:
        return self.kind == LESSON

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)


def is_morning_period(period: Period, cutoff: str = MORNING_CUTOFF) -> bool:
    """Morning = starts before noon (or whatever cutoff you pass)."""
    return period.start_minutes < time_to_minutes(cutoff)


@dataclass
class Subject:
    """
    One subject, e.g. Mathematics.
    - target_lessons_per_week: how many lessons every class should get
    - priority: "high", "medium" or "low"
    """

    id: str
    name: str
    target_lessons_per_week: int = 0
    priority: str = MEDIUM
    code: Optional[str] = None


@dataclass
class Class:
    """
    One class (e.g. Grade 7, stream East).
    - level: comparable like a grade ("7", "Form 2", "Grade 10")
    """

    id: str
    level: str
    stream: str = ""
    student_count: Optional[int] = None

    @property
    def display_name(self) -> str:
        return f"{self.level} {self.stream}".strip()


@dataclass
class TeacherPreferences:
    morning_preference: bool = False


@dataclass
class Teacher:
    """
    One teacher in the school.
    - subjects: Subject ids they can teach
    - class_levels: Class levels they can teach
    - availability: day -> period ids they are around for. Missing map or missing day = always around.
    """

    id: str
    name: str
    subjects: List[str] = field(default_factory=list)
    class_levels: List[str] = field(default_factory=list)
    availability: Optional[Dict[str, List[str]]] = None
    preferences: Optional[TeacherPreferences] = None

    def can_teach(self, subject_id: str, level: str) -> bool:
        return subject_id in self.subjects and level in self.class_levels

    def is_available(self, day: str, period_id: str) -> bool:
        if not self.availability or day not in self.availability:
            return True
        return period_id in self.availability[day]

    @property
    def prefers_morning(self) -> bool:
        return bool(self.preferences and self.preferences.morning_preference)


@dataclass
class Constraints:
    """School-wide rules and wishes. Passed into every pass, never read from globals."""

    max_daily_lessons: int = 6
    max_weekly_lessons: int = 25
    prefer_morning: bool = True
    balance_workload: bool = True
    min_lessons_per_subject: int = 3
    max_lessons_per_subject: int = 10


class SlotKey(NamedTuple):
    day: str
    period_id: str
    class_id: str


@dataclass
class Slot:
    """One square on the weekly board. Empty lesson slot = no subject, no teacher."""

    day: str
    period_id: str
    class_id: str
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None
    is_break: bool = False

    @property
    def key(self) -> SlotKey:
        return SlotKey(self.day, self.period_id, self.class_id)

    @property
    def has_lesson(self) -> bool:
        return self.subject_id is not None

    @property
    def is_free(self) -> bool:
        """A lesson slot nobody has filled yet."""
        return not self.is_break and self.subject_id is None

    def content(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.subject_id, self.teacher_id, self.room_id)

    def to_record(self) -> dict:
        return {
            "day": self.day,
            "period_id": self.period_id,
            "class_id": self.class_id,
            "subject_id": self.subject_id,
            "teacher_id": self.teacher_id,
            "room_id": self.room_id,
            "is_break": self.is_break,
        }


def _natural_key(text: str) -> list:
    """'Grade 10' sorts after 'Grade 9'."""
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", text)]


def level_ranks(levels: List[str]) -> Dict[str, int]:
    """Level -> rank (0 = lowest). Higher rank = harder to staff."""
    ordered = sorted(set(levels), key=_natural_key)
    return {level: i for i, level in enumerate(ordered)}


class Grid:
    """
    The weekly board: exactly one Slot per (day, period, class).

    Slots live in one dict keyed by SlotKey, so there is never a "missing" square.
    Break/lunch slots are stamped at construction and refuse lessons.
    """

    def __init__(self, days: List[str], periods: List[Period], class_ids: List[str]):
        self.days = list(days)
        self.periods = sorted(periods, key=lambda p: p.start_minutes)
        self.class_ids = list(class_ids)
        self._period_by_id = {p.id: p for p in self.periods}
        self._slots: Dict[SlotKey, Slot] = {}
        for day in self.days:
            for period in self.periods:
                for class_id in self.class_ids:
                    slot = Slot(day=day, period_id=period.id, class_id=class_id, is_break=not period.is_lesson)
                    self._slots[slot.key] = slot

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots.values())

    def __contains__(self, key) -> bool:
        return SlotKey(*key) in self._slots

    def __getitem__(self, key) -> Slot:
        return self._slots[SlotKey(*key)]

    @property
    def lesson_periods(self) -> List[Period]:
        return [p for p in self.periods if p.is_lesson]

    def period(self, period_id: str) -> Period:
        return self._period_by_id[period_id]

    def slot(self, day: str, period_id: str, class_id: str) -> Slot:
        return self._slots[SlotKey(day, period_id, class_id)]

    def slots_at(self, day: str, period_id: str) -> List[Slot]:
        return [self._slots[SlotKey(day, period_id, cid)] for cid in self.class_ids]

    def class_slots(self, class_id: str) -> List[Slot]:
        """All slots of one class in day order, then period order."""
        return [
            self._slots[SlotKey(day, p.id, class_id)]
            for day in self.days
            for p in self.periods
        ]

    def lessons(self) -> List[Slot]:
        return [s for s in self._slots.values() if s.has_lesson]

    # -- mutation -----------------------------------------------------------

    def assign(self, key, subject_id: str, teacher_id: str, room_id: Optional[str] = None) -> Slot:
        """Put a lesson in a slot. Breaks never take lessons; a lesson always has a teacher."""
        slot = self[key]
        if slot.is_break:
            raise ValueError(f"Cannot place a lesson in break slot {slot.key}")
        if not subject_id or not teacher_id:
            raise ValueError("A lesson needs both a subject and a teacher")
        slot.subject_id = subject_id
        slot.teacher_id = teacher_id
        slot.room_id = room_id
        return slot

    def clear(self, key) -> Slot:
        """Reset a slot to the canonical empty shape."""
        slot = self[key]
        slot.subject_id = None
        slot.teacher_id = None
        slot.room_id = None
        return slot

    # -- lookups ------------------------------------------------------------

    def teacher_busy(self, teacher_id: str, day: str, period_id: str, exclude_class: Optional[str] = None) -> bool:
        """Is the teacher already in some (other) class at this day/period?"""
        for cid in self.class_ids:
            if cid == exclude_class:
                continue
            if self._slots[SlotKey(day, period_id, cid)].teacher_id == teacher_id:
                return True
        return False

    def teacher_loads(self, teacher_ids: Optional[List[str]] = None) -> Dict[str, int]:
        """Teacher -> lessons this week. Listed teachers start at 0."""
        loads: Dict[str, int] = {tid: 0 for tid in (teacher_ids or [])}
        for slot in self._slots.values():
            if slot.teacher_id and not slot.is_break:
                loads[slot.teacher_id] = loads.get(slot.teacher_id, 0) + 1
        return loads

    def teacher_daily_load(self, teacher_id: str, day: str) -> int:
        return sum(
            1
            for p in self.lesson_periods
            for cid in self.class_ids
            if self._slots[SlotKey(day, p.id, cid)].teacher_id == teacher_id
        )

    def subject_counts(self, class_id: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for slot in self.class_slots(class_id):
            if slot.subject_id:
                counts[slot.subject_id] = counts.get(slot.subject_id, 0) + 1
        return counts

    # -- snapshots & records ------------------------------------------------

    def snapshot(self) -> Dict[SlotKey, Tuple[Optional[str], Optional[str], Optional[str]]]:
        return {key: slot.content() for key, slot in self._slots.items() if slot.has_lesson}

    def restore(self, snapshot: Dict[SlotKey, Tuple[Optional[str], Optional[str], Optional[str]]]) -> None:
        for key, slot in self._slots.items():
            subject_id, teacher_id, room_id = snapshot.get(key, (None, None, None))
            slot.subject_id, slot.teacher_id, slot.room_id = subject_id, teacher_id, room_id

    def to_records(self) -> List[dict]:
        """Flat list of slot records, the shape the entity store keeps."""
        return [slot.to_record() for slot in self._slots.values()]

    @classmethod
    def from_records(
        cls,
        records: List[dict],
        days: List[str],
        periods: List[Period],
        class_ids: List[str],
    ) -> "Grid":
        """Rebuild a grid from stored records. Unknown keys are skipped; breaks stay breaks."""
        grid = cls(days, periods, class_ids)
        for rec in records:
            key = SlotKey(rec["day"], rec["period_id"], rec["class_id"])
            if key not in grid._slots or grid._slots[key].is_break:
                continue
            if rec.get("subject_id") and rec.get("teacher_id"):
                grid.assign(key, rec["subject_id"], rec["teacher_id"], rec.get("room_id"))
        return grid


class Ledger:
    """
    Running tallies over a grid so the passes don't rescan the whole board.
    - teacher_load: teacher -> lessons this week
    - teacher_day: (teacher, day) -> lessons that day
    - class_day: (class, day) -> lessons that day
    - subject_count: (class, subject) -> lessons this week
    - busy: (teacher, day, period) -> classes the teacher is in right then
    """

    def __init__(self, grid: Optional[Grid] = None):
        self.teacher_load: Dict[str, int] = {}
        self.teacher_day: Dict[Tuple[str, str], int] = {}
        self.class_day: Dict[Tuple[str, str], int] = {}
        self.subject_count: Dict[Tuple[str, str], int] = {}
        self.busy: Dict[Tuple[str, str, str], set] = {}
        if grid is not None:
            for slot in grid.lessons():
                self.add(slot)

    def add(self, slot: Slot) -> None:
        tid, day, cid = slot.teacher_id, slot.day, slot.class_id
        self.teacher_load[tid] = self.teacher_load.get(tid, 0) + 1
        self.teacher_day[(tid, day)] = self.teacher_day.get((tid, day), 0) + 1
        self.class_day[(cid, day)] = self.class_day.get((cid, day), 0) + 1
        self.subject_count[(cid, slot.subject_id)] = self.subject_count.get((cid, slot.subject_id), 0) + 1
        self.busy.setdefault((tid, day, slot.period_id), set()).add(cid)

    def remove(self, slot: Slot) -> None:
        tid, day, cid = slot.teacher_id, slot.day, slot.class_id
        self.teacher_load[tid] -= 1
        self.teacher_day[(tid, day)] -= 1
        self.class_day[(cid, day)] -= 1
        self.subject_count[(cid, slot.subject_id)] -= 1
        self.busy[(tid, day, slot.period_id)].discard(cid)

    def is_busy(self, teacher_id: str, day: str, period_id: str, exclude_class: Optional[str] = None) -> bool:
        classes = self.busy.get((teacher_id, day, period_id), set())
        return bool(classes - {exclude_class}) if exclude_class else bool(classes)

    def can_take(
        self,
        teacher: Teacher,
        day: str,
        period_id: str,
        constraints: Constraints,
        exclude_class: Optional[str] = None,
    ) -> bool:
        """Free right then, around that day, and still under the daily/weekly caps."""
        if not teacher.is_available(day, period_id):
            return False
        if self.is_busy(teacher.id, day, period_id, exclude_class):
            return False
        if self.teacher_day.get((teacher.id, day), 0) >= constraints.max_daily_lessons:
            return False
        return self.teacher_load.get(teacher.id, 0) < constraints.max_weekly_lessons


@dataclass
class SchoolData:
    """Everything the engine reads: the entity set plus the rules."""

    periods: List[Period]
    subjects: List[Subject]
    classes: List[Class]
    teachers: List[Teacher]
    constraints: Constraints = field(default_factory=Constraints)
    days: List[str] = field(default_factory=lambda: list(DEFAULT_DAYS))

    def __post_init__(self):
        self.subject_by_id: Dict[str, Subject] = {s.id: s for s in self.subjects}
        self.class_by_id: Dict[str, Class] = {c.id: c for c in self.classes}
        self.teacher_by_id: Dict[str, Teacher] = {t.id: t for t in self.teachers}
        self.period_by_id: Dict[str, Period] = {p.id: p for p in self.periods}

    @property
    def lesson_periods(self) -> List[Period]:
        return sorted((p for p in self.periods if p.is_lesson), key=lambda p: p.start_minutes)

    def eligible_teachers(self, subject_id: str, level: str) -> List[Teacher]:
        return [t for t in self.teachers if t.can_teach(subject_id, level)]

    def teachers_for_class(self, class_id: str) -> List[Teacher]:
        """Teachers who can teach this class at least one subject."""
        level = self.class_by_id[class_id].level
        return [t for t in self.teachers if level in t.class_levels and t.subjects]


def initialize_grid(school: SchoolData) -> Grid:
    """
    Build the empty week x period x class board and stamp breaks/lunch.
    Like drawing the empty timetable before writing anything in it.
    """
    return Grid(school.days, school.periods, [c.id for c in school.classes])
