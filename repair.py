"""
🛠️ REPAIR & OPTIMIZATION PASSES
================================
Run after the greedy fill, in this order:
1. resolve_conflicts: a teacher booked in two classes at once gets one lesson moved (or dropped).
2. balance_workload: busy teachers hand lessons to quiet ones who can teach them.
3. optimize_distribution: classes still short on a subject get empty squares filled.

All passes edit the grid in place and return how much they changed.
"""

import logging
from dataclasses import dataclass
from typing import List

from errors import raise_if_cancelled
from models import Grid, Ledger, SchoolData, SlotKey


logger = logging.getLogger(__name__)

IMBALANCE_THRESHOLD = 2


# ---------------------------------------------------------------------------
# CONFLICT RESOLVER
# ---------------------------------------------------------------------------


@dataclass
class Conflict:
    day: str
    period_id: str
    teacher_id: str
    class_ids: List[str]


@dataclass
class ConflictStats:
    resolved: int = 0
    unresolved: int = 0
    iterations: int = 0


def find_conflicts(grid: Grid) -> List[Conflict]:
    """Every (day, period) where one teacher shows up in more than one class."""
    conflicts = []
    for day in grid.days:
        for period in grid.lesson_periods:
            by_teacher = {}
            for slot in grid.slots_at(day, period.id):
                if slot.is_break or not slot.teacher_id:
                    continue
                by_teacher.setdefault(slot.teacher_id, []).append(slot.class_id)
            for teacher_id, class_ids in by_teacher.items():
                if len(class_ids) > 1:
                    conflicts.append(Conflict(day, period.id, teacher_id, class_ids))
    return conflicts


def relocate_lesson(grid: Grid, ledger: Ledger, school: SchoolData, key: SlotKey) -> bool:
    """
    Move one lesson to another empty square of the same class where its teacher is free.
    Same day first, then the rest of the week in order.
    """
    slot = grid[key]
    teacher = school.teacher_by_id.get(slot.teacher_id)
    subject_id, teacher_id, room_id = slot.content()
    ledger.remove(slot)

    days = [key.day] + [d for d in grid.days if d != key.day]
    for day in days:
        for period in grid.lesson_periods:
            target = grid.slot(day, period.id, key.class_id)
            if not target.is_free:
                continue
            if teacher is not None:
                if not ledger.can_take(teacher, day, period.id, school.constraints):
                    continue
            elif ledger.is_busy(teacher_id, day, period.id):
                continue
            grid.clear(key)
            grid.assign(target.key, subject_id, teacher_id, room_id)
            ledger.add(target)
            logger.debug("Moved %s lesson for %s from %s to %s", subject_id, teacher_id, key, target.key)
            return True

    ledger.add(slot)
    return False


def resolve_conflicts(grid: Grid, school: SchoolData, cancel=None, max_iterations: int = 100) -> ConflictStats:
    """
    Keep the first class in each clash and try to move the others.
    Stops when a round fixes nothing or after max_iterations rounds.
    Whatever still clashes afterwards is cleared and counted as unresolved,
    so the returned grid never double-books a teacher.
    """
    stats = ConflictStats()
    for _ in range(max_iterations):
        raise_if_cancelled(cancel, "conflict resolution")
        conflicts = find_conflicts(grid)
        if not conflicts:
            break
        stats.iterations += 1
        ledger = Ledger(grid)
        repaired = 0
        for conflict in conflicts:
            for class_id in conflict.class_ids[1:]:
                key = SlotKey(conflict.day, conflict.period_id, class_id)
                if relocate_lesson(grid, ledger, school, key):
                    repaired += 1
        stats.resolved += repaired
        if repaired == 0:
            break

    for conflict in find_conflicts(grid):
        for class_id in conflict.class_ids[1:]:
            grid.clear(SlotKey(conflict.day, conflict.period_id, class_id))
            stats.unresolved += 1

    if stats.resolved:
        logger.info("Resolved %d conflict(s) in %d round(s)", stats.resolved, stats.iterations)
    if stats.unresolved:
        logger.warning("%d conflict(s) could not be relocated and were removed", stats.unresolved)
    return stats


# ---------------------------------------------------------------------------
# LOAD BALANCER
# ---------------------------------------------------------------------------


def balance_workload(grid: Grid, school: SchoolData, cancel=None, threshold: int = IMBALANCE_THRESHOLD) -> int:
    """
    Teachers more than `threshold` lessons above the average give one lesson
    to each teacher more than `threshold` below it, when that teacher can take it.
    Best effort: returns how many lessons changed hands.
    """
    if not school.teachers:
        return 0
    loads = grid.teacher_loads([t.id for t in school.teachers])
    mean = sum(loads[t.id] for t in school.teachers) / len(school.teachers)
    overloaded = [t for t in school.teachers if loads[t.id] > mean + threshold]
    underloaded = [t for t in school.teachers if loads[t.id] < mean - threshold]
    if not overloaded or not underloaded:
        return 0

    ledger = Ledger(grid)
    moved = 0
    for heavy in overloaded:
        lessons = [s for s in grid.lessons() if s.teacher_id == heavy.id]
        for light in underloaded:
            raise_if_cancelled(cancel, "workload balancing")
            for slot in lessons:
                if slot.teacher_id != heavy.id:
                    continue
                level = school.class_by_id[slot.class_id].level
                if not light.can_teach(slot.subject_id, level):
                    continue
                if not ledger.can_take(light, slot.day, slot.period_id, school.constraints):
                    continue
                ledger.remove(slot)
                grid.assign(slot.key, slot.subject_id, light.id, slot.room_id)
                ledger.add(slot)
                moved += 1
                break

    logger.info("Workload balancing moved %d lesson(s) (mean load %.1f)", moved, mean)
    return moved


# ---------------------------------------------------------------------------
# SUBJECT DISTRIBUTION OPTIMIZER
# ---------------------------------------------------------------------------


def subject_deficits(grid: Grid, school: SchoolData) -> dict:
    """(class_id, subject_id) -> lessons still missing. Only gaps are listed."""
    deficits = {}
    for cls in school.classes:
        counts = grid.subject_counts(cls.id)
        for subject in school.subjects:
            gap = subject.target_lessons_per_week - counts.get(subject.id, 0)
            if gap > 0:
                deficits[(cls.id, subject.id)] = gap
    return deficits


def unmet_targets(grid: Grid, school: SchoolData) -> int:
    return sum(subject_deficits(grid, school).values())


def optimize_distribution(grid: Grid, school: SchoolData, cancel=None) -> int:
    """
    For each class, fill empty lesson squares (day order) with subjects still below target,
    using the least busy teacher who can take it. Returns lessons added.
    """
    ledger = Ledger(grid)
    added = 0
    for cls in school.classes:
        raise_if_cancelled(cancel, "subject distribution")
        for subject in school.subjects:
            gap = subject.target_lessons_per_week - ledger.subject_count.get((cls.id, subject.id), 0)
            if gap <= 0:
                continue
            teachers = school.eligible_teachers(subject.id, cls.level)
            for slot in grid.class_slots(cls.id):
                if gap == 0:
                    break
                if not slot.is_free:
                    continue
                free = [t for t in teachers if ledger.can_take(t, slot.day, slot.period_id, school.constraints)]
                if not free:
                    continue
                teacher = min(free, key=lambda t: ledger.teacher_load.get(t.id, 0))
                grid.assign(slot.key, subject.id, teacher.id)
                ledger.add(slot)
                gap -= 1
                added += 1

    if added:
        logger.info("Distribution pass added %d lesson(s)", added)
    return added
