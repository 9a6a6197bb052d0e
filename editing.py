"""
✋ MANUAL EDITS
==============
Drag one lesson from square A to square B, with the hard rules checked first.
Rejections come back as a reason string; the grid is untouched when a move is refused.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models import Grid, SchoolData, SlotKey


logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    success: bool
    message: str

    def __bool__(self) -> bool:
        return self.success


@dataclass
class ProposedChange:
    """A lesson someone wants to put at (day, period, class)."""

    day: str
    period_id: str
    class_id: str
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None


def _eligibility_problem(school: SchoolData, teacher_id: str, subject_id: Optional[str], class_id: str) -> Optional[str]:
    teacher = school.teacher_by_id.get(teacher_id)
    cls = school.class_by_id.get(class_id)
    if teacher is None or cls is None:
        return None
    if subject_id and subject_id not in teacher.subjects:
        return "Teacher does not teach this subject"
    if cls.level not in teacher.class_levels:
        return "Teacher cannot teach this class level"
    return None


def move(grid: Grid, source: Tuple[str, str, str], target: Tuple[str, str, str], school: Optional[SchoolData] = None) -> MoveResult:
    """
    Move the lesson at source into the empty square at target.
    Both squares change together or neither does.
    Pass school to also check the teacher's availability and eligibility.
    """
    source, target = SlotKey(*source), SlotKey(*target)
    if source == target:
        return MoveResult(False, "Source and target are the same slot")
    from_slot, to_slot = grid[source], grid[target]

    if not from_slot.has_lesson:
        return MoveResult(False, "Source slot has no lesson")
    if to_slot.is_break:
        return MoveResult(False, "Cannot schedule lessons during break/lunch periods")
    if to_slot.has_lesson:
        return MoveResult(False, "Target slot is not available")
    # Only the source square itself may hold this teacher at the target time.
    same_time = (target.day, target.period_id) == (source.day, source.period_id)
    if grid.teacher_busy(from_slot.teacher_id, target.day, target.period_id,
                         exclude_class=source.class_id if same_time else None):
        return MoveResult(False, "Teacher not available in target slot")
    if school is not None:
        teacher = school.teacher_by_id.get(from_slot.teacher_id)
        if teacher is not None and not teacher.is_available(target.day, target.period_id):
            return MoveResult(False, "Teacher is not available at that time")
        problem = _eligibility_problem(school, from_slot.teacher_id, from_slot.subject_id, target.class_id)
        if problem:
            return MoveResult(False, problem)

    subject_id, teacher_id, room_id = from_slot.content()
    grid.clear(source)
    grid.assign(target, subject_id, teacher_id, room_id)
    logger.info("Moved %s (%s) from %s to %s", subject_id, teacher_id, source, target)
    return MoveResult(True, "Lesson moved successfully")


def check_hard_constraints(
    change: ProposedChange,
    grid: Grid,
    school: Optional[SchoolData] = None,
    source: Optional[Tuple[str, str, str]] = None,
) -> List[str]:
    """
    Everything that would make this edit illegal. Empty list = fine to commit.
    Pass source when the lesson is being moved, so its old square is not counted as a clash.
    """
    violations = []
    key = SlotKey(change.day, change.period_id, change.class_id)
    skip = {key.class_id}
    if source is not None:
        source = SlotKey(*source)
        if (source.day, source.period_id) == (key.day, key.period_id):
            skip.add(source.class_id)
    others = [s for s in grid.slots_at(change.day, change.period_id) if s.class_id not in skip]

    if change.teacher_id and any(s.teacher_id == change.teacher_id for s in others):
        violations.append("Teacher is already assigned in this period")
    if change.room_id and any(s.room_id == change.room_id for s in others):
        violations.append("Room is already occupied in this period")
    if grid[key].is_break:
        violations.append("Cannot schedule lessons during break/lunch periods")
    if school is not None and change.teacher_id:
        teacher = school.teacher_by_id.get(change.teacher_id)
        if teacher is not None and not teacher.is_available(change.day, change.period_id):
            violations.append("Teacher is not available at that time")
        problem = _eligibility_problem(school, change.teacher_id, change.subject_id, change.class_id)
        if problem:
            violations.append(problem)
    return violations


class EditHistory:
    """
    Undo/redo for manual moves. Undo is just the reverse move,
    so it is refused if something else has since filled the old square.
    """

    def __init__(self, grid: Grid, school: Optional[SchoolData] = None):
        self.grid = grid
        self.school = school
        self._undo: List[Tuple[SlotKey, SlotKey]] = []
        self._redo: List[Tuple[SlotKey, SlotKey]] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def move(self, source, target) -> MoveResult:
        result = move(self.grid, source, target, self.school)
        if result:
            self._undo.append((SlotKey(*source), SlotKey(*target)))
            self._redo.clear()
        return result

    def undo(self) -> MoveResult:
        if not self._undo:
            return MoveResult(False, "Nothing to undo")
        source, target = self._undo[-1]
        result = move(self.grid, target, source, self.school)
        if result:
            self._undo.pop()
            self._redo.append((source, target))
        return result

    def redo(self) -> MoveResult:
        if not self._redo:
            return MoveResult(False, "Nothing to redo")
        source, target = self._redo[-1]
        result = move(self.grid, source, target, self.school)
        if result:
            self._redo.pop()
            self._undo.append((source, target))
        return result
