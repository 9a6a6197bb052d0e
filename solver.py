"""
🧠 TIMETABLE SOLVER — Baby-level explanation
============================================
A greedy helper fills the weekly board one square at a time.
For every empty lesson square it asks: "Which subject is this class most behind on,
and which free teacher would be happiest to take it?" and writes the best answer in.

Rules it never breaks:
1. A teacher can't be in two places at once.
2. A teacher only teaches subjects and levels they know.
3. Breaks stay empty.

If some squares stay empty, it loosens a few neighbours and tries again (a handful of attempts).
Afterwards the repair passes tidy up: clashes, workload balance, missing lessons.
"""

import logging
import math
import queue
import random
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from errors import (
    UNASSIGNED,
    UNMET_TARGET,
    UNRESOLVED_CONFLICT,
    GenerationInProgress,
    GenerationWarning,
    raise_if_cancelled as check_cancelled,
)
from models import (
    HIGH, LOW, MEDIUM, Grid, Ledger, SchoolData, SlotKey, Subject, Teacher,
    initialize_grid, is_morning_period, level_ranks,
)
from repair import balance_workload, optimize_distribution, resolve_conflicts, subject_deficits, unmet_targets
from scoring import score
from validator import check_preconditions, validate_school


logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
MAX_CONFLICT_ITERATIONS = 100

# Scoring weights. Tunable, not business rules.
BASE_SCORE = 100.0
LOAD_WEIGHT = 2.0
CLASS_DAY_WEIGHT = 1.5
PRIORITY_BONUS = {HIGH: 10.0, MEDIUM: 5.0, LOW: 0.0}
MORNING_BONUS = 5.0

ProgressSink = Callable[[int, str], None]


# ---------------------------------------------------------------------------
# PROGRESS & CANCELLATION
# ---------------------------------------------------------------------------


class ProgressReporter:
    """
    Maps a pass's own done/total onto a slice of 0-100 and only calls the sink
    when the whole-number percentage goes up.
    """

    def __init__(self, sink: Optional[ProgressSink], start: int = 0, end: int = 100):
        self.sink = sink
        self.start = start
        self.end = end
        self._last = -1

    def report(self, done: int, total: int, message: str = "") -> None:
        if self.sink is None:
            return
        fraction = done / total if total else 1.0
        percent = self.start + int((self.end - self.start) * min(1.0, fraction))
        if percent <= self._last:
            return
        self._last = percent
        self.sink(percent, message)

    def stage(self, start: int, end: int) -> "ProgressReporter":
        return ProgressReporter(self.sink, start, end)


class QueueProgress:
    """
    Progress sink backed by a bounded queue. A full queue drops the update
    instead of holding up the engine.
    """

    def __init__(self, maxsize: int = 100):
        self.queue: "queue.Queue[Tuple[int, str]]" = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, percent: int, message: str = "") -> None:
        try:
            self.queue.put_nowait((percent, message))
        except queue.Full:
            self.dropped += 1


# ---------------------------------------------------------------------------
# ASSIGNMENT ENGINE
# ---------------------------------------------------------------------------


def score_candidate(
    teacher_load: int,
    class_day_load: int,
    priority: str,
    morning: bool,
    prefer_morning: bool,
) -> float:
    """
    How good is "this teacher, this subject, this square"?
    Less busy teacher = higher. Fuller class day = lower. Important subject = higher.
    Important subject in the morning (when the school wants that) = a little higher.
    """
    value = BASE_SCORE - LOAD_WEIGHT * teacher_load - CLASS_DAY_WEIGHT * class_day_load
    value += PRIORITY_BONUS.get(priority, 0.0)
    if prefer_morning and priority == HIGH and morning:
        value += MORNING_BONUS
    return max(0.0, value)


@dataclass
class AssignmentStats:
    total: int = 0
    assigned: int = 0
    attempts: int = 0
    unfilled: List[SlotKey] = field(default_factory=list)


class AssignmentEngine:
    """Multi-attempt greedy filler. One instance per generation run."""

    def __init__(
        self,
        grid: Grid,
        school: SchoolData,
        cancel=None,
        progress: Optional[ProgressReporter] = None,
        max_attempts: int = MAX_ATTEMPTS,
        seed: Optional[int] = None,
    ):
        self.grid = grid
        self.school = school
        self.constraints = school.constraints
        self.cancel = cancel
        self.progress = progress or ProgressReporter(None)
        self.max_attempts = max(1, max_attempts)
        self.rng = random.Random(seed)
        self.ledger = Ledger(grid)

        self.level_rank = level_ranks([c.level for c in school.classes])
        self.eligible_count = {c.id: len(school.teachers_for_class(c.id)) for c in school.classes}
        self.morning = {p.id: is_morning_period(p) for p in grid.lesson_periods}
        self._eligible: Dict[Tuple[str, str], List[Teacher]] = {}

    def eligible(self, subject_id: str, level: str) -> List[Teacher]:
        key = (subject_id, level)
        if key not in self._eligible:
            self._eligible[key] = self.school.eligible_teachers(subject_id, level)
        return self._eligible[key]

    def order(self, keys: List[SlotKey]) -> List[SlotKey]:
        """Hardest first: higher level, then classes with fewer possible teachers."""
        def difficulty(key: SlotKey):
            level = self.school.class_by_id[key.class_id].level
            return (-self.level_rank[level], self.eligible_count[key.class_id])

        return sorted(keys, key=difficulty)

    def needed_subjects(self, class_id: str) -> List[Subject]:
        """Subjects still under target for this class, biggest gap first."""
        gaps = []
        for subject in self.school.subjects:
            have = self.ledger.subject_count.get((class_id, subject.id), 0)
            if have < subject.target_lessons_per_week:
                gaps.append((subject.target_lessons_per_week - have, subject))
        gaps.sort(key=lambda g: -g[0])
        return [subject for _, subject in gaps]

    def best_candidate(self, key: SlotKey, needed: List[Subject]) -> Optional[Tuple[Subject, Teacher, float]]:
        level = self.school.class_by_id[key.class_id].level
        class_day_load = self.ledger.class_day.get((key.class_id, key.day), 0)
        best = None
        for subject in needed:
            for teacher in self.eligible(subject.id, level):
                if not self.ledger.can_take(teacher, key.day, key.period_id, self.constraints):
                    continue
                value = score_candidate(
                    self.ledger.teacher_load.get(teacher.id, 0),
                    class_day_load,
                    subject.priority,
                    self.morning[key.period_id],
                    self.constraints.prefer_morning,
                )
                if best is None or value > best[2]:
                    best = (subject, teacher, value)
        return best

    def run_pass(self, pool: List[SlotKey], done_before: int, total: int) -> List[SlotKey]:
        """One attempt over the pool. Returns the squares that wanted a lesson but got none."""
        unfilled = []
        done = done_before
        for key in pool:
            check_cancelled(self.cancel, "lesson assignment")
            if self.grid[key].has_lesson:
                continue
            needed = self.needed_subjects(key.class_id)
            if not needed:
                # Class already has everything it asked for; this is a free period.
                continue
            choice = self.best_candidate(key, needed)
            if choice is None:
                unfilled.append(key)
                continue
            subject, teacher, value = choice
            slot = self.grid.assign(key, subject.id, teacher.id)
            self.ledger.add(slot)
            done += 1
            logger.debug("Assigned %s/%s to %s (score %.1f)", subject.id, teacher.id, key, value)
            self.progress.report(done, total, "Assigning lessons")
        return unfilled

    def blockers(self, key: SlotKey) -> List[SlotKey]:
        """Lessons in other classes at the same time whose teacher could have taught here."""
        level = self.school.class_by_id[key.class_id].level
        wanted = {s.id for s in self.needed_subjects(key.class_id)}
        found = []
        for slot in self.grid.slots_at(key.day, key.period_id):
            if slot.class_id == key.class_id or not slot.has_lesson:
                continue
            teacher = self.school.teacher_by_id.get(slot.teacher_id)
            if teacher and level in teacher.class_levels and wanted & set(teacher.subjects):
                found.append(slot.key)
        return found

    def perturb(self, unfilled: List[SlotKey], attempt: int) -> Tuple[List[SlotKey], List[SlotKey]]:
        """
        Pick a growing share of the stuck squares and free one blocking lesson for each,
        so the next attempt can route teachers differently.
        """
        fraction = 0.3 + 0.4 * attempt / self.max_attempts
        count = max(1, math.ceil(fraction * len(unfilled)))
        chosen = self.rng.sample(unfilled, min(count, len(unfilled)))
        released = []
        for key in chosen:
            options = [k for k in self.blockers(key) if k not in released]
            if not options:
                continue
            victim = self.rng.choice(options)
            self.ledger.remove(self.grid[victim])
            self.grid.clear(victim)
            released.append(victim)
        return chosen, released

    def run(self) -> AssignmentStats:
        keys = [
            SlotKey(day, period.id, cls.id)
            for day in self.grid.days
            for period in self.grid.lesson_periods
            for cls in self.school.classes
            if self.grid.slot(day, period.id, cls.id).is_free
        ]
        total = min(
            len(keys),
            len(self.school.classes) * sum(s.target_lessons_per_week for s in self.school.subjects),
        )
        stats = AssignmentStats(total=total)

        unfilled = self.run_pass(self.order(keys), 0, total)
        stats.attempts = 1
        logger.info("Attempt 1: %d lesson(s) placed, %d square(s) stuck", len(self.grid.lessons()), len(unfilled))

        while unfilled and stats.attempts < self.max_attempts:
            check_cancelled(self.cancel, "lesson assignment")
            snapshot = self.grid.snapshot()
            before = list(unfilled)
            chosen, released = self.perturb(unfilled, stats.attempts)
            stats.attempts += 1
            if not released:
                logger.debug("Attempt %d: nothing to loosen, stopping", stats.attempts)
                break
            rest = [k for k in unfilled if k not in chosen]
            pool = self.order(chosen) + self.order(released + rest)
            unfilled = self.run_pass(pool, len(self.grid.lessons()), total)
            if len(unfilled) > len(before):
                # Worse than before: roll back and try another shake next time.
                self.grid.restore(snapshot)
                self.ledger = Ledger(self.grid)
                unfilled = before
            logger.info("Attempt %d: %d square(s) stuck", stats.attempts, len(unfilled))

        stats.unfilled = unfilled
        stats.assigned = len(self.grid.lessons())
        if unfilled:
            logger.warning("%d lesson slot(s) could not be filled after %d attempt(s)", len(unfilled), stats.attempts)
        return stats


def assign_lessons(
    grid: Grid,
    school: SchoolData,
    cancel=None,
    progress: Optional[ProgressReporter] = None,
    max_attempts: int = MAX_ATTEMPTS,
    seed: Optional[int] = None,
) -> AssignmentStats:
    """Fill the grid in place. Returns counts and the squares left unfilled."""
    return AssignmentEngine(grid, school, cancel, progress, max_attempts, seed).run()


# ---------------------------------------------------------------------------
# PIPELINE
# ---------------------------------------------------------------------------


def count_unassigned(grid: Grid, school: SchoolData, unfilled: List[SlotKey]) -> int:
    """
    Stuck squares that are still empty, but only as many per class as that class
    is still short of its targets (a square skipped early may have been made up later).
    """
    short = {}
    for (class_id, _), gap in subject_deficits(grid, school).items():
        short[class_id] = short.get(class_id, 0) + gap
    empty = {}
    for key in unfilled:
        if grid[key].is_free:
            empty[key.class_id] = empty.get(key.class_id, 0) + 1
    return sum(min(count, short.get(class_id, 0)) for class_id, count in empty.items())


@dataclass
class GenerationResult:
    grid: Grid
    warnings: List[GenerationWarning] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    attempts: int = 0
    assigned: int = 0
    unassigned: int = 0
    resolved_conflicts: int = 0
    unresolved_conflicts: int = 0
    rebalanced: int = 0
    topped_up: int = 0
    score: int = 0

    @property
    def complete(self) -> bool:
        return not self.warnings


def generate(
    school: SchoolData,
    cancel=None,
    progress: Optional[ProgressSink] = None,
    max_attempts: int = MAX_ATTEMPTS,
    max_conflict_iterations: int = MAX_CONFLICT_ITERATIONS,
    seed: Optional[int] = None,
) -> GenerationResult:
    """
    Validate -> empty grid -> assign -> fix clashes -> balance -> top up -> score.

    Raises PreconditionError for missing data and GenerationCancelled if cancel is set.
    Partial success comes back as warnings on the result.
    """
    check_preconditions(school)
    issues = validate_school(school)
    for issue in issues:
        logger.info("Validation: %s", issue)

    reporter = ProgressReporter(progress)
    reporter.report(0, 1, "Starting")
    grid = initialize_grid(school)
    check_cancelled(cancel, "grid setup")

    stats = assign_lessons(grid, school, cancel, reporter.stage(0, 80), max_attempts, seed)

    finishing = reporter.stage(80, 100)
    conflicts = resolve_conflicts(grid, school, cancel, max_conflict_iterations)
    finishing.report(1, 4, "Resolving conflicts")

    rebalanced = 0
    if school.constraints.balance_workload:
        rebalanced = balance_workload(grid, school, cancel)
    finishing.report(2, 4, "Balancing workload")

    topped_up = optimize_distribution(grid, school, cancel)
    finishing.report(3, 4, "Filling subject targets")

    result = GenerationResult(
        grid=grid,
        issues=issues,
        attempts=stats.attempts,
        assigned=len(grid.lessons()),
        unassigned=count_unassigned(grid, school, stats.unfilled),
        resolved_conflicts=conflicts.resolved,
        unresolved_conflicts=conflicts.unresolved,
        rebalanced=rebalanced,
        topped_up=topped_up,
        score=score(grid, school),
    )

    if result.unassigned:
        result.warnings.append(GenerationWarning(
            UNASSIGNED, result.unassigned, f"{result.unassigned} lesson slot(s) could not be filled",
        ))
    if result.unresolved_conflicts:
        result.warnings.append(GenerationWarning(
            UNRESOLVED_CONFLICT, result.unresolved_conflicts,
            f"{result.unresolved_conflicts} teacher clash(es) could not be moved and were removed",
        ))
    missing = unmet_targets(grid, school)
    if missing:
        result.warnings.append(GenerationWarning(
            UNMET_TARGET, missing, f"{missing} lesson(s) short of subject targets",
        ))

    reporter.report(1, 1, "Done")
    logger.info(
        "Generated timetable: %d lessons, %d attempt(s), score %d, %d warning(s)",
        result.assigned, result.attempts, result.score, len(result.warnings),
    )
    return result


class TimetableGenerator:
    """
    Owns one generation at a time. A second generate() while the first is
    still running is refused, never queued.
    """

    def __init__(self, **options):
        self.options = options
        self._lock = threading.Lock()
        self.last_result: Optional[GenerationResult] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def generate(self, school: SchoolData, cancel=None, progress: Optional[ProgressSink] = None) -> GenerationResult:
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgress("A timetable is already being generated")
        try:
            self.last_result = generate(school, cancel, progress, **self.options)
            return self.last_result
        finally:
            self._lock.release()
