"""
🔍 FEASIBILITY VALIDATOR
========================
Read-only checks before we try to build anything.
Returns a list of plain-English issues. Nothing here stops generation by itself;
the caller decides. Only empty data is a hard stop (check_preconditions).
"""

import logging
from typing import List, Optional

from errors import PreconditionError
from models import DEFAULT_DAYS, Class, Constraints, Period, SchoolData, Subject, Teacher


logger = logging.getLogger(__name__)


def _teacher_issues(teachers: List[Teacher], subjects: List[Subject], classes: List[Class]) -> List[str]:
    issues = []
    subject_ids = {s.id for s in subjects}
    levels = {c.level for c in classes}
    for teacher in teachers:
        if not teacher.subjects:
            issues.append(f"Teacher {teacher.name} has no subjects assigned")
            continue
        for subject_id in teacher.subjects:
            if subject_id not in subject_ids:
                issues.append(f"Teacher {teacher.name} has invalid subject assigned: {subject_id}")
        for level in teacher.class_levels:
            if level not in levels:
                issues.append(f"Teacher {teacher.name} assigned to non-existent class level: {level}")
    return issues


def _subject_issues(
    teachers: List[Teacher],
    subjects: List[Subject],
    slots_per_week: int,
    constraints: Optional[Constraints],
) -> List[str]:
    issues = []
    for subject in subjects:
        target = subject.target_lessons_per_week or 0
        if target > slots_per_week:
            issues.append(
                f"Subject {subject.name} requires more lessons ({target}) "
                f"than available periods ({slots_per_week})"
            )
        if not any(subject.id in t.subjects for t in teachers):
            issues.append(f"No teachers available for subject: {subject.name}")
        if constraints is not None and target and not (
            constraints.min_lessons_per_subject <= target <= constraints.max_lessons_per_subject
        ):
            issues.append(
                f"Subject {subject.name} target ({target}) is outside the allowed range "
                f"{constraints.min_lessons_per_subject}-{constraints.max_lessons_per_subject}"
            )
    return issues


def _capacity_issues(subjects: List[Subject], classes: List[Class], slots_per_week: int) -> List[str]:
    # Every class takes every subject.
    required = len(classes) * sum(s.target_lessons_per_week or 0 for s in subjects)
    available = len(classes) * slots_per_week
    if required > available:
        return [f"Total required lessons ({required}) exceed available slots ({available})"]
    return []


def periods_overlap(first: Period, second: Period) -> bool:
    """Two lesson periods overlap if [start, end) ranges cross. Breaks never count."""
    if not first.is_lesson or not second.is_lesson:
        return False
    return first.start_minutes < second.end_minutes and second.start_minutes < first.end_minutes


def _period_issues(periods: List[Period]) -> List[str]:
    issues = []
    for i in range(len(periods)):
        for j in range(i + 1, len(periods)):
            if periods_overlap(periods[i], periods[j]):
                issues.append(f"Periods {periods[i].name} and {periods[j].name} overlap")
    return issues


def validate(
    teachers: List[Teacher],
    subjects: List[Subject],
    classes: List[Class],
    periods: List[Period],
    days: Optional[List[str]] = None,
    constraints: Optional[Constraints] = None,
) -> List[str]:
    """
    Run every feasibility check, in a fixed order:
    teachers, subjects, capacity, periods.
    """
    num_days = len(days) if days is not None else len(DEFAULT_DAYS)
    lesson_periods_per_day = sum(1 for p in periods if p.is_lesson)
    slots_per_week = lesson_periods_per_day * num_days

    issues: List[str] = []
    issues.extend(_teacher_issues(teachers, subjects, classes))
    issues.extend(_subject_issues(teachers, subjects, slots_per_week, constraints))
    issues.extend(_capacity_issues(subjects, classes, slots_per_week))
    issues.extend(_period_issues(periods))

    if issues:
        logger.info("Validation found %d issue(s)", len(issues))
    return issues


def validate_school(school: SchoolData) -> List[str]:
    return validate(
        school.teachers, school.subjects, school.classes, school.periods,
        days=school.days, constraints=school.constraints,
    )


def check_preconditions(school: SchoolData) -> None:
    """Raise PreconditionError naming whatever is missing."""
    missing = []
    if not school.periods:
        missing.append("periods")
    elif not any(p.is_lesson for p in school.periods):
        missing.append("lesson periods")
    if not school.subjects:
        missing.append("subjects")
    if not school.classes:
        missing.append("classes")
    if not school.teachers:
        missing.append("teachers")
    if not school.days:
        missing.append("days")
    if missing:
        raise PreconditionError(missing)
