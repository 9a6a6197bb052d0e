"""
🏅 SOFT SCORE
=============
Higher score = nicer timetable. Start at 1000 and take points off for:
- subjects getting more/fewer lessons than their target (high priority counts double)
- teachers over their daily limit, and morning-people teaching after lunch
- teachers with much more or much less work than average
A timetable that stays above 950 gets a +50 bonus. Never below 0.

Pure function: reads the grid, changes nothing. Also used to score manual edits.
"""

from dataclasses import dataclass

from models import HIGH, Grid, SchoolData, is_morning_period


PERFECT_SCORE = 1000
FREQUENCY_WEIGHT = 10
PREFERENCE_WEIGHT = 5
IMBALANCE_WEIGHT = 3
BONUS_THRESHOLD = 950
BONUS = 50


@dataclass
class ScoreBreakdown:
    frequency_penalty: float = 0.0
    preference_penalty: float = 0.0
    imbalance_penalty: float = 0.0
    bonus: int = 0
    total: int = PERFECT_SCORE


def frequency_penalty(grid: Grid, school: SchoolData) -> int:
    penalty = 0
    for cls in school.classes:
        counts = grid.subject_counts(cls.id)
        for subject in school.subjects:
            diff = abs(counts.get(subject.id, 0) - subject.target_lessons_per_week)
            penalty += diff * (2 if subject.priority == HIGH else 1)
    return penalty


def preference_penalty(grid: Grid, school: SchoolData) -> int:
    """Daily-limit overflow for everyone, plus afternoon lessons for morning-preferring teachers."""
    max_daily = school.constraints.max_daily_lessons
    afternoon = {p.id for p in grid.lesson_periods if not is_morning_period(p)}
    daily = {}
    afternoon_count = {}
    for slot in grid.lessons():
        daily[(slot.teacher_id, slot.day)] = daily.get((slot.teacher_id, slot.day), 0) + 1
        if slot.period_id in afternoon:
            afternoon_count[slot.teacher_id] = afternoon_count.get(slot.teacher_id, 0) + 1

    penalty = sum(max(0, count - max_daily) for count in daily.values())
    for teacher in school.teachers:
        if teacher.prefers_morning:
            penalty += afternoon_count.get(teacher.id, 0)
    return penalty


def imbalance_penalty(grid: Grid, school: SchoolData) -> float:
    if not school.teachers:
        return 0.0
    loads = grid.teacher_loads([t.id for t in school.teachers])
    values = [loads[t.id] for t in school.teachers]
    mean = sum(values) / len(values)
    return sum(abs(v - mean) for v in values)


def score_breakdown(grid: Grid, school: SchoolData) -> ScoreBreakdown:
    result = ScoreBreakdown(
        frequency_penalty=frequency_penalty(grid, school),
        preference_penalty=preference_penalty(grid, school),
        imbalance_penalty=imbalance_penalty(grid, school),
    )
    total = (
        PERFECT_SCORE
        - FREQUENCY_WEIGHT * result.frequency_penalty
        - PREFERENCE_WEIGHT * result.preference_penalty
        - IMBALANCE_WEIGHT * result.imbalance_penalty
    )
    if total > BONUS_THRESHOLD:
        result.bonus = BONUS
        total += BONUS
    result.total = max(0, int(round(total)))
    return result


def score(grid: Grid, school: SchoolData) -> int:
    return score_breakdown(grid, school).total
