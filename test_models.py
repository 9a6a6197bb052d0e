"""
Unit tests for the domain model and grid initializer
"""
import unittest

from models import (
    Class,
    Constraints,
    Grid,
    Ledger,
    Period,
    SchoolData,
    Subject,
    Teacher,
    initialize_grid,
    is_morning_period,
    level_ranks,
    time_to_minutes,
)


def make_school(days=None):
    periods = [
        Period("p2", "Period 2", "08:40", "09:20"),
        Period("p1", "Period 1", "08:00", "08:40"),
        Period("brk", "Break", "09:20", "09:40", "break"),
        Period("p3", "Period 3", "09:40", "10:20"),
        Period("lun", "Lunch", "12:00", "12:40", "lunch"),
    ]
    subjects = [Subject("math", "Mathematics", 4, "high")]
    classes = [Class("c1", "7", "East"), Class("c2", "8", "West")]
    teachers = [Teacher("t1", "Grace", ["math"], ["7", "8"])]
    return SchoolData(periods, subjects, classes, teachers, days=days or ["Mon", "Tue"])


class TestGridInitializer(unittest.TestCase):

    def setUp(self):
        self.school = make_school()
        self.grid = initialize_grid(self.school)

    def test_one_slot_per_day_period_class(self):
        """Every (day, period, class) exists exactly once"""
        self.assertEqual(len(self.grid), 2 * 5 * 2)
        keys = [slot.key for slot in self.grid]
        self.assertEqual(len(keys), len(set(keys)))
        for day in self.school.days:
            for period in self.school.periods:
                for cls in self.school.classes:
                    self.assertIn((day, period.id, cls.id), self.grid)

    def test_periods_sorted_by_start_time(self):
        self.assertEqual([p.id for p in self.grid.periods], ["p1", "p2", "brk", "p3", "lun"])
        self.assertEqual([p.id for p in self.grid.lesson_periods], ["p1", "p2", "p3"])

    def test_break_and_lunch_slots_are_stamped(self):
        for slot in self.grid:
            expected = slot.period_id in ("brk", "lun")
            self.assertEqual(slot.is_break, expected)
            self.assertIsNone(slot.subject_id)
            self.assertIsNone(slot.teacher_id)

    def test_assign_into_break_is_refused(self):
        with self.assertRaises(ValueError):
            self.grid.assign(("Mon", "brk", "c1"), "math", "t1")
        self.assertFalse(self.grid["Mon", "brk", "c1"].has_lesson)

    def test_lesson_needs_teacher(self):
        with self.assertRaises(ValueError):
            self.grid.assign(("Mon", "p1", "c1"), "math", None)

    def test_clear_resets_to_empty_shape(self):
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1", "room-1")
        slot = self.grid.clear(("Mon", "p1", "c1"))
        self.assertEqual(slot.content(), (None, None, None))
        self.assertTrue(slot.is_free)

    def test_teacher_busy_and_loads(self):
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1")
        self.grid.assign(("Tue", "p3", "c2"), "math", "t1")
        self.assertTrue(self.grid.teacher_busy("t1", "Mon", "p1"))
        self.assertFalse(self.grid.teacher_busy("t1", "Mon", "p1", exclude_class="c1"))
        self.assertEqual(self.grid.teacher_loads(["t1", "t2"]), {"t1": 2, "t2": 0})
        self.assertEqual(self.grid.teacher_daily_load("t1", "Mon"), 1)
        self.assertEqual(self.grid.subject_counts("c1"), {"math": 1})

    def test_records_round_trip(self):
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1", "lab")
        records = self.grid.to_records()
        self.assertEqual(len(records), len(self.grid))
        self.assertEqual(
            set(records[0].keys()),
            {"day", "period_id", "class_id", "subject_id", "teacher_id", "room_id", "is_break"},
        )
        rebuilt = Grid.from_records(records, self.school.days, self.school.periods, ["c1", "c2"])
        self.assertEqual(rebuilt["Mon", "p1", "c1"].content(), ("math", "t1", "lab"))
        self.assertEqual(len(rebuilt.lessons()), 1)

    def test_records_cannot_put_lessons_in_breaks(self):
        records = [{"day": "Mon", "period_id": "brk", "class_id": "c1", "subject_id": "math", "teacher_id": "t1"}]
        rebuilt = Grid.from_records(records, self.school.days, self.school.periods, ["c1", "c2"])
        self.assertFalse(rebuilt["Mon", "brk", "c1"].has_lesson)

    def test_snapshot_restore(self):
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1")
        snap = self.grid.snapshot()
        self.grid.clear(("Mon", "p1", "c1"))
        self.grid.assign(("Tue", "p1", "c2"), "math", "t1")
        self.grid.restore(snap)
        self.assertTrue(self.grid["Mon", "p1", "c1"].has_lesson)
        self.assertFalse(self.grid["Tue", "p1", "c2"].has_lesson)


class TestHelpers(unittest.TestCase):

    def test_time_to_minutes(self):
        self.assertEqual(time_to_minutes("08:30"), 510)
        self.assertEqual(time_to_minutes("00:00"), 0)

    def test_morning_cutoff(self):
        self.assertTrue(is_morning_period(Period("a", "A", "11:59", "12:30")))
        self.assertFalse(is_morning_period(Period("b", "B", "12:00", "12:40")))

    def test_level_ranks_are_natural(self):
        ranks = level_ranks(["Grade 9", "Grade 10", "Grade 7", "Grade 9"])
        self.assertEqual(ranks, {"Grade 7": 0, "Grade 9": 1, "Grade 10": 2})

    def test_teacher_availability(self):
        always = Teacher("t1", "A", ["math"], ["7"])
        partial = Teacher("t2", "B", ["math"], ["7"], availability={"Mon": ["p1"]})
        self.assertTrue(always.is_available("Mon", "p3"))
        self.assertTrue(partial.is_available("Mon", "p1"))
        self.assertFalse(partial.is_available("Mon", "p2"))
        self.assertTrue(partial.is_available("Tue", "p2"))

    def test_can_teach_needs_subject_and_level(self):
        teacher = Teacher("t1", "A", ["math"], ["7"])
        self.assertTrue(teacher.can_teach("math", "7"))
        self.assertFalse(teacher.can_teach("math", "8"))
        self.assertFalse(teacher.can_teach("eng", "7"))


class TestLedger(unittest.TestCase):

    def test_tracks_counts_and_caps(self):
        school = make_school()
        grid = initialize_grid(school)
        teacher = school.teachers[0]
        grid.assign(("Mon", "p1", "c1"), "math", "t1")
        grid.assign(("Mon", "p2", "c1"), "math", "t1")
        ledger = Ledger(grid)

        self.assertEqual(ledger.teacher_load["t1"], 2)
        self.assertEqual(ledger.teacher_day[("t1", "Mon")], 2)
        self.assertEqual(ledger.class_day[("c1", "Mon")], 2)
        self.assertEqual(ledger.subject_count[("c1", "math")], 2)
        self.assertTrue(ledger.is_busy("t1", "Mon", "p1"))
        self.assertFalse(ledger.is_busy("t1", "Mon", "p1", exclude_class="c1"))

        self.assertTrue(ledger.can_take(teacher, "Mon", "p3", Constraints(max_daily_lessons=3)))
        self.assertFalse(ledger.can_take(teacher, "Mon", "p3", Constraints(max_daily_lessons=2)))
        self.assertFalse(ledger.can_take(teacher, "Tue", "p1", Constraints(max_weekly_lessons=2)))
        self.assertFalse(ledger.can_take(teacher, "Mon", "p1", Constraints()))

        ledger.remove(grid["Mon", "p1", "c1"])
        self.assertEqual(ledger.teacher_load["t1"], 1)
        self.assertFalse(ledger.is_busy("t1", "Mon", "p1"))


if __name__ == '__main__':
    unittest.main()
