"""
Unit tests for the conflict resolver, load balancer and distribution optimizer
"""
import threading
import unittest

from errors import GenerationCancelled
from models import Class, Period, SchoolData, Subject, Teacher, initialize_grid
from repair import (
    balance_workload,
    find_conflicts,
    optimize_distribution,
    resolve_conflicts,
    subject_deficits,
    unmet_targets,
)


def school_with(periods=2, days=("Mon", "Tue"), classes=("c1", "c2"), teachers=None, target=0):
    return SchoolData(
        periods=[Period(f"p{i}", f"P{i}", f"{8 + i:02d}:00", f"{8 + i:02d}:45") for i in range(1, periods + 1)],
        subjects=[Subject("math", "Mathematics", target, "high"), Subject("eng", "English", 0)],
        classes=[Class(cid, "7") for cid in classes],
        teachers=teachers or [Teacher("t1", "Grace", ["math"], ["7"])],
        days=list(days),
    )


class TestConflictResolver(unittest.TestCase):

    def test_finds_double_booking(self):
        school = school_with()
        grid = initialize_grid(school)
        grid.assign(("Mon", "p1", "c1"), "math", "t1")
        grid.assign(("Mon", "p1", "c2"), "math", "t1")
        conflicts = find_conflicts(grid)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0].teacher_id, "t1")
        self.assertEqual(conflicts[0].class_ids, ["c1", "c2"])

    def test_relocates_within_same_day_first(self):
        school = school_with()
        grid = initialize_grid(school)
        grid.assign(("Mon", "p1", "c1"), "math", "t1")
        grid.assign(("Mon", "p1", "c2"), "math", "t1", "room-4")

        stats = resolve_conflicts(grid, school)

        self.assertEqual(stats.resolved, 1)
        self.assertEqual(stats.unresolved, 0)
        self.assertEqual(find_conflicts(grid), [])
        self.assertEqual(grid["Mon", "p1", "c1"].content(), ("math", "t1", None))
        self.assertTrue(grid["Mon", "p1", "c2"].is_free)
        self.assertEqual(grid["Mon", "p2", "c2"].content(), ("math", "t1", "room-4"))
        self.assertTrue(grid["Tue", "p1", "c2"].is_free)

    def test_falls_back_to_other_days(self):
        school = school_with()
        grid = initialize_grid(school)
        grid.assign(("Mon", "p1", "c1"), "math", "t1")
        grid.assign(("Mon", "p1", "c2"), "math", "t1")
        grid.assign(("Mon", "p2", "c1"), "math", "t1")

        stats = resolve_conflicts(grid, school)

        self.assertEqual(stats.resolved, 1)
        self.assertTrue(grid["Mon", "p2", "c2"].is_free)
        self.assertEqual(grid["Tue", "p1", "c2"].teacher_id, "t1")
        self.assertEqual(find_conflicts(grid), [])

    def test_unmovable_clash_is_removed_and_counted(self):
        school = school_with(periods=1, days=("Mon",))
        grid = initialize_grid(school)
        grid.assign(("Mon", "p1", "c1"), "math", "t1")
        grid.assign(("Mon", "p1", "c2"), "math", "t1")

        stats = resolve_conflicts(grid, school)

        self.assertEqual(stats.resolved, 0)
        self.assertEqual(stats.unresolved, 1)
        self.assertTrue(grid["Mon", "p1", "c1"].has_lesson)
        self.assertTrue(grid["Mon", "p1", "c2"].is_free)
        self.assertEqual(find_conflicts(grid), [])

    def test_cancel(self):
        school = school_with()
        grid = initialize_grid(school)
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(GenerationCancelled):
            resolve_conflicts(grid, school, cancel)


class TestLoadBalancer(unittest.TestCase):

    def _loaded_grid(self, teachers):
        school = school_with(periods=6, days=("Mon",), classes=("c1",), teachers=teachers, target=6)
        grid = initialize_grid(school)
        for period in grid.lesson_periods:
            grid.assign(("Mon", period.id, "c1"), "math", "t1")
        return school, grid

    def test_moves_one_lesson_per_pair(self):
        school, grid = self._loaded_grid([
            Teacher("t1", "Grace", ["math"], ["7"]),
            Teacher("t2", "Peter", ["math"], ["7"]),
        ])
        moved = balance_workload(grid, school)
        self.assertEqual(moved, 1)
        self.assertEqual(grid.teacher_loads(["t1", "t2"]), {"t1": 5, "t2": 1})

    def test_only_eligible_teachers_receive_lessons(self):
        school, grid = self._loaded_grid([
            Teacher("t1", "Grace", ["math"], ["7"]),
            Teacher("t2", "Peter", ["eng"], ["7"]),
        ])
        self.assertEqual(balance_workload(grid, school), 0)
        self.assertEqual(grid.teacher_loads(["t1", "t2"]), {"t1": 6, "t2": 0})

    def test_small_gaps_are_left_alone(self):
        school = school_with(periods=4, days=("Mon",), classes=("c1",), teachers=[
            Teacher("t1", "Grace", ["math"], ["7"]),
            Teacher("t2", "Peter", ["math"], ["7"]),
        ])
        grid = initialize_grid(school)
        for pid in ("p1", "p2", "p3"):
            grid.assign(("Mon", pid, "c1"), "math", "t1")
        grid.assign(("Mon", "p4", "c1"), "math", "t2")
        self.assertEqual(balance_workload(grid, school), 0)


class TestDistributionOptimizer(unittest.TestCase):

    def test_fills_empty_slots_in_day_order(self):
        school = school_with(classes=("c1",), target=3)
        grid = initialize_grid(school)
        added = optimize_distribution(grid, school)
        self.assertEqual(added, 3)
        self.assertTrue(grid["Mon", "p1", "c1"].has_lesson)
        self.assertTrue(grid["Mon", "p2", "c1"].has_lesson)
        self.assertTrue(grid["Tue", "p1", "c1"].has_lesson)
        self.assertTrue(grid["Tue", "p2", "c1"].is_free)
        self.assertEqual(unmet_targets(grid, school), 0)

    def test_stops_when_class_runs_out_of_slots(self):
        teachers = [Teacher("t1", "Grace", ["math"], ["7"]), Teacher("t2", "John", ["eng"], ["7"])]
        school = school_with(classes=("c1",), teachers=teachers, target=3)
        grid = initialize_grid(school)
        for key in (("Mon", "p1", "c1"), ("Mon", "p2", "c1"), ("Tue", "p1", "c1")):
            grid.assign(key, "eng", "t2")
        added = optimize_distribution(grid, school)
        self.assertEqual(added, 1)
        self.assertEqual(subject_deficits(grid, school), {("c1", "math"): 2})
        self.assertEqual(unmet_targets(grid, school), 2)

    def test_unavailable_teacher_is_not_used(self):
        teachers = [Teacher("t1", "Grace", ["math"], ["7"], availability={"Mon": [], "Tue": []})]
        school = school_with(classes=("c1",), teachers=teachers, target=2)
        grid = initialize_grid(school)
        self.assertEqual(optimize_distribution(grid, school), 0)
        self.assertEqual(unmet_targets(grid, school), 2)


if __name__ == '__main__':
    unittest.main()
