"""
Unit tests for timetable views, table/PDF export and heatmap data
"""
import unittest

from heatmaps import day_congestion, subject_coverage, teacher_daily_loads
from models import Class, Period, SchoolData, Subject, Teacher, initialize_grid
from pdf_export import export_class_timetables_pdf, export_teacher_timetables_pdf
from views import (
    class_frames, class_view, export_csv, export_excel, search_timetable, sheet_names, teacher_frames, teacher_view,
    view_to_frame,
)


def make_school():
    return SchoolData(
        periods=[
            Period("p1", "Period 1", "08:00", "08:40"),
            Period("brk", "Break", "08:40", "09:00", "break"),
            Period("p2", "Period 2", "09:00", "09:40"),
            Period("lun", "Lunch", "12:00", "12:40", "lunch"),
        ],
        subjects=[Subject("math", "Mathematics", 2, "high"), Subject("eng", "English", 4)],
        classes=[Class("c1", "7", "East"), Class("c2", "8", "West")],
        teachers=[Teacher("t1", "Grace Achieng", ["math"], ["7", "8"]), Teacher("t2", "John", ["eng"], ["7"])],
        days=["Mon", "Tue"],
    )


class TestViews(unittest.TestCase):

    def setUp(self):
        self.school = make_school()
        self.grid = initialize_grid(self.school)
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1")
        self.grid.assign(("Tue", "p2", "c2"), "math", "t1")
        self.grid.assign(("Mon", "p2", "c1"), "eng", "t2")

    def test_class_view_labels(self):
        view = class_view(self.grid, self.school, "c1")
        self.assertEqual(list(view.keys()), ["Mon", "Tue"])
        self.assertEqual(view["Mon"]["p1"], "Mathematics - Grace Achieng")
        self.assertEqual(view["Mon"]["brk"], "Break")
        self.assertEqual(view["Mon"]["lun"], "Lunch")
        self.assertEqual(view["Tue"]["p1"], "Free")

    def test_teacher_view_labels(self):
        view = teacher_view(self.grid, self.school, "t1")
        self.assertEqual(view["Mon"]["p1"], "Mathematics - 7 East")
        self.assertEqual(view["Tue"]["p2"], "Mathematics - 8 West")
        self.assertEqual(view["Mon"]["p2"], "Free")

    def test_search_is_case_insensitive(self):
        rows = search_timetable(self.grid, self.school, "  ACHIENG ")
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]["teacher"], "Grace Achieng")
        self.assertEqual({r["class"] for r in rows}, {"7 East", "8 West"})
        self.assertEqual(search_timetable(self.grid, self.school, "nobody"), [])
        self.assertEqual(search_timetable(self.grid, self.school, ""), [])

    def test_search_by_class(self):
        rows = search_timetable(self.grid, self.school, "8 west", "class")
        self.assertEqual(rows, [
            {"teacher": "Grace Achieng", "day": "Tue", "period": "Period 2", "subject": "Mathematics", "class": "8 West"},
        ])
        self.assertEqual(len(search_timetable(self.grid, self.school, "East", "class")), 2)

    def test_search_by_subject(self):
        rows = search_timetable(self.grid, self.school, "engl", "subject")
        self.assertEqual(len(rows), 1)
        self.assertEqual((rows[0]["class"], rows[0]["teacher"]), ("7 East", "John"))
        self.assertEqual(len(search_timetable(self.grid, self.school, "math", "subject")), 2)
        self.assertEqual(search_timetable(self.grid, self.school, "art", "subject"), [])

    def test_search_kind_must_be_known(self):
        with self.assertRaises(ValueError):
            search_timetable(self.grid, self.school, "grace", "room")

    def test_frames_are_periods_by_days(self):
        frames = class_frames(self.grid, self.school)
        self.assertEqual(list(frames.keys()), ["7 East", "8 West"])
        df = frames["7 East"]
        self.assertEqual(list(df.index), ["Period 1", "Break", "Period 2", "Lunch"])
        self.assertEqual(list(df.columns), ["Mon", "Tue"])
        self.assertEqual(df.loc["Period 2", "Mon"], "English - John")
        self.assertEqual(set(teacher_frames(self.grid, self.school).keys()), {"Grace Achieng", "John"})

    def test_csv_has_title_row_per_table(self):
        text = export_csv(class_frames(self.grid, self.school)).decode("utf-8")
        self.assertTrue(text.startswith("7 East\n"))
        self.assertIn("\n8 West\n", text)

    def test_excel_export(self):
        data = export_excel(class_frames(self.grid, self.school))
        self.assertTrue(data.startswith(b"PK"))

    def test_sheet_names_are_safe_and_unique(self):
        long_name = "Grade 7 East Science Stream Group A"
        names = sheet_names(["7/East", "7East", "Form [1]: A?", long_name, long_name, ""])
        self.assertEqual(names[:3], ["7East", "7East (2)", "Form 1 A"])
        self.assertEqual(names[3], long_name[:31])
        self.assertEqual(names[4], long_name[:27] + " (2)")
        self.assertEqual(names[5], "Sheet")
        self.assertTrue(all(len(n) <= 31 for n in names))

    def test_excel_keeps_every_table(self):
        from io import BytesIO

        from openpyxl import load_workbook

        frame = class_frames(self.grid, self.school)["7 East"]
        long_name = "Grade 7 East Science Stream Group A"
        data = export_excel({long_name: frame, long_name + " B": frame, "7/East": frame})
        workbook = load_workbook(BytesIO(data))
        self.assertEqual(workbook.sheetnames, [long_name[:31], long_name[:27] + " (2)", "7East"])

    def test_pdf_export(self):
        self.assertTrue(export_class_timetables_pdf(self.grid, self.school).startswith(b"%PDF"))
        self.assertTrue(export_teacher_timetables_pdf(self.grid, self.school, ["t1"]).startswith(b"%PDF"))


class TestRepeatedPeriodNames(unittest.TestCase):

    def setUp(self):
        self.school = SchoolData(
            periods=[
                Period("d1", "Double", "08:00", "08:40"),
                Period("d2", "Double", "08:40", "09:20"),
            ],
            subjects=[Subject("math", "Mathematics", 1), Subject("eng", "English", 1)],
            classes=[Class("c1", "7", "East")],
            teachers=[Teacher("t1", "Grace", ["math"], ["7"]), Teacher("t2", "John", ["eng"], ["7"])],
            days=["Mon"],
        )
        self.grid = initialize_grid(self.school)
        self.grid.assign(("Mon", "d1", "c1"), "math", "t1")
        self.grid.assign(("Mon", "d2", "c1"), "eng", "t2")

    def test_each_period_keeps_its_own_row(self):
        df = view_to_frame(class_view(self.grid, self.school, "c1"), self.grid)
        self.assertEqual(list(df.index), ["Double", "Double"])
        self.assertEqual(list(df["Mon"]), ["Mathematics - Grace", "English - John"])

    def test_pdf_builds(self):
        self.assertTrue(export_class_timetables_pdf(self.grid, self.school).startswith(b"%PDF"))


class TestHeatmapData(unittest.TestCase):

    def setUp(self):
        self.school = make_school()
        self.grid = initialize_grid(self.school)
        self.grid.assign(("Mon", "p1", "c1"), "math", "t1")
        self.grid.assign(("Mon", "p2", "c1"), "math", "t1")
        self.grid.assign(("Tue", "p1", "c2"), "math", "t1")

    def test_teacher_daily_loads(self):
        loads = teacher_daily_loads(self.grid, self.school)
        self.assertEqual(loads["Grace Achieng"], {"Mon": 2, "Tue": 1})
        self.assertEqual(loads["John"], {"Mon": 0, "Tue": 0})

    def test_day_congestion(self):
        self.assertEqual(day_congestion(self.grid), {"Mon": 2, "Tue": 1})

    def test_subject_coverage(self):
        coverage = subject_coverage(self.grid, self.school)
        self.assertEqual(coverage["7 East"], {"Mathematics": 1.0, "English": 0.0})
        self.assertEqual(coverage["8 West"], {"Mathematics": 0.5, "English": 0.0})


if __name__ == '__main__':
    unittest.main()
