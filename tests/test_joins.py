"""
Unit tests for feedback -> offering -> course / lecturer / department links.
"""

import unittest

from feedbackdash.joins import (
    active_only,
    course_join,
    current_semester,
    department_join,
    department_key,
    filter_feedback,
    index_by_id,
    lecturer_join,
)

COURSES = [
    {"id": 10, "course_code": "CS201", "course_name": "Data Structures", "department_id": 1},
    {"id": 20, "course_code": "EE301", "course_name": "Circuit Design", "department_id": 2},
]
OFFERINGS = [
    {"id": 100, "course_id": 10, "lecturer_id": 7, "semester_id": 1},
    {"id": 200, "course_id": 20, "lecturer_id": 8, "semester_id": 2},
]
FEEDBACK = [
    {"id": 1, "course_offering_id": 100, "overall_rating": 5},
    {"id": 2, "course_offering_id": 100, "overall_rating": 4},
    {"id": 3, "course_offering_id": 200, "overall_rating": 2},
    # not in the offering table, only embedded
    {
        "id": 4,
        "course_offering_id": 999,
        "overall_rating": 3,
        "course_offerings": {"lecturer_id": 8, "semester_id": 2, "courses": {"id": 20, "department_id": 2}},
    },
]


class TestJoins(unittest.TestCase):
    def test_index_first_row_wins(self) -> None:
        idx = index_by_id([{"id": 1, "v": "a"}, {"id": 1, "v": "b"}, {"v": "no id"}])
        self.assertEqual(idx, {1: {"id": 1, "v": "a"}})

    def test_lecturer_join(self) -> None:
        join = lecturer_join(OFFERINGS)
        self.assertEqual([f["id"] for f in join({"id": 7}, FEEDBACK)], [1, 2])
        self.assertEqual([f["id"] for f in join({"id": 8}, FEEDBACK)], [3, 4])

    def test_course_join_uses_embedded_course(self) -> None:
        join = course_join(OFFERINGS)
        self.assertEqual([f["id"] for f in join({"id": 20}, FEEDBACK)], [3, 4])

    def test_department_key_and_join(self) -> None:
        key = department_key(OFFERINGS, COURSES)
        self.assertEqual([key(f) for f in FEEDBACK], [1, 1, 2, 2])
        join = department_join(OFFERINGS, COURSES)
        self.assertEqual([f["id"] for f in join({"id": 1}, FEEDBACK)], [1, 2])

    def test_filter_feedback(self) -> None:
        self.assertEqual(len(filter_feedback(FEEDBACK, OFFERINGS, COURSES)), 4)
        by_sem = filter_feedback(FEEDBACK, OFFERINGS, COURSES, semester_id=2)
        self.assertEqual([f["id"] for f in by_sem], [3, 4])
        by_dept = filter_feedback(FEEDBACK, OFFERINGS, COURSES, semester_id=1, department_id=2)
        self.assertEqual(by_dept, [])

    def test_current_semester_and_active_only(self) -> None:
        semesters = [{"id": 1, "is_current": False}, {"id": 2, "is_current": True}]
        self.assertEqual(current_semester(semesters)["id"], 2)
        self.assertIsNone(current_semester([]))
        rows = [{"id": 1}, {"id": 2, "is_active": False}, {"id": 3, "is_active": True}]
        self.assertEqual([r["id"] for r in active_only(rows)], [1, 3])


if __name__ == "__main__":
    unittest.main()
