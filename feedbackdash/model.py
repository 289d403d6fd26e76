"""
Central data model definitions used across the project.

Records are kept as plain dicts, exactly as the backend returns them
(one dict per table row). This module only fixes:
- the table names used by fetch and storage
- the rating field names used by the aggregations
- the Snapshot container that holds one copy of every table
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Row = Dict[str, Any]

OVERALL_RATING = "overall_rating"
SUB_RATING_FIELDS = ("teaching_effectiveness", "course_content", "communication", "availability")
COMPREHENSIVE_FIELDS = (OVERALL_RATING,) + SUB_RATING_FIELDS

DEFAULT_STATUS = "Active"

# table name -> (order clause, only active rows)
TABLES: Dict[str, Tuple[Optional[str], bool]] = {
    "departments": ("department_name.asc", True),
    "students": ("first_name.asc", True),
    "lecturers": ("first_name.asc", True),
    "courses": ("course_code.asc", True),
    "course_offerings": (None, False),
    "academic_semesters": ("academic_year.desc", False),
    "feedback": ("created_at.desc", False),
    "feedback_categories": ("category_name.asc", True),
}


@dataclass
class Snapshot:
    """
    One in-memory copy of every table, as loaded from snapshot.json.
    """

    departments: List[Row] = field(default_factory=list)
    students: List[Row] = field(default_factory=list)
    lecturers: List[Row] = field(default_factory=list)
    courses: List[Row] = field(default_factory=list)
    course_offerings: List[Row] = field(default_factory=list)
    academic_semesters: List[Row] = field(default_factory=list)
    feedback: List[Row] = field(default_factory=list)
    feedback_categories: List[Row] = field(default_factory=list)
    fetched_at: Optional[str] = None

    @classmethod
    def from_tables(cls, tables: Dict[str, Any], fetched_at: Optional[str] = None) -> "Snapshot":
        """
        Build a Snapshot from a {table_name: rows} mapping.
        Unknown keys are ignored, missing or non-list tables become [].
        """
        kwargs: Dict[str, Any] = {}
        for name in TABLES:
            rows = tables.get(name, [])
            kwargs[name] = [r for r in rows if isinstance(r, dict)] if isinstance(rows, list) else []
        return cls(fetched_at=fetched_at, **kwargs)

    def to_tables(self) -> Dict[str, List[Row]]:
        return {name: getattr(self, name) for name in TABLES}
