"""
Linking feedback to the rest of the schema.

Feedback only knows its course_offering_id. Everything else
(course, lecturer, semester, department) is reached through the offering:

    feedback -> course_offering -> course -> department
                                -> lecturer
                                -> semester

Rows fetched with an embedded "course_offerings" object are also understood,
so both flat table dumps and embedded API results work.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional

Row = Mapping[str, Any]


def index_by_id(rows: Iterable[Any]) -> dict[Any, Row]:
    """
    id -> row. If an id appears twice, the first row wins.
    """
    out: dict[Any, Row] = {}
    for r in rows or []:
        if not isinstance(r, Mapping):
            continue
        ident = r.get("id")
        if ident is not None and ident not in out:
            out[ident] = r
    return out


def is_active(row: Row) -> bool:
    # rows without the flag count as active
    return row.get("is_active") is not False


def active_only(rows: Iterable[Any]) -> list[Row]:
    return [r for r in rows or [] if isinstance(r, Mapping) and is_active(r)]


def current_semester(semesters: Iterable[Any]) -> Optional[Row]:
    for s in semesters or []:
        if isinstance(s, Mapping) and s.get("is_current"):
            return s
    return None


def _embedded_offering(feedback: Row) -> Row:
    emb = feedback.get("course_offerings")
    return emb if isinstance(emb, Mapping) else {}


def offering_field(feedback: Row, field: str, offerings_by_id: Mapping[Any, Row]) -> Any:
    """
    Value of an offering column for this feedback: offering table first,
    embedded offering second.
    """
    offering = offerings_by_id.get(feedback.get("course_offering_id"))
    if offering is not None and offering.get(field) is not None:
        return offering.get(field)
    return _embedded_offering(feedback).get(field)


def feedback_course_id(feedback: Row, offerings_by_id: Mapping[Any, Row]) -> Any:
    cid = offering_field(feedback, "course_id", offerings_by_id)
    if cid is None:
        course = _embedded_offering(feedback).get("courses")
        if isinstance(course, Mapping):
            cid = course.get("id")
    return cid


def feedback_lecturer_id(feedback: Row, offerings_by_id: Mapping[Any, Row]) -> Any:
    return offering_field(feedback, "lecturer_id", offerings_by_id)


def feedback_semester_id(feedback: Row, offerings_by_id: Mapping[Any, Row]) -> Any:
    return offering_field(feedback, "semester_id", offerings_by_id)


def feedback_department_id(
    feedback: Row, offerings_by_id: Mapping[Any, Row], courses_by_id: Mapping[Any, Row]
) -> Any:
    course = courses_by_id.get(feedback_course_id(feedback, offerings_by_id))
    if course is not None:
        return course.get("department_id")
    embedded = _embedded_offering(feedback).get("courses")
    if isinstance(embedded, Mapping):
        return embedded.get("department_id")
    return None


# ---------------------------------------------------------------------------
# join_fn / key_fn factories for the aggregations
# ---------------------------------------------------------------------------


def lecturer_join(offerings: Iterable[Any]) -> Callable[[Row, list[Row]], list[Row]]:
    offerings_by_id = index_by_id(offerings)

    def join(lecturer: Row, feedbacks: list[Row]) -> list[Row]:
        lid = lecturer.get("id")
        return [f for f in feedbacks if feedback_lecturer_id(f, offerings_by_id) == lid]

    return join


def course_join(offerings: Iterable[Any]) -> Callable[[Row, list[Row]], list[Row]]:
    offerings_by_id = index_by_id(offerings)

    def join(course: Row, feedbacks: list[Row]) -> list[Row]:
        cid = course.get("id")
        return [f for f in feedbacks if feedback_course_id(f, offerings_by_id) == cid]

    return join


def department_key(offerings: Iterable[Any], courses: Iterable[Any]) -> Callable[[Row], Any]:
    """
    key_fn for distribution_by_department over feedback rows.
    """
    offerings_by_id = index_by_id(offerings)
    courses_by_id = index_by_id(courses)

    def key(feedback: Row) -> Any:
        return feedback_department_id(feedback, offerings_by_id, courses_by_id)

    return key


def department_join(offerings: Iterable[Any], courses: Iterable[Any]) -> Callable[[Row, list[Row]], list[Row]]:
    key = department_key(offerings, courses)

    def join(department: Row, feedbacks: list[Row]) -> list[Row]:
        did = department.get("id")
        return [f for f in feedbacks if key(f) == did]

    return join


def filter_feedback(
    feedbacks: Iterable[Any],
    offerings: Iterable[Any],
    courses: Iterable[Any],
    semester_id: Any = None,
    department_id: Any = None,
) -> list[Row]:
    """
    Feedback of one semester and/or one department. None means "all".
    """
    offerings_by_id = index_by_id(offerings)
    courses_by_id = index_by_id(courses)

    out: list[Row] = []
    for f in feedbacks or []:
        if not isinstance(f, Mapping):
            continue
        if semester_id is not None and feedback_semester_id(f, offerings_by_id) != semester_id:
            continue
        if department_id is not None and feedback_department_id(f, offerings_by_id, courses_by_id) != department_id:
            continue
        out.append(f)
    return out
