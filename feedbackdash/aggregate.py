"""
Feedback aggregation (rows -> chart-ready summaries).

Every function here is pure: it reads already-loaded rows (plain dicts),
never mutates them, never logs and never does I/O.

Conventions used throughout:
- A rating is valid when it is an integer value in [1, 5].
  None means "not answered" and is skipped silently.
  Anything else is malformed: skipped, and reported through the optional
  on_invalid(record, field) callback.
- "No data" is the sentinel 0, never None / NaN.
- Rounding is half-up (2.25 -> 2.3), like the dashboard always showed it,
  not Python's round-half-even.
- Percentages of one breakdown always add up to exactly 100 (or are all 0).

The only exception raised is ConfigurationError, when the caller leaves a
required choice open (sentiment mode, department order, ...).
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence

from feedbackdash.errors import ConfigurationError
from feedbackdash.joins import active_only
from feedbackdash.model import COMPREHENSIVE_FIELDS, DEFAULT_STATUS, OVERALL_RATING, Snapshot
from feedbackdash.policy import DEFAULT_POLICY, PerformancePolicy, performance_band

__all__ = [
    "ConfigurationError",
    "DEFAULT_POLICY",
    "PerformancePolicy",
    "average_rating",
    "category_distribution",
    "comprehensive_score",
    "count_by_status",
    "dashboard_stats",
    "distribution_by_department",
    "entity_name",
    "lecturer_comprehensive_score",
    "monthly_trend",
    "performance_band",
    "rank_by_average_rating",
    "rating_distribution",
    "round_half_up",
    "sentiment_trend",
]

Row = Mapping[str, Any]
InvalidCallback = Callable[[Any, str], None]

RATING_BUCKETS = (1, 2, 3, 4, 5)
DEPARTMENT_ORDERS = ("input", "id", "count")
SENTIMENT_MODES = ("count", "percent")
MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float | Decimal, digits: int = 0) -> float:
    """
    Round like a person would: 0.5 always goes up.
    Pass a Decimal when the value must not pick up float error first.
    """
    quant = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP)
    return float(rounded)


def _records(items: Optional[Iterable[Any]]) -> Iterator[Row]:
    # None or a non-iterable input counts as "no rows"; non-dict rows are skipped
    if items is None or isinstance(items, (str, bytes, Mapping)):
        return iter(())
    try:
        return (r for r in items if isinstance(r, Mapping))
    except TypeError:
        return iter(())


def _report(on_invalid: Optional[InvalidCallback], record: Any, field: str) -> None:
    if on_invalid is not None:
        on_invalid(record, field)


def _rating_value(record: Row, field: str, on_invalid: Optional[InvalidCallback] = None) -> Optional[int]:
    """
    Return the rating as int, or None if absent / malformed.
    """
    value = record.get(field)
    if value is None:
        return None
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value != int(value)
        or not 1 <= value <= 5
    ):
        _report(on_invalid, record, field)
        return None
    return int(value)


def _valid_ratings(
    feedbacks: Optional[Iterable[Any]], field: str = OVERALL_RATING, on_invalid: Optional[InvalidCallback] = None
) -> list[int]:
    out: list[int] = []
    for f in _records(feedbacks):
        v = _rating_value(f, field, on_invalid)
        if v is not None:
            out.append(v)
    return out


def _ratio(numerator: int, denominator: int) -> float:
    # exact division, then half-up to one decimal
    if not denominator:
        return 0.0
    return round_half_up(Decimal(numerator) / Decimal(denominator), 1)


def _mean(values: Sequence[int]) -> float:
    return _ratio(sum(values), len(values))


def _percentages(counts: Sequence[int]) -> list[int]:
    """
    Half-up percentages of counts. If rounding makes them miss 100, the
    difference goes to the largest count (first one on ties).
    """
    total = sum(counts)
    if total == 0:
        return [0 for _ in counts]
    pcts = [int(round_half_up(Decimal(c * 100) / Decimal(total))) for c in counts]
    diff = 100 - sum(pcts)
    if diff:
        pcts[counts.index(max(counts))] += diff
    return pcts


def entity_name(entity: Row) -> str:
    """
    Display name of a lecturer, course, department or category row.
    """
    first = str(entity.get("first_name") or "").strip()
    last = str(entity.get("last_name") or "").strip()
    if first or last:
        return f"{first} {last}".strip()
    for key in ("course_name", "department_name", "category_name", "name"):
        value = entity.get(key)
        if value:
            return str(value)
    ident = entity.get("id")
    return "" if ident is None else str(ident)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


def average_rating(
    feedbacks: Optional[Iterable[Any]], field: str = OVERALL_RATING, on_invalid: Optional[InvalidCallback] = None
) -> float:
    """
    Mean of the valid ratings in `field`, one decimal. 0 means "no data".
    """
    return _mean(_valid_ratings(feedbacks, field, on_invalid))


def rating_distribution(
    feedbacks: Optional[Iterable[Any]], on_invalid: Optional[InvalidCallback] = None
) -> list[dict[str, int]]:
    """
    Overall rating histogram: always five buckets (1..5, ascending).

    percentage is relative to the feedback that has a valid overall rating.
    """
    counts = Counter(_valid_ratings(feedbacks, OVERALL_RATING, on_invalid))
    bucket_counts = [counts.get(b, 0) for b in RATING_BUCKETS]
    pcts = _percentages(bucket_counts)
    return [
        {"bucket": b, "count": c, "percentage": p} for b, c, p in zip(RATING_BUCKETS, bucket_counts, pcts)
    ]


def comprehensive_score(feedback: Row, on_invalid: Optional[InvalidCallback] = None) -> float:
    """
    Unweighted mean of overall rating + the four sub-ratings.
    A missing sub-rating counts as 0 (this is how scores were always computed).
    """
    return _comprehensive_total(feedback, on_invalid) / len(COMPREHENSIVE_FIELDS)


def _comprehensive_total(feedback: Row, on_invalid: Optional[InvalidCallback]) -> int:
    total = 0
    for field in COMPREHENSIVE_FIELDS:
        total += _rating_value(feedback, field, on_invalid) or 0
    return total


def lecturer_comprehensive_score(
    feedbacks: Optional[Iterable[Any]], on_invalid: Optional[InvalidCallback] = None
) -> float:
    """
    Mean comprehensive score over a lecturer's feedback, one decimal half-up.
    Summed as integer totals so exact .x5 means round up.
    """
    totals = [_comprehensive_total(f, on_invalid) for f in _records(feedbacks)]
    return _ratio(sum(totals), len(COMPREHENSIVE_FIELDS) * len(totals))


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def count_by_status(students: Optional[Iterable[Any]]) -> dict[str, int]:
    """
    Students per status, in order of first appearance. No status = "Active".
    """
    counts: dict[str, int] = {}
    for s in _records(students):
        status = str(s.get("student_status") or DEFAULT_STATUS)
        counts[status] = counts.get(status, 0) + 1
    return counts


def _department_label(dept: Row) -> str:
    return str(dept.get("department_name") or dept.get("name") or "")


def distribution_by_department(
    collection: Optional[Iterable[Any]],
    departments: Optional[Iterable[Any]],
    key_fn: Callable[[Row], Any],
    *,
    order: Optional[str] = None,
    include_empty: bool = False,
) -> list[dict[str, Any]]:
    """
    Count items of `collection` per department, matched by key_fn(item) == department id.

    order (required):
        "input"  departments as given
        "id"     department id ascending
        "count"  count descending, department name then id on ties
    include_empty: keep departments without any match (count 0).
    """
    if order not in DEPARTMENT_ORDERS:
        raise ConfigurationError(f"order must be one of {DEPARTMENT_ORDERS}, got {order!r}")

    counts = Counter(key_fn(item) for item in _records(collection))

    depts = list(_records(departments))
    if order == "id":
        depts.sort(key=lambda d: (d.get("id") is None, d.get("id")))
    elif order == "count":
        depts.sort(key=lambda d: (-counts.get(d.get("id"), 0), _department_label(d), str(d.get("id"))))

    out = [{"department_name": _department_label(d), "count": counts.get(d.get("id"), 0)} for d in depts]
    if not include_empty:
        out = [row for row in out if row["count"] > 0]
    return out


def category_distribution(
    feedbacks: Optional[Iterable[Any]], categories: Optional[Iterable[Any]]
) -> list[dict[str, Any]]:
    """
    Feedback per category (category order kept, empty categories dropped).
    Feedback without a known category is ignored.
    """
    counts = Counter(f.get("category_id") for f in _records(feedbacks))
    cats = list(_records(categories))
    cat_counts = [counts.get(c.get("id"), 0) for c in cats]
    pcts = _percentages(cat_counts)
    return [
        {"category_name": entity_name(c), "count": n, "percentage": p}
        for c, n, p in zip(cats, cat_counts, pcts)
        if n > 0
    ]


def rank_by_average_rating(
    entities: Optional[Iterable[Any]],
    feedbacks: Optional[Iterable[Any]],
    join_fn: Callable[[Row, list[Row]], Iterable[Any]],
    top_n: Optional[int] = None,
    name_fn: Callable[[Row], str] = entity_name,
    on_invalid: Optional[InvalidCallback] = None,
) -> list[dict[str, Any]]:
    """
    Rank entities (lecturers, courses, departments) by the average overall
    rating of the feedback join_fn attributes to them.

    Entities without any valid rating are left out. Order: avg_rating desc,
    feedback_count desc, name asc.
    """
    if top_n is not None and top_n < 0:
        raise ConfigurationError(f"top_n must be >= 0, got {top_n!r}")

    feedback_rows = list(_records(feedbacks))
    ranked: list[dict[str, Any]] = []
    for entity in _records(entities):
        values = _valid_ratings(join_fn(entity, feedback_rows), OVERALL_RATING, on_invalid)
        if not values:
            continue
        ranked.append({"entity": entity, "avg_rating": _mean(values), "feedback_count": len(values)})

    ranked.sort(key=lambda r: (-r["avg_rating"], -r["feedback_count"], name_fn(r["entity"])))
    if top_n is not None:
        ranked = ranked[:top_n]
    return ranked


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


def _month_window(months_back: int, today: Optional[date]) -> list[tuple[int, int]]:
    if isinstance(months_back, bool) or not isinstance(months_back, int) or months_back < 1:
        raise ConfigurationError(f"months_back must be a positive int, got {months_back!r}")
    today = today or date.today()
    end = today.year * 12 + today.month - 1
    return [divmod(i, 12) for i in range(end - months_back + 1, end + 1)]


def _month_labels(window: list[tuple[int, int]]) -> list[str]:
    # year is added to every label once the window crosses a year boundary
    with_year = window[0][0] != window[-1][0]
    labels = []
    for year, month0 in window:
        label = MONTH_ABBR[month0]
        labels.append(f"{label} {year}" if with_year else label)
    return labels


def _created_month(record: Row, on_invalid: Optional[InvalidCallback]) -> Optional[tuple[int, int]]:
    """
    (year, zero-based month) of created_at, or None.
    """
    value = record.get("created_at")
    if value is None or value == "":
        return None
    if isinstance(value, (datetime, date)):
        return value.year, value.month - 1
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            try:
                dt = datetime.strptime(text[:10], "%Y-%m-%d")
            except ValueError:
                dt = None
        if dt is not None:
            return dt.year, dt.month - 1
    _report(on_invalid, record, "created_at")
    return None


def monthly_trend(
    feedbacks: Optional[Iterable[Any]],
    months_back: int = 6,
    today: Optional[date] = None,
    on_invalid: Optional[InvalidCallback] = None,
) -> list[dict[str, Any]]:
    """
    Feedback volume and average overall rating for the last `months_back`
    calendar months (current month included), oldest first.

    Every month is present, empty ones with count 0 and avg_rating 0.
    """
    window = _month_window(months_back, today)
    counts = {ym: 0 for ym in window}
    ratings: dict[tuple[int, int], list[int]] = {ym: [] for ym in window}

    for f in _records(feedbacks):
        ym = _created_month(f, on_invalid)
        if ym not in counts:
            continue
        counts[ym] += 1
        v = _rating_value(f, OVERALL_RATING, on_invalid)
        if v is not None:
            ratings[ym].append(v)

    return [
        {"month_label": label, "count": counts[ym], "avg_rating": _mean(ratings[ym])}
        for ym, label in zip(window, _month_labels(window))
    ]


def _sentiment(rating: int) -> str:
    if rating >= 4:
        return "positive"
    if rating == 3:
        return "neutral"
    return "negative"


def sentiment_trend(
    feedbacks: Optional[Iterable[Any]],
    months_back: int = 6,
    *,
    mode: Optional[str] = None,
    today: Optional[date] = None,
    on_invalid: Optional[InvalidCallback] = None,
) -> list[dict[str, Any]]:
    """
    Positive (4-5) / neutral (3) / negative (1-2) feedback per month, same
    window as monthly_trend. Feedback without a rating is not counted.

    mode (required): "count" for raw counts, "percent" for shares of the
    month's rated feedback (summing to exactly 100, or all 0).
    """
    if mode not in SENTIMENT_MODES:
        raise ConfigurationError(f"mode must be one of {SENTIMENT_MODES}, got {mode!r}")

    window = _month_window(months_back, today)
    buckets = {ym: {"positive": 0, "neutral": 0, "negative": 0} for ym in window}

    for f in _records(feedbacks):
        ym = _created_month(f, on_invalid)
        if ym not in buckets:
            continue
        v = _rating_value(f, OVERALL_RATING, on_invalid)
        if v is not None:
            buckets[ym][_sentiment(v)] += 1

    out: list[dict[str, Any]] = []
    for ym, label in zip(window, _month_labels(window)):
        b = buckets[ym]
        values = [b["positive"], b["neutral"], b["negative"]]
        if mode == "percent":
            values = _percentages(values)
        out.append({"month_label": label, "positive": values[0], "neutral": values[1], "negative": values[2]})
    return out


# ---------------------------------------------------------------------------
# KPI cards
# ---------------------------------------------------------------------------


def dashboard_stats(snapshot: Snapshot, on_invalid: Optional[InvalidCallback] = None) -> dict[str, Any]:
    """
    Headline numbers: active lecturers / students / courses, all feedback,
    and the overall average rating.
    """
    return {
        "total_lecturers": len(active_only(snapshot.lecturers)),
        "total_students": len(active_only(snapshot.students)),
        "total_courses": len(active_only(snapshot.courses)),
        "total_feedback": len(list(_records(snapshot.feedback))),
        "avg_rating": average_rating(snapshot.feedback, on_invalid=on_invalid),
    }
