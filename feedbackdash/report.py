"""
Terminal rendering of the aggregation results.

Each function takes the plain output of feedbackdash.aggregate and turns it
into a rich Table. Printing is left to the caller (cli.py).
"""

from __future__ import annotations

from typing import Any, Iterable

from rich import box
from rich.markup import escape
from rich.table import Table

from feedbackdash.aggregate import entity_name
from feedbackdash.policy import DEFAULT_POLICY, PerformancePolicy

BAND_STYLES = {
    "Excellent": "green",
    "High": "green",
    "Good": "cyan",
    "Medium": "yellow",
    "Average": "yellow",
    "Poor": "red",
    "Low": "red",
}


def _rating(value: float) -> str:
    # sentinel 0 means "no data"
    return "-" if not value else f"{value:.1f}"


def _band_label(label: str) -> str:
    style = BAND_STYLES.get(label)
    return f"[{style}]{escape(label)}[/]" if style else escape(label)


def stats_table(stats: dict[str, Any], fetched_at: str | None = None) -> Table:
    title = "Dashboard overview" + (f" (data from {escape(fetched_at)})" if fetched_at else "")
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total students", str(stats["total_students"]))
    table.add_row("Active courses", str(stats["total_courses"]))
    table.add_row("Lecturers", str(stats["total_lecturers"]))
    table.add_row("Total feedback", str(stats["total_feedback"]))
    table.add_row("Average rating", _rating(stats["avg_rating"]))
    return table


def status_table(counts: dict[str, int]) -> Table:
    table = Table(title="Students by status", box=box.SIMPLE)
    table.add_column("Status")
    table.add_column("Students", justify="right")
    for status, n in counts.items():
        style = "green" if status == "Active" else "red"
        table.add_row(f"[{style}]{escape(status)}[/]", str(n))
    return table


def rating_table(distribution: Iterable[dict[str, int]]) -> Table:
    table = Table(title="Rating distribution", box=box.SIMPLE)
    table.add_column("Rating")
    table.add_column("Count", justify="right")
    table.add_column("%", justify="right")
    for row in distribution:
        stars = row["bucket"]
        label = f"{stars} Star" + ("" if stars == 1 else "s")
        table.add_row(label, str(row["count"]), f"{row['percentage']}%")
    return table


def category_table(rows: Iterable[dict[str, Any]]) -> Table:
    table = Table(title="Feedback by category", box=box.SIMPLE)
    table.add_column("Category")
    table.add_column("Count", justify="right")
    table.add_column("%", justify="right")
    for row in rows:
        table.add_row(escape(row["category_name"]), str(row["count"]), f"{row['percentage']}%")
    return table


def trend_table(rows: Iterable[dict[str, Any]]) -> Table:
    table = Table(title="Monthly feedback", box=box.SIMPLE)
    table.add_column("Month")
    table.add_column("Feedback", justify="right")
    table.add_column("Avg rating", justify="right")
    for row in rows:
        table.add_row(escape(row["month_label"]), str(row["count"]), _rating(row["avg_rating"]))
    return table


def sentiment_table(rows: Iterable[dict[str, Any]], percent: bool) -> Table:
    suffix = "%" if percent else ""
    table = Table(title="Sentiment by month" + (" (%)" if percent else ""), box=box.SIMPLE)
    table.add_column("Month")
    table.add_column("Positive", justify="right", style="green")
    table.add_column("Neutral", justify="right")
    table.add_column("Negative", justify="right", style="red")
    for row in rows:
        table.add_row(
            escape(row["month_label"]),
            f"{row['positive']}{suffix}",
            f"{row['neutral']}{suffix}",
            f"{row['negative']}{suffix}",
        )
    return table


def department_table(rows: Iterable[dict[str, Any]], what: str) -> Table:
    table = Table(title=f"{what.capitalize()} by department", box=box.SIMPLE)
    table.add_column("Department")
    table.add_column(what.capitalize(), justify="right")
    for row in rows:
        table.add_row(escape(row["department_name"]), str(row["count"]))
    return table


def ranking_table(rows: Iterable[dict[str, Any]], what: str, policy: PerformancePolicy = DEFAULT_POLICY) -> Table:
    table = Table(title=f"{what.capitalize()} by average rating", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Avg rating", justify="right")
    table.add_column("Feedback", justify="right")
    table.add_column("Band")
    for i, row in enumerate(rows, start=1):
        table.add_row(
            str(i),
            f"[bold cyan]{escape(entity_name(row['entity']))}[/]",
            _rating(row["avg_rating"]),
            str(row["feedback_count"]),
            _band_label(policy.band(row["avg_rating"])),
        )
    return table


def band_table(rows: Iterable[dict[str, Any]], policy: PerformancePolicy) -> Table:
    """
    rows: {"lecturer", "score", "feedback_count"} per lecturer.
    """
    table = Table(title=f"Lecturer comprehensive scores ({policy.name} policy)", box=box.SIMPLE)
    table.add_column("Lecturer")
    table.add_column("Score", justify="right")
    table.add_column("Feedback", justify="right")
    table.add_column("Band")
    for row in rows:
        table.add_row(
            escape(entity_name(row["lecturer"])),
            _rating(row["score"]),
            str(row["feedback_count"]),
            _band_label(policy.band(row["score"])),
        )
    return table


def band_summary_table(counts: dict[str, int]) -> Table:
    table = Table(title="Lecturers per band", box=box.SIMPLE)
    table.add_column("Band")
    table.add_column("Lecturers", justify="right")
    for label, n in counts.items():
        table.add_row(_band_label(label), str(n))
    return table
