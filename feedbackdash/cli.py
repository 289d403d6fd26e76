"""
CLI (Command Line Interface).

Quick terminal reports on a fetched feedback snapshot, e.g.:

    feedbackdash fetch --url https://<project>.supabase.co --key <anon key>
    feedbackdash stats
    feedbackdash trend --months 12
    feedbackdash sentiment --percent
    feedbackdash departments --what feedback --order count
    feedbackdash rank lecturers --top 10
    feedbackdash bands --policy high-performer

Note:
- All numbers come from feedbackdash.aggregate; this module only loads data,
  picks the rows and prints tables.
- --semester / --department narrow the feedback used by every report.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional

import requests
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from feedbackdash import aggregate
from feedbackdash import joins
from feedbackdash import report
from feedbackdash.errors import FetchConfigError, SnapshotError
from feedbackdash.fetch import fetch_to_file
from feedbackdash.model import Snapshot
from feedbackdash.policy import POLICIES, count_by_band
from feedbackdash.storage import load_snapshot

logger = logging.getLogger("feedbackdash")
console = Console()

DEPARTMENT_SOURCES = ("students", "lecturers", "courses", "feedback")
RANK_TARGETS = ("lecturers", "courses", "departments")


def _setup_logging(verbose: bool) -> None:
    logging.root.handlers = [RichHandler(rich_tracebacks=True, show_path=verbose, log_time_format="[%X]")]
    logging.root.setLevel(logging.DEBUG if verbose else logging.INFO)


def _log_invalid(record: Any, field: str) -> None:
    ident = record.get("id") if isinstance(record, dict) else None
    value = record.get(field) if isinstance(record, dict) else record
    logger.warning("Skipping malformed %s=%r (row id=%s)", field, value, ident)


def _parse_id(raw: Optional[str]) -> Any:
    """
    IDs from the command line are strings; the backend uses ints.
    """
    if raw is None:
        return None
    raw = raw.strip()
    return int(raw) if raw.isdigit() else raw


def _selected_feedback(args: argparse.Namespace, snap: Snapshot) -> list[dict[str, Any]]:
    semester_id = _parse_id(args.semester)
    if semester_id == "current":
        current = joins.current_semester(snap.academic_semesters)
        if current is None:
            logger.warning("No current semester in snapshot, using all semesters")
        semester_id = current.get("id") if current is not None else None

    return joins.filter_feedback(
        snap.feedback,
        snap.course_offerings,
        snap.courses,
        semester_id=semester_id,
        department_id=_parse_id(args.department),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_fetch(args: argparse.Namespace) -> int:
    try:
        path = fetch_to_file(args.url, args.key, args.out or args.data)
    except FetchConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        return 1
    except requests.RequestException as exc:
        logger.error("Fetch failed: %s", exc)
        return 1
    console.print(f"Snapshot saved: {escape(str(path))}")
    return 0


def _cmd_stats(args: argparse.Namespace, snap: Snapshot) -> int:
    view = Snapshot(
        students=snap.students,
        lecturers=snap.lecturers,
        courses=snap.courses,
        feedback=_selected_feedback(args, snap),
    )
    stats = aggregate.dashboard_stats(view, on_invalid=_log_invalid)
    console.print(report.stats_table(stats, snap.fetched_at))
    return 0


def _cmd_statuses(args: argparse.Namespace, snap: Snapshot) -> int:
    console.print(report.status_table(aggregate.count_by_status(joins.active_only(snap.students))))
    return 0


def _cmd_ratings(args: argparse.Namespace, snap: Snapshot) -> int:
    dist = aggregate.rating_distribution(_selected_feedback(args, snap), on_invalid=_log_invalid)
    console.print(report.rating_table(dist))
    return 0


def _cmd_categories(args: argparse.Namespace, snap: Snapshot) -> int:
    rows = aggregate.category_distribution(_selected_feedback(args, snap), snap.feedback_categories)
    if not rows:
        console.print("No categorised feedback.")
        return 0
    console.print(report.category_table(rows))
    return 0


def _cmd_trend(args: argparse.Namespace, snap: Snapshot) -> int:
    rows = aggregate.monthly_trend(_selected_feedback(args, snap), args.months, on_invalid=_log_invalid)
    console.print(report.trend_table(rows))
    return 0


def _cmd_sentiment(args: argparse.Namespace, snap: Snapshot) -> int:
    mode = "percent" if args.percent else "count"
    rows = aggregate.sentiment_trend(_selected_feedback(args, snap), args.months, mode=mode, on_invalid=_log_invalid)
    console.print(report.sentiment_table(rows, percent=args.percent))
    return 0


def _cmd_departments(args: argparse.Namespace, snap: Snapshot) -> int:
    if args.what == "feedback":
        collection = _selected_feedback(args, snap)
        key_fn = joins.department_key(snap.course_offerings, snap.courses)
    else:
        collection = joins.active_only(getattr(snap, args.what))

        def key_fn(row: dict[str, Any]) -> Any:
            return row.get("department_id")

    rows = aggregate.distribution_by_department(
        collection, snap.departments, key_fn, order=args.order, include_empty=args.include_empty
    )
    if not rows:
        console.print("No results.")
        return 0
    console.print(report.department_table(rows, args.what))
    return 0


def _cmd_rank(args: argparse.Namespace, snap: Snapshot) -> int:
    if args.target == "lecturers":
        entities = joins.active_only(snap.lecturers)
        join_fn = joins.lecturer_join(snap.course_offerings)
    elif args.target == "courses":
        entities = joins.active_only(snap.courses)
        join_fn = joins.course_join(snap.course_offerings)
    else:
        entities = joins.active_only(snap.departments)
        join_fn = joins.department_join(snap.course_offerings, snap.courses)

    rows = aggregate.rank_by_average_rating(
        entities, _selected_feedback(args, snap), join_fn, top_n=args.top, on_invalid=_log_invalid
    )
    if not rows:
        console.print("No rated feedback.")
        return 0
    console.print(report.ranking_table(rows, args.target, POLICIES[args.policy]))
    return 0


def _cmd_bands(args: argparse.Namespace, snap: Snapshot) -> int:
    policy = POLICIES[args.policy]
    feedback = _selected_feedback(args, snap)
    join_fn = joins.lecturer_join(snap.course_offerings)

    rows: list[dict[str, Any]] = []
    for lecturer in joins.active_only(snap.lecturers):
        own = join_fn(lecturer, feedback)
        if not own:
            continue
        rows.append(
            {
                "lecturer": lecturer,
                "score": aggregate.lecturer_comprehensive_score(own, on_invalid=_log_invalid),
                "feedback_count": len(own),
            }
        )

    if not rows:
        console.print("No lecturer feedback.")
        return 0

    rows.sort(key=lambda r: (-r["score"], aggregate.entity_name(r["lecturer"])))
    console.print(report.band_table(rows, policy))
    console.print(report.band_summary_table(count_by_band([r["score"] for r in rows], policy)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="feedbackdash", description="University feedback analytics")
    parser.add_argument("--data", type=str, default=None, help="Snapshot path (default: package data/snapshot.json)")
    parser.add_argument("--semester", type=str, default=None, help="Only feedback of this semester id (or 'current')")
    parser.add_argument("--department", type=str, default=None, help="Only feedback of this department id")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_fetch = sub.add_parser("fetch", help="Download all tables into a local snapshot")
    p_fetch.add_argument("--url", type=str, default=None, help="Backend URL (default: $FEEDBACKDASH_URL)")
    p_fetch.add_argument("--key", type=str, default=None, help="API key (default: $FEEDBACKDASH_KEY)")
    p_fetch.add_argument("--out", type=str, default=None, help="Output path (default: --data or package default)")

    sub.add_parser("stats", help="Headline numbers")
    sub.add_parser("statuses", help="Students by status")
    sub.add_parser("ratings", help="Overall rating distribution")
    sub.add_parser("categories", help="Feedback by category")

    p_trend = sub.add_parser("trend", help="Feedback volume and rating per month")
    p_trend.add_argument("--months", type=int, default=6, help="Number of months (default: 6)")

    p_sent = sub.add_parser("sentiment", help="Positive / neutral / negative per month")
    p_sent.add_argument("--months", type=int, default=6, help="Number of months (default: 6)")
    p_sent.add_argument("--percent", action="store_true", help="Show shares instead of counts")

    p_dept = sub.add_parser("departments", help="Distribution over departments")
    p_dept.add_argument("--what", choices=DEPARTMENT_SOURCES, default="students")
    p_dept.add_argument("--order", choices=aggregate.DEPARTMENT_ORDERS, default="input")
    p_dept.add_argument("--include-empty", action="store_true", help="Keep departments with 0")

    p_rank = sub.add_parser("rank", help="Rank by average rating")
    p_rank.add_argument("target", choices=RANK_TARGETS)
    p_rank.add_argument("--top", type=int, default=None, help="Show only the first N")
    p_rank.add_argument("--policy", choices=sorted(POLICIES), default="default")

    p_bands = sub.add_parser("bands", help="Lecturer comprehensive scores and bands")
    p_bands.add_argument("--policy", choices=sorted(POLICIES), default="default")

    return parser


COMMANDS = {
    "stats": _cmd_stats,
    "statuses": _cmd_statuses,
    "ratings": _cmd_ratings,
    "categories": _cmd_categories,
    "trend": _cmd_trend,
    "sentiment": _cmd_sentiment,
    "departments": _cmd_departments,
    "rank": _cmd_rank,
    "bands": _cmd_bands,
}


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "fetch":
        raise SystemExit(_cmd_fetch(args))

    try:
        snap = load_snapshot(args.data)
    except FileNotFoundError:
        console.print("No snapshot found. Run 'feedbackdash fetch' first (or pass --data).")
        raise SystemExit(1)
    except SnapshotError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        raise SystemExit(1)

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        raise SystemExit(handler(args, snap))
    except aggregate.ConfigurationError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        raise SystemExit(1)
