"""
Persistent storage for the fetched database snapshot.

This module manages the file:

    data/snapshot.json

Layout:
    {
      "fetched_at": "2026-10-19T09:30:00",
      "departments": [ {...}, ... ],
      "students": [ ... ],
      ...
    }

The snapshot is written by `feedbackdash fetch` and read by every report
command, so reports work offline and always see one consistent copy.
"""

from __future__ import annotations

import json
from pathlib import Path

from feedbackdash.errors import SnapshotError
from feedbackdash.model import Snapshot


def default_snapshot_path() -> Path:
    """
    Return the default path of snapshot.json inside the package.

    Using a function instead of a constant makes testing easier,
    because tests can pass their own path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "snapshot.json"


def load_snapshot(path: str | Path | None = None) -> Snapshot:
    """
    Load a Snapshot from JSON.

    Raises FileNotFoundError if nothing was fetched yet and SnapshotError
    if the path cannot be read (directory, permissions) or is not a JSON
    object. Missing tables load as empty lists.
    """
    snapshot_path = Path(path) if path is not None else default_snapshot_path()

    try:
        data = json.loads(snapshot_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise SnapshotError(f"Cannot read snapshot {snapshot_path}: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SnapshotError(f"Cannot decode snapshot {snapshot_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot {snapshot_path} must contain a JSON object")

    fetched_at = data.get("fetched_at")
    return Snapshot.from_tables(data, fetched_at=fetched_at if isinstance(fetched_at, str) else None)


def save_snapshot(snapshot: Snapshot, path: str | Path | None = None) -> Path:
    """
    Save a Snapshot to JSON. Creates parent directories if needed.
    Returns the path written.
    """
    snapshot_path = Path(path) if path is not None else default_snapshot_path()
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {"fetched_at": snapshot.fetched_at}
    payload.update(snapshot.to_tables())

    snapshot_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    return snapshot_path
