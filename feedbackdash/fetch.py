"""
Fetching (hosted database -> snapshot.json).

Downloads every table listed in model.TABLES from the backend's REST
endpoint (PostgREST style: GET <url>/rest/v1/<table>?select=*) and stores
them together as one snapshot.

Only whole tables are requested. Active-only tables are filtered with
is_active=eq.true, exactly like the dashboard queries did.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from feedbackdash.errors import FetchConfigError
from feedbackdash.model import TABLES, Snapshot
from feedbackdash.storage import save_snapshot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

URL_ENV = "FEEDBACKDASH_URL"
KEY_ENV = "FEEDBACKDASH_KEY"
REST_PATH = "/rest/v1/"
TIMEOUT_SECONDS = 30
PAGE_SIZE = 1000


def resolve_credentials(url: Optional[str] = None, key: Optional[str] = None) -> tuple[str, str]:
    """
    Explicit values win, environment variables are the fallback.
    """
    url = (url or os.environ.get(URL_ENV, "")).strip().rstrip("/")
    key = (key or os.environ.get(KEY_ENV, "")).strip()
    if not url:
        raise FetchConfigError(f"No backend URL given (use --url or set {URL_ENV})")
    if not key:
        raise FetchConfigError(f"No API key given (use --key or set {KEY_ENV})")
    return url, key


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def _headers(key: str) -> Dict[str, str]:
    return {"apikey": key, "Authorization": f"Bearer {key}", "Accept": "application/json"}


def fetch_table(
    session: requests.Session, url: str, key: str, table: str, order: Optional[str], active_only: bool
) -> List[Dict[str, Any]]:
    """
    Load all rows of one table, PAGE_SIZE rows per request.

    The hosted API caps one response (1000 rows by default), so pages are
    requested with offset/limit until a short page comes back.
    """
    out: List[Dict[str, Any]] = []
    offset = 0
    while True:
        params: Dict[str, str] = {"select": "*", "offset": str(offset), "limit": str(PAGE_SIZE)}
        if order:
            params["order"] = order
        if active_only:
            params["is_active"] = "eq.true"

        resp = session.get(
            f"{url}{REST_PATH}{table}", params=params, headers=_headers(key), timeout=TIMEOUT_SECONDS
        )
        resp.raise_for_status()

        rows = resp.json()
        if not isinstance(rows, list):
            logger.warning("Table %s: expected a JSON list, got %s", table, type(rows).__name__)
            return out

        out.extend(rows)
        if len(rows) < PAGE_SIZE:
            return out
        offset += len(rows)
        logger.debug("%s: fetched %d rows so far", table, len(out))


def fetch_snapshot(url: Optional[str] = None, key: Optional[str] = None) -> Snapshot:
    """
    Fetch every table and return them as one Snapshot.
    """
    url, key = resolve_credentials(url, key)

    tables: Dict[str, Any] = {}
    with requests.Session() as session:
        for table, (order, active) in TABLES.items():
            logger.info("FETCH %s", table)
            tables[table] = fetch_table(session, url, key, table, order, active)
            logger.debug("%s: %d rows", table, len(tables[table]))

    return Snapshot.from_tables(tables, fetched_at=datetime.now().isoformat(timespec="seconds"))


def fetch_to_file(url: Optional[str] = None, key: Optional[str] = None, out: str | Path | None = None) -> Path:
    snapshot = fetch_snapshot(url, key)
    path = save_snapshot(snapshot, out)
    logger.info("Snapshot written to %s", path)
    return path
