"""
Tests for the REST fetch layer. No network: requests.Session is mocked.
"""

import os
import unittest
from unittest import mock

import requests

from feedbackdash.errors import FetchConfigError
from feedbackdash.fetch import fetch_snapshot, resolve_credentials
from feedbackdash.model import TABLES


def _session_mock(rows):
    session = mock.MagicMock()
    response = mock.MagicMock()
    response.json.return_value = rows
    session.get.return_value = response
    session_cls = mock.MagicMock()
    session_cls.return_value.__enter__.return_value = session
    return session_cls, session, response


class TestFetch(unittest.TestCase):
    def test_credentials_from_environment(self) -> None:
        env = {"FEEDBACKDASH_URL": "https://demo.supabase.co/", "FEEDBACKDASH_KEY": "anon"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(resolve_credentials(), ("https://demo.supabase.co", "anon"))
            self.assertEqual(resolve_credentials(url="https://other.example"), ("https://other.example", "anon"))

    def test_missing_credentials(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(FetchConfigError):
                resolve_credentials()
            with self.assertRaises(FetchConfigError):
                resolve_credentials(url="https://demo.supabase.co")

    def test_fetch_all_tables(self) -> None:
        session_cls, session, _ = _session_mock([{"id": 1}])
        with mock.patch("feedbackdash.fetch.requests.Session", session_cls):
            snap = fetch_snapshot("https://demo.supabase.co", "anon")

        self.assertEqual(session.get.call_count, len(TABLES))
        self.assertEqual(snap.feedback, [{"id": 1}])
        self.assertIsNotNone(snap.fetched_at)

        first = session.get.call_args_list[0]
        self.assertEqual(first.args[0], "https://demo.supabase.co/rest/v1/departments")
        self.assertEqual(
            first.kwargs["params"],
            {"select": "*", "offset": "0", "limit": "1000", "order": "department_name.asc", "is_active": "eq.true"},
        )
        self.assertEqual(first.kwargs["headers"]["apikey"], "anon")
        self.assertEqual(first.kwargs["timeout"], 30)

    def test_large_tables_are_paged(self) -> None:
        pages = {"0": [{"id": 1}, {"id": 2}], "2": [{"id": 3}, {"id": 4}], "4": [{"id": 5}]}

        def get(url, params, headers, timeout):
            response = mock.MagicMock()
            if url.endswith("/feedback"):
                response.json.return_value = pages[params["offset"]]
            else:
                response.json.return_value = []
            return response

        session_cls, session, _ = _session_mock([])
        session.get.side_effect = get
        with mock.patch("feedbackdash.fetch.requests.Session", session_cls), mock.patch(
            "feedbackdash.fetch.PAGE_SIZE", 2
        ):
            snap = fetch_snapshot("https://demo.supabase.co", "anon")

        self.assertEqual([r["id"] for r in snap.feedback], [1, 2, 3, 4, 5])
        feedback_calls = [c for c in session.get.call_args_list if c.args[0].endswith("/feedback")]
        self.assertEqual([c.kwargs["params"]["offset"] for c in feedback_calls], ["0", "2", "4"])
        self.assertTrue(all(c.kwargs["params"]["limit"] == "2" for c in feedback_calls))

    def test_non_list_payload_becomes_empty(self) -> None:
        session_cls, _, _ = _session_mock({"message": "nope"})
        with mock.patch("feedbackdash.fetch.requests.Session", session_cls):
            snap = fetch_snapshot("https://demo.supabase.co", "anon")
        self.assertEqual(snap.departments, [])

    def test_http_errors_propagate(self) -> None:
        session_cls, _, response = _session_mock([])
        response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        with mock.patch("feedbackdash.fetch.requests.Session", session_cls):
            with self.assertRaises(requests.HTTPError):
                fetch_snapshot("https://demo.supabase.co", "anon")


if __name__ == "__main__":
    unittest.main()
