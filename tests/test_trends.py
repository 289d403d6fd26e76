"""
Unit tests for the monthly windows (volume / rating trend and sentiment).

Window rule:
- `months_back` calendar months ending with the month of `today`
- every month present, oldest first, even without feedback
- labels get the year once the window crosses a year boundary
"""

import unittest
from datetime import date, datetime

from feedbackdash.aggregate import ConfigurationError, monthly_trend, sentiment_trend

TODAY = date(2026, 10, 19)


def fb(created_at, rating):
    return {"created_at": created_at, "overall_rating": rating}


class TestMonthlyTrend(unittest.TestCase):
    def test_fixed_length_when_empty(self) -> None:
        rows = monthly_trend([], 6, today=TODAY)
        self.assertEqual([r["month_label"] for r in rows], ["May", "Jun", "Jul", "Aug", "Sep", "Oct"])
        self.assertTrue(all(r["count"] == 0 and r["avg_rating"] == 0 for r in rows))

    def test_labels_include_year_across_new_year(self) -> None:
        rows = monthly_trend([], 6, today=date(2026, 3, 15))
        self.assertEqual(
            [r["month_label"] for r in rows],
            ["Oct 2025", "Nov 2025", "Dec 2025", "Jan 2026", "Feb 2026", "Mar 2026"],
        )
        rows = monthly_trend([], 2, today=date(2026, 1, 5))
        self.assertEqual([r["month_label"] for r in rows], ["Dec 2025", "Jan 2026"])

    def test_window_longer_than_a_year(self) -> None:
        rows = monthly_trend([fb("2025-10-03", 2), fb("2026-10-03", 4)], 13, today=TODAY)
        labels = [r["month_label"] for r in rows]
        self.assertEqual(len(labels), 13)
        self.assertEqual(len(set(labels)), 13)
        self.assertEqual(labels[0], "Oct 2025")
        self.assertEqual(labels[-1], "Oct 2026")
        self.assertTrue(all(label.split()[-1] in ("2025", "2026") for label in labels))
        self.assertEqual((rows[0]["count"], rows[0]["avg_rating"]), (1, 2.0))
        self.assertEqual((rows[-1]["count"], rows[-1]["avg_rating"]), (1, 4.0))

    def test_counts_and_averages(self) -> None:
        feedback = [
            fb("2026-10-01T08:00:00Z", 5),
            fb("2026-10-18T22:10:00.123456+00:00", 3),
            fb("2026-08-05", None),
            fb(datetime(2026, 7, 2, 9, 30), 4),
            fb("2026-04-30T23:00:00", 5),  # before the window
            fb(None, 5),
        ]
        rows = {r["month_label"]: r for r in monthly_trend(feedback, 6, today=TODAY)}
        self.assertEqual((rows["Oct"]["count"], rows["Oct"]["avg_rating"]), (2, 4.0))
        self.assertEqual((rows["Aug"]["count"], rows["Aug"]["avg_rating"]), (1, 0))
        self.assertEqual((rows["Jul"]["count"], rows["Jul"]["avg_rating"]), (1, 4.0))
        self.assertEqual(sum(r["count"] for r in rows.values()), 4)

    def test_unparseable_date_is_reported(self) -> None:
        seen = []
        rows = monthly_trend([fb("yesterday", 4)], 6, today=TODAY, on_invalid=lambda rec, field: seen.append(field))
        self.assertEqual(seen, ["created_at"])
        self.assertEqual(sum(r["count"] for r in rows), 0)

    def test_months_back_must_be_positive(self) -> None:
        with self.assertRaises(ConfigurationError):
            monthly_trend([], 0, today=TODAY)


class TestSentimentTrend(unittest.TestCase):
    def setUp(self) -> None:
        self.feedback = [
            fb("2026-10-02", 5),
            fb("2026-10-03", 4),
            fb("2026-10-04", 3),
            fb("2026-10-05", 1),
            fb("2026-10-06", None),
            fb("2026-09-01", 5),
            fb("2026-09-02", 3),
            fb("2026-09-03", 2),
        ]

    def test_counts(self) -> None:
        rows = sentiment_trend(self.feedback, 6, mode="count", today=TODAY)
        self.assertEqual(len(rows), 6)
        self.assertEqual(rows[-1], {"month_label": "Oct", "positive": 2, "neutral": 1, "negative": 1})
        self.assertEqual(rows[-2], {"month_label": "Sep", "positive": 1, "neutral": 1, "negative": 1})

    def test_percentages_sum_to_100(self) -> None:
        rows = sentiment_trend(self.feedback, 6, mode="percent", today=TODAY)
        self.assertEqual(rows[-1], {"month_label": "Oct", "positive": 50, "neutral": 25, "negative": 25})
        # 33 + 33 + 33 = 99 -> positive gets the missing point on a three-way tie
        self.assertEqual(rows[-2], {"month_label": "Sep", "positive": 34, "neutral": 33, "negative": 33})
        for row in rows[:-2]:
            self.assertEqual((row["positive"], row["neutral"], row["negative"]), (0, 0, 0))

    def test_mode_is_required(self) -> None:
        with self.assertRaises(ConfigurationError):
            sentiment_trend(self.feedback, 6, today=TODAY)
        with self.assertRaises(ConfigurationError):
            sentiment_trend(self.feedback, 6, mode="ratio", today=TODAY)


if __name__ == "__main__":
    unittest.main()
