from __future__ import annotations

import unittest
from datetime import timedelta

from app.live.cadence import PollMode, scheduled_poll_seconds, select_mode
from app.live.snapshot_store import LeagueStatus
from tests.factories import T0

LIVE = 20
IDLE = 6 * 60 * 60


def _select(status: LeagueStatus) -> tuple[PollMode, int]:
    return select_mode(status, T0, live_poll_seconds=LIVE, idle_poll_seconds=IDLE)


class ScheduledPollSecondsTests(unittest.TestCase):
    def test_tiers(self) -> None:
        cases = [
            (timedelta(minutes=3), 30),
            (timedelta(minutes=5), 30),
            (timedelta(minutes=5, seconds=1), 120),
            (timedelta(minutes=25), 120),
            (timedelta(minutes=30), 120),
            (timedelta(hours=1), 600),
            (timedelta(hours=2), 600),
            (timedelta(hours=4), 1800),
            (timedelta(hours=6), 1800),
            (timedelta(hours=7), 7200),
        ]
        for time_until, expected in cases:
            with self.subTest(time_until=time_until):
                self.assertEqual(expected, scheduled_poll_seconds(time_until))

    def test_no_scheduled_game_rechecks_hourly(self) -> None:
        self.assertEqual(3600, scheduled_poll_seconds(None))

    def test_overdue_start_counts_as_imminent(self) -> None:
        self.assertEqual(30, scheduled_poll_seconds(timedelta(minutes=-10)))


class SelectModeTests(unittest.TestCase):
    def test_no_games_is_idle(self) -> None:
        self.assertEqual((PollMode.IDLE, IDLE), _select(LeagueStatus()))

    def test_game_three_minutes_out_polls_every_thirty_seconds(self) -> None:
        status = LeagueStatus(has_scheduled=True, next_start_utc=T0 + timedelta(minutes=3))
        self.assertEqual((PollMode.SCHEDULED, 30), _select(status))

    def test_game_four_hours_out_polls_every_thirty_minutes(self) -> None:
        status = LeagueStatus(has_scheduled=True, next_start_utc=T0 + timedelta(hours=4))
        self.assertEqual((PollMode.SCHEDULED, 30 * 60), _select(status))

    def test_only_overdue_games_poll_at_imminent_rate(self) -> None:
        status = LeagueStatus(has_scheduled=True, has_overdue=True)
        self.assertEqual((PollMode.SCHEDULED, 30), _select(status))

    def test_live_game_wins_over_scheduled(self) -> None:
        status = LeagueStatus(
            has_live=True,
            has_scheduled=True,
            next_start_utc=T0 + timedelta(minutes=3),
        )
        self.assertEqual((PollMode.LIVE, LIVE), _select(status))


if __name__ == "__main__":
    unittest.main()
