from __future__ import annotations

import asyncio
import dataclasses
import unittest
from datetime import timedelta

from app.live.cadence import PollMode
from app.live.scheduler import LiveScoresScheduler
from tests.factories import (
    SETTINGS,
    FakeClock,
    FakeProvider,
    RecordingNotifier,
    RecordingRefresher,
    make_game,
)


class _SchedulerTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.clock = FakeClock()
        self.provider = FakeProvider()
        self.notifier = RecordingNotifier()
        self.refresher = RecordingRefresher()
        self.scheduler = LiveScoresScheduler(
            self.provider,
            self.notifier,
            refreshers={"NBA": self.refresher},
            leagues=("NBA", "NHL"),
            settings=SETTINGS,
            now_fn=self.clock,
        )

    async def poll(self, league: str = "NBA", include_stats_refresh: bool = False) -> bool:
        return await self.scheduler.check_and_update_league_games(league, include_stats_refresh)

    async def run_due(self) -> None:
        tasks = self.scheduler.launch_due_ticks()
        await asyncio.gather(*tasks)


class DiffingTests(_SchedulerTestCase):
    async def test_same_game_twice_within_dwell_applies_once(self) -> None:
        live = make_game(status="in_progress", home_score=10, away_score=7)
        self.provider.set_games("NBA", [live])

        await self.poll()
        self.clock.advance(seconds=10)
        await self.poll()

        self.assertEqual(1, len(self.notifier.of("score_update")))
        self.assertEqual(1, len(self.scheduler.get_active_games()))

    async def test_identical_game_after_dwell_does_not_emit(self) -> None:
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=10, away_score=7)])

        await self.poll()
        self.clock.advance(minutes=5)
        await self.poll()

        self.assertEqual(1, len(self.notifier.of("score_update")))

    async def test_changed_score_waits_for_dwell_time(self) -> None:
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=10, away_score=7)])
        await self.poll()

        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=12, away_score=7)])
        self.clock.advance(seconds=10)
        await self.poll()
        self.assertEqual(10, self.scheduler.store.get("NBA-401").home.score)

        self.clock.advance(seconds=20)
        await self.poll()

        self.assertEqual(12, self.scheduler.store.get("NBA-401").home.score)
        self.assertEqual(2, len(self.notifier.of("score_update")))
        self.assertEqual(self.clock.now, self.scheduler.store.last_updated_at("NBA-401"))

    async def test_status_never_regresses_from_in_progress(self) -> None:
        self.provider.set_games("NBA", [make_game(status="scheduled")])
        await self.poll()
        self.clock.advance(minutes=1)
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=2, away_score=0)])
        await self.poll()
        self.clock.advance(minutes=1)
        self.provider.set_games("NBA", [make_game(status="scheduled")])

        changed = await self.poll()

        self.assertFalse(changed)
        self.assertEqual("in_progress", self.scheduler.store.get("NBA-401").status)

    async def test_missing_game_is_removed_once(self) -> None:
        self.provider.set_games("NBA", [make_game("401"), make_game("402")])
        await self.poll()
        self.provider.set_games("NBA", [make_game("402")])

        changed = await self.poll()
        await self.poll()

        self.assertTrue(changed)
        self.assertEqual([("game_removed", "NBA-401")], self.notifier.of("game_removed"))
        self.assertNotIn("NBA-401", self.scheduler.store)
        self.assertIn("NBA-402", self.scheduler.store)

    async def test_removal_only_touches_the_polled_league(self) -> None:
        self.provider.set_games("NBA", [make_game("401")])
        self.provider.set_games("NHL", [make_game("900", league="NHL")])
        await self.poll("NBA")
        await self.poll("NHL")

        self.provider.set_games("NHL", [])
        await self.poll("NHL")

        self.assertIn("NBA-401", self.scheduler.store)
        self.assertNotIn("NHL-900", self.scheduler.store)

    async def test_completed_game_is_never_re_added(self) -> None:
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=99, away_score=98)])
        await self.poll()
        self.clock.advance(minutes=1)
        self.provider.set_games("NBA", [make_game(status="final", home_score=101, away_score=98)])

        changed = await self.poll()

        self.assertTrue(changed)
        self.assertNotIn("NBA-401", self.scheduler.store)
        self.assertTrue(self.scheduler.store.is_completed("NBA-401"))
        self.assertEqual(1, len(self.notifier.of("updates_changed")))
        self.assertEqual([], self.notifier.of("game_removed"))

        self.clock.advance(minutes=1)
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=101, away_score=98)])
        await self.poll()

        self.assertNotIn("NBA-401", self.scheduler.store)
        self.assertEqual(1, len(self.notifier.of("score_update")))

    async def test_final_game_never_seen_is_ignored(self) -> None:
        self.provider.set_games("NBA", [make_game(status="final", home_score=100, away_score=90)])

        changed = await self.poll()

        self.assertFalse(changed)
        self.assertEqual([], self.scheduler.get_active_games())
        self.assertEqual([], self.notifier.events)


class FailureTests(_SchedulerTestCase):
    async def test_provider_failure_leaves_snapshot_unchanged(self) -> None:
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=1, away_score=0)])
        await self.poll()
        events_before = list(self.notifier.events)
        self.provider.fail("NBA", "ESPN server error 503")

        changed = await self.poll()

        self.assertFalse(changed)
        self.assertIn("NBA-401", self.scheduler.store)
        self.assertEqual(events_before, self.notifier.events)
        self.assertIn("503", self.scheduler.league_schedule("NBA").last_error)

    async def test_unknown_league_is_a_no_op(self) -> None:
        changed = await self.poll("XFL")

        self.assertFalse(changed)
        self.assertEqual([], self.provider.calls)

    async def test_stat_refresh_failure_does_not_affect_snapshot(self) -> None:
        self.refresher.fail = True
        self.provider.set_games("NBA", [make_game(status="in_progress", home_score=3, away_score=0)])

        await self.poll(include_stats_refresh=True)

        self.assertEqual([("13", "2")], self.refresher.calls)
        self.assertIn("NBA-401", self.scheduler.store)
        self.assertEqual(1, len(self.notifier.of("score_update")))

    async def test_stat_refresh_only_for_live_games_when_enabled(self) -> None:
        self.provider.set_games(
            "NBA",
            [make_game("401", status="scheduled"), make_game("402", status="in_progress")],
        )

        await self.poll(include_stats_refresh=False)
        self.assertEqual([], self.refresher.calls)

        self.clock.advance(minutes=1)
        self.provider.set_games(
            "NBA",
            [
                make_game("401", status="scheduled", clock="pre"),
                make_game("402", status="in_progress", home_score=2, away_score=0),
            ],
        )
        await self.poll(include_stats_refresh=True)

        self.assertEqual([("13", "2")], self.refresher.calls)

    async def test_superseded_tick_is_rerun_immediately(self) -> None:
        await self.scheduler.rebuild_schedule()
        stale_generation = self.scheduler.league_schedule("NBA").generation
        await self.scheduler.rebuild_schedule()
        self.provider.set_games("NBA", [make_game(status="in_progress")])

        changed = await self.scheduler.check_and_update_league_games(
            "NBA", True, generation=stale_generation
        )

        self.assertFalse(changed)
        self.assertEqual([], self.scheduler.get_active_games())
        self.assertEqual([], self.refresher.calls)
        self.assertEqual(self.clock.now, self.scheduler.league_schedule("NBA").next_run_at)

        await self.run_due()

        self.assertIn("NBA-401", self.scheduler.store)
        self.assertEqual([("13", "2")], self.refresher.calls)
        self.assertEqual(["NBA", "NBA"], self.provider.calls)


class ModeTransitionTests(_SchedulerTestCase):
    async def test_live_game_takes_priority_over_scheduled(self) -> None:
        self.provider.set_games(
            "NBA",
            [
                make_game("401", status="scheduled", start=self.clock.now + timedelta(minutes=3)),
                make_game("402", status="in_progress", home_score=5, away_score=4),
            ],
        )
        await self.poll()

        await self.scheduler.rebuild_schedule()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual(PollMode.LIVE, nba.mode)
        self.assertEqual(20, nba.interval_seconds)
        self.assertTrue(nba.has_live)
        self.assertTrue(nba.has_scheduled)
        nhl = self.scheduler.league_schedule("NHL")
        self.assertEqual(PollMode.IDLE, nhl.mode)
        self.assertEqual(6 * 60 * 60, nhl.interval_seconds)
        self.assertEqual(
            [("league_status_changed", {"NBA": True, "NHL": False})],
            self.notifier.of("league_status_changed"),
        )

    async def test_scheduled_mode_uses_earliest_game(self) -> None:
        self.provider.set_games(
            "NBA",
            [
                make_game("401", start=self.clock.now + timedelta(hours=4)),
                make_game("402", start=self.clock.now + timedelta(minutes=3)),
            ],
        )
        await self.poll()

        await self.scheduler.rebuild_schedule()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual(PollMode.SCHEDULED, nba.mode)
        self.assertEqual(30, nba.interval_seconds)
        self.assertEqual(self.clock.now + timedelta(seconds=30), nba.next_run_at)

    async def test_rebuild_invalidates_pending_runs(self) -> None:
        await self.scheduler.rebuild_schedule()
        await self.scheduler.rebuild_schedule()
        self.clock.advance(hours=7)

        tasks = self.scheduler.launch_due_ticks()
        await asyncio.gather(*tasks)

        self.assertEqual(2, len(tasks))
        self.assertEqual(["NBA", "NHL"], sorted(self.provider.calls))

    async def test_settings_change_retimes_live_leagues(self) -> None:
        self.provider.set_games("NBA", [make_game(status="in_progress")])
        await self.poll()
        await self.scheduler.rebuild_schedule()

        self.scheduler.apply_settings(dataclasses.replace(SETTINGS, live_poll_seconds=45))
        await self.scheduler.rebuild_schedule()

        self.assertEqual(45, self.scheduler.league_schedule("NBA").interval_seconds)

    async def test_delayed_game_does_not_drive_scheduled_interval(self) -> None:
        self.provider.set_games(
            "NBA",
            [
                make_game("401", start=self.clock.now - timedelta(minutes=10)),
                make_game("402", start=self.clock.now + timedelta(hours=4)),
            ],
        )
        await self.poll()

        await self.scheduler.rebuild_schedule()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual(PollMode.SCHEDULED, nba.mode)
        self.assertEqual(30 * 60, nba.interval_seconds)

    async def test_only_delayed_games_keep_league_scheduled(self) -> None:
        self.provider.set_games("NBA", [make_game("401", start=self.clock.now - timedelta(minutes=10))])
        await self.poll()

        await self.scheduler.rebuild_schedule()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual(PollMode.SCHEDULED, nba.mode)
        self.assertEqual(30, nba.interval_seconds)

    async def test_rebuild_logs_postponed_runs(self) -> None:
        await self.scheduler.rebuild_schedule()
        self.clock.advance(hours=1)

        with self.assertLogs("app.live.scheduler", level="INFO") as logs:
            await self.scheduler.rebuild_schedule()

        self.assertTrue(any("Rebuild postponed league=NBA" in line for line in logs.output))
        self.assertEqual(
            self.clock.now + timedelta(hours=6),
            self.scheduler.league_schedule("NBA").next_run_at,
        )

    async def test_run_returns_after_stop(self) -> None:
        await self.scheduler.start()
        task = asyncio.create_task(self.scheduler.run())
        await asyncio.sleep(0)

        self.scheduler.stop()

        await asyncio.wait_for(task, timeout=2)
        self.assertTrue(task.done())


class OverlappingTickTests(_SchedulerTestCase):
    """NBA and NHL become due together; NBA's fetch is held open."""

    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        await self.scheduler.start()
        self.clock.now = self.scheduler.league_schedule("NBA").next_run_at
        self.provider.set_games(
            "NHL", [make_game("900", league="NHL", start=self.clock.now + timedelta(hours=1))]
        )
        self.provider.hold("NBA")
        self.nba_task, self.nhl_task = self.scheduler.launch_due_ticks()

    async def asyncTearDown(self) -> None:
        if not self.nba_task.done():
            self.provider.release("NBA")
            await self.nba_task

    async def test_rebuild_from_other_league_keeps_inflight_league_data(self) -> None:
        await self.nhl_task
        self.assertEqual(PollMode.SCHEDULED, self.scheduler.league_schedule("NHL").mode)
        self.assertFalse(self.nba_task.done())

        self.provider.set_games(
            "NBA", [make_game("401", start=self.clock.now + timedelta(minutes=20))]
        )
        self.provider.release("NBA")
        await self.nba_task
        await self.run_due()

        nba = self.scheduler.league_schedule("NBA")
        self.assertIn("NBA-401", self.scheduler.store)
        self.assertIn("NHL-900", self.scheduler.store)
        self.assertEqual(PollMode.SCHEDULED, nba.mode)
        self.assertEqual(2 * 60, nba.interval_seconds)
        self.assertEqual(
            {"NBA": False, "NHL": False},
            self.notifier.of("league_status_changed")[-1][1],
        )

    async def test_due_league_with_tick_in_flight_is_deferred(self) -> None:
        # NHL's new game rebuilds the schedule, queueing NBA again at now + 6h.
        await self.nhl_task
        self.clock.advance(hours=6)

        with self.assertLogs("app.live.scheduler", level="WARNING"):
            launched = self.scheduler.launch_due_ticks()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual(1, len(launched))
        self.assertEqual(2, self.provider.calls.count("NBA"))
        self.assertEqual(self.clock.now + timedelta(hours=6), nba.next_run_at)

        self.provider.release("NBA")
        await asyncio.gather(self.nba_task, *launched)
        # The held result is superseded, so NBA is queued to run again right away.
        self.assertEqual(self.clock.now, nba.next_run_at)


class EndToEndTests(_SchedulerTestCase):
    async def test_idle_to_scheduled_to_live_to_idle(self) -> None:
        self.provider.set_games("NBA", [])
        await self.scheduler.start()

        nba = self.scheduler.league_schedule("NBA")
        self.assertEqual([], self.scheduler.get_active_games())
        self.assertEqual(PollMode.IDLE, nba.mode)
        self.assertEqual(6 * 60 * 60, nba.interval_seconds)

        # Scheduled game 25 minutes out appears on the next idle tick.
        self.clock.now = nba.next_run_at
        self.provider.set_games(
            "NBA", [make_game("401", start=self.clock.now + timedelta(minutes=25))]
        )
        await self.run_due()

        self.assertEqual(1, len(self.scheduler.get_active_games()))
        self.assertEqual(PollMode.SCHEDULED, nba.mode)
        self.assertEqual(2 * 60, nba.interval_seconds)

        # Tip-off: same id now in progress, 10-7.
        updates_before = len(self.notifier.of("score_update"))
        self.clock.now = nba.next_run_at
        self.provider.set_games(
            "NBA",
            [
                make_game(
                    "401",
                    status="in_progress",
                    start=self.clock.now,
                    home_score=10,
                    away_score=7,
                )
            ],
        )
        await self.run_due()

        self.assertEqual(updates_before + 1, len(self.notifier.of("score_update")))
        self.assertEqual(PollMode.LIVE, nba.mode)
        self.assertEqual(20, nba.interval_seconds)
        self.assertEqual([("13", "2")], self.refresher.calls)
        self.assertEqual({"NBA": True, "NHL": False}, self.scheduler.league_live_status())

        # Provider stops listing the game.
        self.clock.now = nba.next_run_at
        self.provider.set_games("NBA", [])
        await self.run_due()

        self.assertEqual([("game_removed", "NBA-401")], self.notifier.of("game_removed"))
        self.assertEqual([], self.scheduler.get_active_games())
        self.assertEqual(PollMode.IDLE, nba.mode)
        self.assertEqual(
            {"NBA": False, "NHL": False},
            self.notifier.of("league_status_changed")[-1][1],
        )


if __name__ == "__main__":
    unittest.main()
