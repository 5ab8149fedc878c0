"""Per-league adaptive polling of live scores.

Each league is in one of three polling modes (live, scheduled, idle) derived
from the games tracked for it. A single driver loop keeps a min-heap of
next-run times; each tick fetches the league's scoreboard, diffs it against
the snapshot store and pushes change events. Any status change rebuilds the
schedule of every league.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, Mapping

from app.ingestion.leagues import SUPPORTED_LEAGUES
from app.ingestion.schema import GameIngestDTO
from app.live.cadence import PollMode, select_mode
from app.live.notifier import ChangeNotifier
from app.live.provider import ScoreProvider, ScoreProviderError
from app.live.snapshot_store import GameSnapshotStore
from app.settings import SettingsSnapshot, default_snapshot
from app.stats.refresh import StatRefresher

logger = logging.getLogger(__name__)

# Non-terminal statuses only move forward.
_STATUS_RANK = {"scheduled": 0, "in_progress": 1}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LeagueSchedule:
    league: str
    mode: PollMode = PollMode.IDLE
    interval_seconds: int = 0
    next_run_at: datetime | None = None
    generation: int = 0
    has_live: bool = False
    has_scheduled: bool = False
    last_tick_at: datetime | None = None
    last_error: str | None = None


@dataclass
class _TickOutcome:
    updated: list[GameIngestDTO] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    status_changed: bool = False


class LiveScoresScheduler:
    def __init__(
        self,
        provider: ScoreProvider,
        notifier: ChangeNotifier,
        *,
        refreshers: Mapping[str, StatRefresher] | None = None,
        leagues: Iterable[str] = SUPPORTED_LEAGUES,
        settings: SettingsSnapshot | None = None,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._notifier = notifier
        self._refreshers = dict(refreshers or {})
        self._settings = settings or default_snapshot()
        self._now = now_fn
        self._store = GameSnapshotStore()
        self._schedules: dict[str, LeagueSchedule] = {
            league: LeagueSchedule(
                league=league,
                interval_seconds=self._settings.idle_poll_seconds,
            )
            for league in leagues
        }
        # (next_run_at, sequence, league, generation)
        self._heap: list[tuple[datetime, int, str, int]] = []
        self._sequence = itertools.count()
        self._in_flight: dict[str, asyncio.Task] = {}
        self._wake = asyncio.Event()
        self._stopping = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def store(self) -> GameSnapshotStore:
        return self._store

    @property
    def settings(self) -> SettingsSnapshot:
        return self._settings

    @property
    def leagues(self) -> list[str]:
        return list(self._schedules)

    def get_active_games(self) -> list[GameIngestDTO]:
        return self._store.games()

    def league_schedule(self, league: str) -> LeagueSchedule:
        return self._schedules[league]

    def league_schedules(self) -> list[LeagueSchedule]:
        return list(self._schedules.values())

    def league_live_status(self) -> dict[str, bool]:
        return {league: schedule.has_live for league, schedule in self._schedules.items()}

    def apply_settings(self, settings: SettingsSnapshot) -> None:
        """Swap polling settings; call rebuild_schedule() to retime leagues."""
        self._settings = settings

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def check_and_update_league_games(
        self,
        league: str,
        include_stats_refresh: bool = False,
        *,
        generation: int | None = None,
    ) -> bool:
        """Poll one league, update the snapshot and emit events.

        Returns True when any game's status changed (appeared, progressed,
        completed or disappeared).
        """
        league = league.strip().upper()
        schedule = self._schedules.get(league)
        if schedule is None:
            logger.error(
                "Refusing to poll unsupported league=%s. Configured: %s",
                league,
                ", ".join(self._schedules),
            )
            return False

        try:
            games = await asyncio.to_thread(self._provider.fetch_games, league)
        except ScoreProviderError as exc:
            schedule.last_error = str(exc)
            logger.error("Live scores fetch failed league=%s error=%s", league, exc)
            return False

        if generation is not None and generation != schedule.generation:
            logger.info(
                "Discarding superseded tick league=%s generation=%s current=%s; rerunning now",
                league,
                generation,
                schedule.generation,
            )
            self._requeue_now(schedule)
            return False

        now = self._now()
        outcome = self._apply_games(league, games, now)
        schedule.last_tick_at = now
        schedule.last_error = None
        logger.debug(
            "Tick league=%s fetched=%s updated=%s completed=%s removed=%s status_changed=%s",
            league,
            len(games),
            len(outcome.updated),
            len(outcome.completed),
            len(outcome.removed),
            outcome.status_changed,
        )

        for game in outcome.updated:
            await self._notify(self._notifier.score_update, league, game)
        for game_id in outcome.removed:
            await self._notify(self._notifier.game_removed, game_id)
        if outcome.completed:
            await self._notify(self._notifier.updates_changed)

        if include_stats_refresh:
            for game in outcome.updated:
                if game.is_live:
                    await self._refresh_stats(league, game)

        return outcome.status_changed

    def _apply_games(
        self, league: str, games: list[GameIngestDTO], now: datetime
    ) -> _TickOutcome:
        outcome = _TickOutcome()
        seen: set[str] = set()
        dwell = timedelta(seconds=self._settings.update_dwell_seconds)

        for game in games:
            game_id = game.game_id
            seen.add(game_id)
            if self._store.is_completed(game_id):
                continue

            existing = self._store.get(game_id)
            if game.is_complete:
                if existing is not None:
                    self._store.complete(game_id)
                    outcome.completed.append(game_id)
                    outcome.status_changed = True
                    logger.info("Game completed game_id=%s status=%s", game_id, game.status)
                continue

            if existing is not None:
                if _STATUS_RANK.get(game.status, 0) < _STATUS_RANK.get(existing.status, 0):
                    logger.warning(
                        "Ignoring status regression game_id=%s %s -> %s",
                        game_id,
                        existing.status,
                        game.status,
                    )
                    continue
                if existing.model_dump() == game.model_dump():
                    continue
                last_update = self._store.last_updated_at(game_id)
                if last_update is not None and now - last_update < dwell:
                    logger.debug(
                        "Throttled update game_id=%s (%.0fs since last update)",
                        game_id,
                        (now - last_update).total_seconds(),
                    )
                    continue

            self._store.apply(game, now)
            outcome.updated.append(game)
            if existing is None or existing.status != game.status:
                outcome.status_changed = True
                logger.info(
                    "Game status game_id=%s %s -> %s",
                    game_id,
                    existing.status if existing else "new",
                    game.status,
                )

        for game_id in self._store.league_game_ids(league):
            if game_id not in seen:
                self._store.remove(game_id)
                outcome.removed.append(game_id)
                outcome.status_changed = True
                logger.info("Game no longer listed, removed game_id=%s", game_id)

        return outcome

    async def _refresh_stats(self, league: str, game: GameIngestDTO) -> None:
        refresher = self._refreshers.get(league)
        if refresher is None:
            logger.debug("No stat refresher for league=%s", league)
            return
        try:
            await asyncio.to_thread(refresher.refresh, game.home.team_id, game.away.team_id)
        except Exception:
            logger.exception(
                "Stat refresh failed league=%s game_id=%s", league, game.game_id
            )

    async def _notify(self, send: Callable[..., Awaitable[Any]], *args: Any) -> None:
        try:
            await send(*args)
        except Exception:
            logger.exception("Notifier %s failed", getattr(send, "__name__", send))

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _retime(self, schedule: LeagueSchedule, now: datetime) -> None:
        status = self._store.league_status(schedule.league, now)
        mode, interval = select_mode(
            status,
            now,
            live_poll_seconds=self._settings.live_poll_seconds,
            idle_poll_seconds=self._settings.idle_poll_seconds,
        )
        if mode != schedule.mode:
            logger.info(
                "League %s mode %s -> %s (every %ss)",
                schedule.league,
                schedule.mode.value,
                mode.value,
                interval,
            )
        schedule.mode = mode
        schedule.interval_seconds = interval
        schedule.has_live = status.has_live
        schedule.has_scheduled = status.has_scheduled
        schedule.next_run_at = now + timedelta(seconds=interval)

    def _push(self, schedule: LeagueSchedule) -> None:
        heapq.heappush(
            self._heap,
            (schedule.next_run_at, next(self._sequence), schedule.league, schedule.generation),
        )

    def _requeue_now(self, schedule: LeagueSchedule) -> None:
        # Supersedes whatever run the last rebuild queued for this league.
        schedule.generation += 1
        schedule.next_run_at = self._now()
        self._push(schedule)
        self._wake.set()

    async def rebuild_schedule(self) -> None:
        """Recompute every league's mode and restart all pending runs.

        Every league restarts its interval from now, so a league that was
        close to its next run is pushed back by a rebuild triggered elsewhere.
        """
        now = self._now()
        self._heap.clear()
        for schedule in self._schedules.values():
            previous_run_at = schedule.next_run_at
            self._retime(schedule, now)
            if previous_run_at is not None and schedule.next_run_at > previous_run_at:
                logger.info(
                    "Rebuild postponed league=%s next run %s -> %s",
                    schedule.league,
                    previous_run_at.isoformat(),
                    schedule.next_run_at.isoformat(),
                )
            schedule.generation += 1
            self._push(schedule)
        self._wake.set()
        await self._notify(self._notifier.league_status_changed, self.league_live_status())

    async def start(self) -> None:
        """Poll every league once, then establish the initial schedule."""
        logger.info("Initial live scores poll leagues=%s", ",".join(self._schedules))
        for league in self._schedules:
            try:
                await self.check_and_update_league_games(league, include_stats_refresh=False)
            except Exception:
                logger.exception("Initial poll failed league=%s", league)
        await self.rebuild_schedule()

    async def _run_tick(self, league: str, generation: int) -> None:
        schedule = self._schedules[league]
        try:
            changed = await self.check_and_update_league_games(
                league,
                self._settings.stats_refresh_enabled,
                generation=generation,
            )
        except Exception:
            logger.exception("Live scores tick failed league=%s", league)
            changed = False

        if changed:
            await self.rebuild_schedule()
            return
        if schedule.generation != generation:
            return
        self._retime(schedule, self._now())
        self._push(schedule)
        self._wake.set()

    def _tick_done(self, league: str, task: asyncio.Task) -> None:
        if self._in_flight.get(league) is task:
            del self._in_flight[league]

    def launch_due_ticks(self) -> list[asyncio.Task]:
        """Start a tick task for every league whose next run is due."""
        now = self._now()
        launched: list[asyncio.Task] = []
        while self._heap and self._heap[0][0] <= now:
            _, _, league, generation = heapq.heappop(self._heap)
            schedule = self._schedules[league]
            if generation != schedule.generation:
                continue
            running = self._in_flight.get(league)
            # A finished task may still be listed until its done callback runs.
            if running is not None and not running.done():
                logger.warning("Previous tick still running league=%s; deferring", league)
                self._retime(schedule, now)
                self._push(schedule)
                continue
            task = asyncio.create_task(self._run_tick(league, generation))
            self._in_flight[league] = task
            task.add_done_callback(partial(self._tick_done, league))
            launched.append(task)
        return launched

    def _seconds_until_next_run(self) -> float | None:
        if not self._heap:
            return None
        return max(0.0, (self._heap[0][0] - self._now()).total_seconds())

    async def run(self) -> None:
        """Drive due ticks until stop() is called."""
        logger.info("Live scores scheduler running leagues=%s", ",".join(self._schedules))
        while not self._stopping:
            self._wake.clear()
            self.launch_due_ticks()
            try:
                await asyncio.wait_for(
                    self._wake.wait(),
                    timeout=self._seconds_until_next_run(),
                )
            except asyncio.TimeoutError:
                continue
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)
        logger.info("Live scores scheduler stopped.")

    def stop(self) -> None:
        self._stopping = True
        self._wake.set()
