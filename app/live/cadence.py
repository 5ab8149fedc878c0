"""Polling cadence policy: which mode a league is in and how often to poll it."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from app.live.snapshot_store import LeagueStatus

# (time until next game <= limit) -> recheck seconds
_SCHEDULED_TIERS: tuple[tuple[timedelta, int], ...] = (
    (timedelta(minutes=5), 30),
    (timedelta(minutes=30), 2 * 60),
    (timedelta(hours=2), 10 * 60),
    (timedelta(hours=6), 30 * 60),
)
FAR_SCHEDULED_POLL_SECONDS = 2 * 60 * 60
NO_SCHEDULED_POLL_SECONDS = 60 * 60


class PollMode(str, Enum):
    LIVE = "live"
    SCHEDULED = "scheduled"
    IDLE = "idle"


def scheduled_poll_seconds(time_until_next_game: timedelta | None) -> int:
    """Recheck interval for a league waiting on its next game.

    A start time already in the past counts as imminent.
    """
    if time_until_next_game is None:
        return NO_SCHEDULED_POLL_SECONDS
    for limit, seconds in _SCHEDULED_TIERS:
        if time_until_next_game <= limit:
            return seconds
    return FAR_SCHEDULED_POLL_SECONDS


def select_mode(
    status: LeagueStatus,
    now: datetime,
    *,
    live_poll_seconds: int,
    idle_poll_seconds: int,
) -> tuple[PollMode, int]:
    """Pick the league's polling mode and interval.

    The scheduled interval follows the earliest game starting after *now*.
    A league whose only scheduled games are past their start time (a late
    tip-off or rain delay) stays in scheduled mode at the imminent rate
    instead of dropping to idle.
    """
    if status.has_live:
        return PollMode.LIVE, live_poll_seconds
    if status.next_start_utc is not None:
        return PollMode.SCHEDULED, scheduled_poll_seconds(status.next_start_utc - now)
    if status.has_scheduled:
        return PollMode.SCHEDULED, scheduled_poll_seconds(timedelta(0))
    return PollMode.IDLE, idle_poll_seconds
