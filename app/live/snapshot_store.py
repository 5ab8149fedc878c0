"""In-memory snapshot of the games currently being tracked."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.ingestion.schema import GameIngestDTO


@dataclass(frozen=True)
class LeagueStatus:
    has_live: bool = False
    has_scheduled: bool = False
    next_start_utc: datetime | None = None
    has_overdue: bool = False


class GameSnapshotStore:
    """Active games keyed by game_id, plus completed ids and last-update times.

    A game_id lives in at most one of the active map and the completed set.
    """

    def __init__(self) -> None:
        self._active: dict[str, GameIngestDTO] = {}
        self._completed: set[str] = set()
        self._last_update: dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, game_id: str) -> bool:
        return game_id in self._active

    def get(self, game_id: str) -> GameIngestDTO | None:
        return self._active.get(game_id)

    def last_updated_at(self, game_id: str) -> datetime | None:
        return self._last_update.get(game_id)

    def is_completed(self, game_id: str) -> bool:
        return game_id in self._completed

    def apply(self, game: GameIngestDTO, now: datetime) -> None:
        if game.game_id in self._completed:
            raise ValueError(f"Game {game.game_id} is already completed")
        self._active[game.game_id] = game
        self._last_update[game.game_id] = now

    def complete(self, game_id: str) -> GameIngestDTO | None:
        game = self._active.pop(game_id, None)
        self._last_update.pop(game_id, None)
        self._completed.add(game_id)
        return game

    def remove(self, game_id: str) -> GameIngestDTO | None:
        self._last_update.pop(game_id, None)
        return self._active.pop(game_id, None)

    def league_game_ids(self, league: str) -> list[str]:
        return [game_id for game_id, game in self._active.items() if game.league == league]

    def games(self, league: str | None = None) -> list[GameIngestDTO]:
        if league is None:
            return list(self._active.values())
        return [game for game in self._active.values() if game.league == league]

    def league_status(self, league: str, now: datetime | None = None) -> LeagueStatus:
        """Summarize a league's active games.

        With *now*, ``next_start_utc`` only considers scheduled games that
        start after it; ``has_overdue`` flags scheduled games already past
        their start time.
        """
        has_live = False
        has_scheduled = False
        has_overdue = False
        next_start: datetime | None = None
        for game in self._active.values():
            if game.league != league:
                continue
            if game.is_live:
                has_live = True
            elif game.is_scheduled:
                has_scheduled = True
                if now is not None and game.start_time_utc <= now:
                    has_overdue = True
                    continue
                # strict < keeps the first game in provider order on ties
                if next_start is None or game.start_time_utc < next_start:
                    next_start = game.start_time_utc
        return LeagueStatus(
            has_live=has_live,
            has_scheduled=has_scheduled,
            next_start_utc=next_start,
            has_overdue=has_overdue,
        )
