"""Score provider boundary used by the live scores scheduler."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Protocol

from app.ingestion.espn_client import fetch_scoreboard
from app.ingestion.espn_parser import parse_scoreboard
from app.ingestion.schema import GameIngestDTO

logger = logging.getLogger(__name__)


class ScoreProviderError(RuntimeError):
    pass


class ScoreProvider(Protocol):
    def fetch_games(
        self, league: str, game_date: Optional[date | str] = None
    ) -> list[GameIngestDTO]:
        ...


class EspnScoreProvider:
    """Fetch + parse ESPN scoreboards, raising instead of returning error dicts."""

    def fetch_games(
        self, league: str, game_date: Optional[date | str] = None
    ) -> list[GameIngestDTO]:
        payload = fetch_scoreboard(league, game_date)
        if payload.get("error"):
            raise ScoreProviderError(
                f"{payload.get('error')} "
                f"(status={payload.get('status')} details={payload.get('details')})"
            )
        if not isinstance(payload.get("events"), list):
            raise ScoreProviderError(f"Malformed scoreboard for league={league}: missing events")

        games = parse_scoreboard(payload, league)
        logger.debug("Parsed %s games for league=%s", len(games), league)
        return games
