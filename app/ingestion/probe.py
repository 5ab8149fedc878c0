"""Quick probe for ESPN scoreboard availability and game status breakdown."""

from __future__ import annotations

import argparse
import logging
from collections import Counter

from app.ingestion.leagues import LEAGUE_PATHS
from app.live.provider import EspnScoreProvider, ScoreProviderError


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Probe ESPN scoreboard for a league and print a status breakdown.",
    )
    parser.add_argument(
        "--league",
        type=str,
        default="NBA",
        help="League key (e.g., NBA, WNBA, NFL, MLB, NHL).",
    )
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Date in YYYY-MM-DD or YYYYMMDD format (default: provider's current day).",
    )
    return parser.parse_args()


def _normalize_league(raw: str) -> str:
    value = raw.strip().upper()
    if value not in LEAGUE_PATHS:
        supported = ", ".join(sorted(LEAGUE_PATHS))
        raise SystemExit(
            f"Unsupported league: {value}. Supported leagues: {supported}"
        )
    return value


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = _parse_args()
    league = _normalize_league(args.league)

    try:
        games = EspnScoreProvider().fetch_games(league, args.date)
    except ScoreProviderError as exc:
        logging.error("ESPN error: %s", exc)
        raise SystemExit(1) from exc

    statuses = Counter(game.status for game in games)
    logging.info(
        "Fetched %s games for league=%s date=%s statuses=%s",
        len(games),
        league,
        args.date or "current",
        dict(statuses),
    )
    for game in games:
        logging.info(
            "  %s %s %s @ %s %s (%s)",
            game.game_id,
            game.away.abbreviation or game.away.name,
            game.away.score if game.away.score is not None else "-",
            game.home.abbreviation or game.home.name,
            game.home.score if game.home.score is not None else "-",
            game.status_detail or game.status,
        )


if __name__ == "__main__":
    main()
