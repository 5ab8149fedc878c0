"""CLI entrypoint for archiving scoreboards into the games table.

Examples::

    live-scores-ingest                         # today, every league
    live-scores-ingest --date 2026-10-19 --leagues NBA,NHL
    live-scores-ingest --date 20261019 --days 7  # the week ending on that day
"""

from __future__ import annotations

import argparse
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Sequence

from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.ingestion.espn_client import normalize_dates
from app.ingestion.leagues import SUPPORTED_LEAGUES, parse_leagues
from app.ingestion.sync import SyncResult, sync_games_for_date
from app.live.provider import EspnScoreProvider, ScoreProvider

logger = logging.getLogger(__name__)

MAX_BACKFILL_DAYS = 31


def _day(value: str) -> date:
    try:
        normalized = normalize_dates(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if normalized is None or "-" in normalized:
        raise argparse.ArgumentTypeError("expected a single day, e.g. 2026-10-19 or 20261019")
    return datetime.strptime(normalized, "%Y%m%d").date()


def _league_list(value: str) -> list[str]:
    try:
        leagues = parse_leagues(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if not leagues:
        raise argparse.ArgumentTypeError("no leagues given, e.g. NBA,NHL")
    return leagues


def _day_count(value: str) -> int:
    days = int(value)
    if not 1 <= days <= MAX_BACKFILL_DAYS:
        raise argparse.ArgumentTypeError(f"--days must be between 1 and {MAX_BACKFILL_DAYS}")
    return days


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Archive ESPN scoreboards into the games table.",
    )
    parser.add_argument(
        "--date",
        type=_day,
        default="today",
        help="Last day to archive: YYYY-MM-DD, YYYYMMDD or 'today' (default).",
    )
    parser.add_argument(
        "--days",
        type=_day_count,
        default=1,
        help="Number of consecutive days ending on --date (default: 1).",
    )
    parser.add_argument(
        "--leagues",
        type=_league_list,
        default=list(SUPPORTED_LEAGUES),
        help="Comma-separated list of leagues (default: all supported).",
    )
    return parser


def _days_ending(last_day: date, days: int) -> Iterator[date]:
    for offset in range(days - 1, -1, -1):
        yield last_day - timedelta(days=offset)


def main(
    argv: Sequence[str] | None = None,
    *,
    provider: ScoreProvider | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> int:
    """Archive every (day, league) pair; returns 1 when any league failed."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    args = _build_parser().parse_args(argv)
    provider = provider or EspnScoreProvider()

    totals = SyncResult()
    for day in _days_ending(args.date, args.days):
        for league in args.leagues:
            result = sync_games_for_date(
                day,
                [league],
                provider=provider,
                session_factory=session_factory,
            )
            logger.info(
                "Archived league=%s date=%s fetched=%s inserted=%s updated=%s skipped=%s errors=%s",
                league,
                day.isoformat(),
                result.total_fetched,
                result.inserted,
                result.updated,
                result.skipped,
                result.errors,
            )
            totals.add(result)

    logger.info(
        "Done days=%s leagues=%s: fetched=%s inserted=%s updated=%s skipped=%s errors=%s",
        args.days,
        ",".join(args.leagues),
        totals.total_fetched,
        totals.inserted,
        totals.updated,
        totals.skipped,
        totals.errors,
    )
    return 1 if totals.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
