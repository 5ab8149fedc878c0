"""Archive normalized scoreboard snapshots into the local database."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from app.db import Base, SessionLocal, engine
from app.ingestion.schema import GameIngestDTO
from app.live.provider import EspnScoreProvider, ScoreProvider, ScoreProviderError
from app.models import Game

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    total_fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def add(self, other: SyncResult) -> None:
        for item in fields(self):
            setattr(self, item.name, getattr(self, item.name) + getattr(other, item.name))


def _serialize_raw(raw: dict | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, ensure_ascii=False, separators=(",", ":"), default=str)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on read.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _update_game_from_dto(game: Game, dto: GameIngestDTO) -> bool:
    changed = False

    if _as_utc(game.start_time_utc) != dto.start_time_utc:
        game.start_time_utc = dto.start_time_utc
        changed = True

    for column, value in (
        ("status", dto.status),
        ("home_score", dto.home.score),
        ("away_score", dto.away.score),
        ("home_team_abbrev", dto.home.abbreviation),
        ("away_team_abbrev", dto.away.abbreviation),
    ):
        if getattr(game, column) != value:
            setattr(game, column, value)
            changed = True

    if changed:
        game.raw_json = _serialize_raw(dto.raw)

    return changed


def _insert_game(db: Session, dto: GameIngestDTO) -> None:
    game = Game(
        provider=dto.provider,
        provider_event_id=dto.provider_event_id,
        sport=dto.sport,
        league=dto.league,
        start_time_utc=dto.start_time_utc,
        status=dto.status,
        home_team=dto.home.name,
        away_team=dto.away.name,
        home_team_abbrev=dto.home.abbreviation,
        away_team_abbrev=dto.away.abbreviation,
        home_score=dto.home.score,
        away_score=dto.away.score,
        raw_json=_serialize_raw(dto.raw),
    )
    db.add(game)


def upsert_games(db: Session, games: Iterable[GameIngestDTO], result: SyncResult) -> None:
    for game_dto in games:
        try:
            existing = (
                db.query(Game)
                .filter(
                    Game.provider == game_dto.provider,
                    Game.provider_event_id == game_dto.provider_event_id,
                )
                .one_or_none()
            )

            if existing:
                if _update_game_from_dto(existing, game_dto):
                    result.updated += 1
                    logger.info(
                        "Updated game provider_event_id=%s",
                        game_dto.provider_event_id,
                    )
                else:
                    result.skipped += 1
                    logger.debug(
                        "Skipped unchanged game provider_event_id=%s",
                        game_dto.provider_event_id,
                    )
            else:
                _insert_game(db, game_dto)
                db.flush()
                result.inserted += 1
                logger.info(
                    "Inserted game provider_event_id=%s",
                    game_dto.provider_event_id,
                )
        except Exception:
            db.rollback()
            result.errors += 1
            logger.exception(
                "Failed upserting game provider_event_id=%s",
                game_dto.provider_event_id,
            )


def sync_games_for_date(
    game_date: date,
    leagues: list[str],
    provider: ScoreProvider | None = None,
    session_factory=SessionLocal,
) -> SyncResult:
    """Fetch, parse, and upsert games for the requested date + leagues."""

    if session_factory is SessionLocal:
        Base.metadata.create_all(bind=engine)
    provider = provider or EspnScoreProvider()
    result = SyncResult()

    with session_factory() as db:
        for league_key in leagues:
            logger.info("Fetching scoreboard for league=%s date=%s", league_key, game_date)
            try:
                parsed_games = provider.fetch_games(league_key, game_date)
            except ScoreProviderError as exc:
                result.errors += 1
                logger.error(
                    "Fetch error league=%s date=%s error=%s",
                    league_key,
                    game_date,
                    exc,
                )
                continue

            result.total_fetched += len(parsed_games)
            logger.info(
                "Parsed %s games for league=%s date=%s",
                len(parsed_games),
                league_key,
                game_date,
            )

            upsert_games(db, parsed_games, result)

        db.commit()

    return result
