"""Per-league stat refresh triggered while games are live."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Protocol

from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.ingestion.espn_client import fetch_team
from app.ingestion.espn_parser import parse_team
from app.ingestion.schema import TeamSnapshotDTO
from app.models import TeamSnapshot

logger = logging.getLogger(__name__)


class StatRefreshError(RuntimeError):
    pass


class StatRefresher(Protocol):
    def refresh(self, home_team_id: str | None, away_team_id: str | None) -> None:
        ...


def _upsert_team(db: Session, dto: TeamSnapshotDTO, now: datetime) -> bool:
    """Insert or update a team snapshot row. Returns True when a row was inserted."""
    row = (
        db.query(TeamSnapshot)
        .filter(
            TeamSnapshot.provider == dto.provider,
            TeamSnapshot.league == dto.league,
            TeamSnapshot.team_id == dto.team_id,
        )
        .one_or_none()
    )
    inserted = row is None
    if row is None:
        row = TeamSnapshot(provider=dto.provider, league=dto.league, team_id=dto.team_id)
        db.add(row)

    row.display_name = dto.display_name
    row.abbreviation = dto.abbreviation
    row.color = dto.color
    row.alternate_color = dto.alternate_color
    row.logo = dto.logo
    row.record_summary = dto.record_summary
    row.standing_summary = dto.standing_summary
    row.refreshed_at_utc = now
    return inserted


class EspnTeamRefresher:
    """Refreshes both teams of a live game from ESPN's team endpoint."""

    def __init__(
        self,
        league: str,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        fetch: Callable[[str, str], dict] = fetch_team,
    ) -> None:
        self.league = league
        self._session_factory = session_factory
        self._fetch = fetch

    def refresh(self, home_team_id: str | None, away_team_id: str | None) -> None:
        team_ids = [team_id for team_id in (home_team_id, away_team_id) if team_id]
        if not team_ids:
            logger.debug("Stat refresh skipped league=%s: no team ids", self.league)
            return

        snapshots: list[TeamSnapshotDTO] = []
        for team_id in team_ids:
            payload = self._fetch(self.league, team_id)
            if payload.get("error"):
                raise StatRefreshError(
                    f"Team fetch failed league={self.league} team_id={team_id}: "
                    f"{payload.get('error')}"
                )
            dto = parse_team(payload, self.league)
            if dto is None:
                raise StatRefreshError(
                    f"Malformed team payload league={self.league} team_id={team_id}"
                )
            snapshots.append(dto)

        now = datetime.now(timezone.utc)
        with self._session_factory() as db:
            for dto in snapshots:
                inserted = _upsert_team(db, dto, now)
                logger.info(
                    "%s team snapshot league=%s team_id=%s record=%s",
                    "Inserted" if inserted else "Updated",
                    dto.league,
                    dto.team_id,
                    dto.record_summary,
                )
            db.commit()


def build_stat_refreshers(leagues: Iterable[str]) -> dict[str, StatRefresher]:
    return {league: EspnTeamRefresher(league) for league in leagues}
