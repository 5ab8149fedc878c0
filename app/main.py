from __future__ import annotations

from datetime import date, datetime, timedelta
import asyncio
import logging
import os
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from app.db import Base, SessionLocal, engine, get_db
from app.ingestion.espn_client import fetch_scoreboard, normalize_dates
from app.ingestion.leagues import SUPPORTED_LEAGUES, parse_leagues
from app.ingestion.schema import GameIngestDTO
from app.live.notifier import ACTIVE_GAMES_EVENT, LEAGUE_STATUS_EVENT, ConnectionManager
from app.live.provider import EspnScoreProvider
from app.live.scheduler import LiveScoresScheduler
from app.log_buffer import install_buffer_handler, get_buffer_handler
from app.models import Game, TeamSnapshot
from app.schemas import (
    GameOut,
    GamesResponse,
    LeagueScheduleOut,
    SettingsOut,
    SettingsUpdate,
    TeamSnapshotOut,
)
from app.settings import (
    SettingsSnapshot,
    get_or_create_settings,
    snapshot_settings,
    update_settings,
)
from app.stats.refresh import build_stat_refreshers

app = FastAPI(title="Live Scores")
logger = logging.getLogger(__name__)
notifier = ConnectionManager()
_scheduler_task: asyncio.Task | None = None
_SHUTDOWN_TIMEOUT_SECONDS = 30


def _parse_live_leagues(raw: str) -> list[str]:
    try:
        return parse_leagues(raw)
    except ValueError as exc:
        logger.error("Live scores disabled due to league configuration: %s", exc)
        return []


def _load_settings_snapshot() -> SettingsSnapshot:
    with SessionLocal() as db:
        return snapshot_settings(get_or_create_settings(db))


async def _run_scheduler(scheduler: LiveScoresScheduler) -> None:
    try:
        await scheduler.start()
        await scheduler.run()
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Live scores scheduler crashed.")


@app.on_event("startup")
async def start_live_scores() -> None:
    global _scheduler_task
    install_buffer_handler()
    app.state.scheduler = None
    if os.getenv("LIVE_SCORES_ENABLED", "1").strip().lower() in {"0", "false", "no"}:
        logger.warning("Live scores disabled by LIVE_SCORES_ENABLED.")
        return

    Base.metadata.create_all(bind=engine)
    leagues = _parse_live_leagues(
        os.getenv("LIVE_SCORES_LEAGUES", ",".join(SUPPORTED_LEAGUES))
    )
    if not leagues:
        logger.error("Live scores has no valid leagues configured.")
        return

    settings = await asyncio.to_thread(_load_settings_snapshot)
    logger.info(
        "App starting up, live scores leagues=%s live=%ss idle=%ss dwell=%ss",
        ",".join(leagues),
        settings.live_poll_seconds,
        settings.idle_poll_seconds,
        settings.update_dwell_seconds,
    )
    scheduler = LiveScoresScheduler(
        EspnScoreProvider(),
        notifier,
        refreshers=build_stat_refreshers(leagues),
        leagues=leagues,
        settings=settings,
    )
    app.state.scheduler = scheduler
    _scheduler_task = asyncio.create_task(_run_scheduler(scheduler))


@app.on_event("shutdown")
async def stop_live_scores() -> None:
    global _scheduler_task
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.stop()
    if _scheduler_task:
        try:
            await asyncio.wait_for(_scheduler_task, timeout=_SHUTDOWN_TIMEOUT_SECONDS)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            logger.warning("Live scores scheduler did not stop in time; cancelled.")
    _scheduler_task = None
    app.state.scheduler = None


def get_scheduler(request: Request) -> LiveScoresScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Live scores are not running")
    return scheduler


@app.get("/api/live-scores", response_model=list[GameIngestDTO])
def api_live_scores(
    league: str | None = None,
    scheduler: LiveScoresScheduler = Depends(get_scheduler),
):
    games = scheduler.get_active_games()
    if league:
        normalized_league = league.strip().upper()
        games = [game for game in games if game.league == normalized_league]
    logger.debug("Returning %s active games", len(games))
    return games


@app.get("/api/live-scores/leagues", response_model=list[LeagueScheduleOut])
def api_live_score_leagues(scheduler: LiveScoresScheduler = Depends(get_scheduler)):
    return [
        LeagueScheduleOut(
            league=schedule.league,
            mode=schedule.mode.value,
            interval_seconds=schedule.interval_seconds,
            has_live=schedule.has_live,
            has_scheduled=schedule.has_scheduled,
            next_run_at=schedule.next_run_at,
            last_tick_at=schedule.last_tick_at,
            last_error=schedule.last_error,
        )
        for schedule in scheduler.league_schedules()
    ]


@app.get("/api/games", response_model=GamesResponse)
def api_games(
    league: str | None = None,
    date: str | None = None,
    db: Session = Depends(get_db),
):
    query_date = parse_query_date(date)
    start_utc, end_utc = ny_date_range_utc(query_date)

    query = db.query(Game).filter(
        Game.start_time_utc.isnot(None),
        Game.start_time_utc >= start_utc,
        Game.start_time_utc < end_utc,
    )

    normalized_league = None
    if league:
        normalized_league = league.strip().upper()
        if normalized_league:
            query = query.filter(Game.league == normalized_league)

    games = query.order_by(Game.start_time_utc.asc()).all()
    message = "No games found for requested date." if not games else None

    return GamesResponse(
        games=[GameOut.model_validate(game) for game in games],
        date=query_date.isoformat(),
        league=normalized_league,
        count=len(games),
        message=message,
    )


@app.get("/api/teams", response_model=list[TeamSnapshotOut])
def api_teams(league: str | None = None, db: Session = Depends(get_db)):
    query = db.query(TeamSnapshot)
    if league:
        query = query.filter(TeamSnapshot.league == league.strip().upper())
    teams = query.order_by(TeamSnapshot.league.asc(), TeamSnapshot.display_name.asc()).all()
    return [TeamSnapshotOut.model_validate(team) for team in teams]


@app.get("/api/settings", response_model=SettingsOut)
def api_get_settings(db: Session = Depends(get_db)):
    return SettingsOut.model_validate(get_or_create_settings(db))


@app.put("/api/settings", response_model=SettingsOut)
async def api_update_settings(
    payload: SettingsUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    try:
        settings = update_settings(db, payload.model_dump(exclude_none=True))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.apply_settings(snapshot_settings(settings))
        await scheduler.rebuild_schedule()
    return SettingsOut.model_validate(settings)


@app.get("/api/espn/scoreboard")
def api_espn_scoreboard(
    league: str = "NBA",
    date: str | None = None,
):
    normalized_league = league.strip().upper() if league else "NBA"
    payload = fetch_scoreboard(normalized_league, date)
    if payload.get("error"):
        return payload

    events = payload.get("events") or []
    safe_dates = None
    try:
        safe_dates = normalize_dates(date)
    except ValueError:
        safe_dates = None
    return {
        "ok": True,
        "league": normalized_league,
        "dates": safe_dates,
        "count": len(events),
        "events": events,
    }


@app.get("/api/logs")
def api_logs(limit: int = 100, level: str | None = None):
    handler = get_buffer_handler()
    return {"entries": handler.entries(limit=limit, min_level=level)}


@app.websocket("/ws/live")
async def ws_live(websocket: WebSocket):
    connection_id = await notifier.connect(websocket)
    if connection_id is None:
        await websocket.close(code=1013)
        return

    scheduler = getattr(websocket.app.state, "scheduler", None)
    try:
        games = scheduler.get_active_games() if scheduler else []
        await notifier.send(
            connection_id,
            ACTIVE_GAMES_EVENT,
            [game.model_dump(mode="json") for game in games],
        )
        await notifier.send(
            connection_id,
            LEAGUE_STATUS_EVENT,
            scheduler.league_live_status() if scheduler else {},
        )
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await notifier.send(connection_id, "pong", {})
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.disconnect(connection_id)


def parse_query_date(value: str | None) -> date:
    if not value:
        return datetime.now(ZoneInfo("America/New_York")).date()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD") from exc


def ny_date_range_utc(day: date) -> tuple[datetime, datetime]:
    ny_tz = ZoneInfo("America/New_York")
    start_local = datetime.combine(day, datetime.min.time(), tzinfo=ny_tz)
    end_local = start_local + timedelta(days=1)
    return start_local.astimezone(ZoneInfo("UTC")), end_local.astimezone(ZoneInfo("UTC"))
