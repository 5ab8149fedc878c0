from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class GameOut(BaseModel):
    id: int
    provider: str
    provider_event_id: str
    sport: str
    league: str
    start_time_utc: Optional[datetime]
    status: str
    home_team: str
    away_team: str
    home_team_abbrev: Optional[str]
    away_team_abbrev: Optional[str]
    home_score: Optional[int]
    away_score: Optional[int]

    class Config:
        from_attributes = True


class GamesResponse(BaseModel):
    games: list[GameOut]
    date: str
    league: Optional[str] = None
    count: int
    message: Optional[str] = None


class TeamSnapshotOut(BaseModel):
    league: str
    team_id: str
    display_name: str
    abbreviation: Optional[str]
    color: str
    alternate_color: Optional[str]
    logo: Optional[str]
    record_summary: Optional[str]
    standing_summary: Optional[str]
    refreshed_at_utc: Optional[datetime]

    class Config:
        from_attributes = True


class LeagueScheduleOut(BaseModel):
    league: str
    mode: str
    interval_seconds: int
    has_live: bool
    has_scheduled: bool
    next_run_at: Optional[datetime]
    last_tick_at: Optional[datetime]
    last_error: Optional[str]


class SettingsOut(BaseModel):
    live_poll_seconds: int
    idle_poll_seconds: int
    update_dwell_seconds: int
    stats_refresh_enabled: bool
    updated_at_utc: Optional[datetime]

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    live_poll_seconds: Optional[int] = Field(default=None, ge=5)
    idle_poll_seconds: Optional[int] = Field(default=None, ge=5)
    update_dwell_seconds: Optional[int] = Field(default=None, ge=0)
    stats_refresh_enabled: Optional[bool] = None
