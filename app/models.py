from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from .db import Base


class Game(Base):
    __tablename__ = "games"
    __table_args__ = (
        UniqueConstraint("provider", "provider_event_id", name="uq_games_provider_event_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, nullable=False, default="")
    provider_event_id = Column(String, nullable=False, default="")
    sport = Column(String, nullable=False, default="")
    league = Column(String, nullable=False, default="")
    start_time_utc = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="scheduled")
    home_team = Column(String, nullable=False, default="")
    away_team = Column(String, nullable=False, default="")
    home_team_abbrev = Column(String, nullable=True)
    away_team_abbrev = Column(String, nullable=True)
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    raw_json = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class TeamSnapshot(Base):
    __tablename__ = "team_snapshots"
    __table_args__ = (
        UniqueConstraint("provider", "league", "team_id", name="uq_team_snapshots_team"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String, nullable=False, default="espn")
    league = Column(String, nullable=False, default="")
    team_id = Column(String, nullable=False, default="")
    display_name = Column(String, nullable=False, default="")
    abbreviation = Column(String, nullable=True)
    color = Column(String, nullable=False, default="#808080")
    alternate_color = Column(String, nullable=True)
    logo = Column(String, nullable=True)
    record_summary = Column(String, nullable=True)      # e.g. "12-4"
    standing_summary = Column(String, nullable=True)    # e.g. "2nd in Atlantic"
    refreshed_at_utc = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class AppSettings(Base):
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True)
    live_poll_seconds = Column(Integer, nullable=False, default=20)
    idle_poll_seconds = Column(Integer, nullable=False, default=6 * 60 * 60)
    update_dwell_seconds = Column(Integer, nullable=False, default=30)
    stats_refresh_enabled = Column(Boolean, nullable=False, default=True)
    updated_at_utc = Column(DateTime(timezone=True), nullable=True)
