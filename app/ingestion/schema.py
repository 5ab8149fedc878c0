"""Internal data contracts for scoreboard and team ingestion."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, computed_field

DEFAULT_TEAM_COLOR = "#808080"

GameStatus = Literal["scheduled", "in_progress", "final", "postponed", "canceled"]

LIVE_STATUSES = frozenset({"in_progress"})
SCHEDULED_STATUSES = frozenset({"scheduled"})
COMPLETE_STATUSES = frozenset({"final", "postponed", "canceled"})


class TeamScoreDTO(BaseModel):
    """One side of a game as shown on the scoreboard."""

    name: str
    team_id: Optional[str] = None
    abbreviation: Optional[str] = None
    score: Optional[int] = None
    color: str = DEFAULT_TEAM_COLOR
    logo: Optional[str] = None


class GameIngestDTO(BaseModel):
    """
    Internal representation of a game used across fetch -> parse -> snapshot -> API.
    """

    # Required fields
    provider: Literal["espn"] = "espn"
    provider_event_id: str
    sport: str
    league: str
    start_time_utc: datetime
    status: GameStatus
    home: TeamScoreDTO
    away: TeamScoreDTO

    # Display fields, opaque to scheduling
    period: Optional[int] = None
    clock: Optional[str] = None
    status_detail: Optional[str] = None
    raw: Optional[dict[str, Any] | str] = None

    @computed_field
    @property
    def game_id(self) -> str:
        return f"{self.league}-{self.provider_event_id}"

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def is_scheduled(self) -> bool:
        return self.status in SCHEDULED_STATUSES

    @property
    def is_complete(self) -> bool:
        return self.status in COMPLETE_STATUSES


class TeamSnapshotDTO(BaseModel):
    """Team record/standing as returned by the provider's team endpoint."""

    provider: Literal["espn"] = "espn"
    league: str
    team_id: str
    display_name: str
    abbreviation: Optional[str] = None
    color: str = DEFAULT_TEAM_COLOR
    alternate_color: Optional[str] = None
    logo: Optional[str] = None
    record_summary: Optional[str] = None
    standing_summary: Optional[str] = None
