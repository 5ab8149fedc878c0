"""Parser for ESPN scoreboard and team payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from app.ingestion.schema import (
    DEFAULT_TEAM_COLOR,
    GameIngestDTO,
    TeamScoreDTO,
    TeamSnapshotDTO,
)


def _safe_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _normalize_color(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip().lstrip("#")
    if len(cleaned) not in (3, 6):
        return None
    try:
        int(cleaned, 16)
    except ValueError:
        return None
    return f"#{cleaned.upper()}"


def _first_logo(team: dict[str, Any]) -> str | None:
    logo = team.get("logo")
    if isinstance(logo, str) and logo:
        return logo
    logos = team.get("logos")
    if isinstance(logos, list):
        for item in logos:
            if isinstance(item, dict) and isinstance(item.get("href"), str):
                return item["href"]
    return None


def _parse_start_time(event: dict[str, Any]) -> datetime | None:
    date_value = event.get("date")
    if isinstance(date_value, str):
        try:
            parsed = datetime.fromisoformat(date_value.replace("Z", "+00:00"))
        except ValueError:
            return None
        # ESPN times are UTC; some feeds omit the offset.
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _terminal_marker(text: str) -> str | None:
    if "postpon" in text:
        return "postponed"
    if "cancel" in text:
        return "canceled"
    return None


def _normalize_status(status: dict[str, Any]) -> str:
    status_type = status.get("type", {}) if isinstance(status, dict) else {}
    if not isinstance(status_type, dict):
        status_type = {}

    for key in ("name", "description"):
        value = status_type.get(key)
        if isinstance(value, str):
            marker = _terminal_marker(value.lower())
            if marker:
                return marker

    state = status_type.get("state")
    if isinstance(state, str):
        state_lower = state.lower()
        if state_lower in {"pre", "scheduled"}:
            return "scheduled"
        if state_lower in {"in", "in_progress", "in progress"}:
            return "in_progress"
        if state_lower in {"post", "final", "finals"}:
            return "final"
    if status_type.get("completed") is True:
        return "final"
    description = status_type.get("description") or ""
    if isinstance(description, str):
        description_lower = description.lower()
        if "final" in description_lower:
            return "final"
        if "in progress" in description_lower:
            return "in_progress"
    return "scheduled"


def _extract_sport(scoreboard_json: dict[str, Any], league_key: str) -> str:
    sports = scoreboard_json.get("sports")
    if isinstance(sports, list) and sports:
        first_sport = sports[0]
        if isinstance(first_sport, dict):
            name = first_sport.get("name")
            if isinstance(name, str):
                return name.lower()
    league = scoreboard_json.get("league")
    if isinstance(league, dict):
        name = league.get("name")
        if isinstance(name, str):
            return name.lower()
    return league_key.lower()


def _extract_event_ids(event: dict[str, Any]) -> Iterable[str]:
    event_id = event.get("id")
    if isinstance(event_id, str) and event_id:
        yield event_id
    competitions = event.get("competitions")
    if isinstance(competitions, list):
        for competition in competitions:
            if isinstance(competition, dict):
                competition_id = competition.get("id")
                if isinstance(competition_id, str) and competition_id:
                    yield competition_id


def _parse_competitor(competitor: dict[str, Any] | None) -> TeamScoreDTO:
    if not isinstance(competitor, dict):
        return TeamScoreDTO(name="TBD")
    team = competitor.get("team")
    if not isinstance(team, dict):
        team = {}

    name = team.get("displayName") or team.get("name") or "TBD"
    team_id = team.get("id") or competitor.get("id")
    return TeamScoreDTO(
        name=str(name),
        team_id=str(team_id) if team_id else None,
        abbreviation=team.get("abbreviation"),
        score=_safe_int(competitor.get("score")),
        color=_normalize_color(team.get("color")) or DEFAULT_TEAM_COLOR,
        logo=_first_logo(team),
    )


def parse_scoreboard(scoreboard_json: dict, league_key: str) -> list[GameIngestDTO]:
    """Parse ESPN scoreboard JSON into GameIngestDTO list."""

    events = scoreboard_json.get("events")
    if not isinstance(events, list):
        return []

    sport = _extract_sport(scoreboard_json, league_key)
    league = league_key.upper()
    seen_event_ids: set[str] = set()
    parsed_games: list[GameIngestDTO] = []

    for event in events:
        if not isinstance(event, dict):
            continue

        competitions = event.get("competitions")
        if not isinstance(competitions, list) or not competitions:
            competitions = [event]

        for competition in competitions:
            if not isinstance(competition, dict):
                continue

            provider_event_id = None
            for candidate_id in _extract_event_ids(competition):
                provider_event_id = candidate_id
                break
            if provider_event_id is None:
                for candidate_id in _extract_event_ids(event):
                    provider_event_id = candidate_id
                    break
            if provider_event_id is None:
                continue
            if provider_event_id in seen_event_ids:
                continue

            seen_event_ids.add(provider_event_id)

            competitors = competition.get("competitors")
            if not isinstance(competitors, list):
                competitors = []

            home = None
            away = None
            for competitor in competitors:
                if not isinstance(competitor, dict):
                    continue
                home_away = competitor.get("homeAway")
                if home_away == "home":
                    home = competitor
                elif home_away == "away":
                    away = competitor

            start_time_utc = _parse_start_time(event)
            if start_time_utc is None:
                continue
            status_json = competition.get("status") or event.get("status") or {}
            status = _normalize_status(status_json)
            status_type = status_json.get("type") if isinstance(status_json, dict) else None
            if not isinstance(status_type, dict):
                status_type = {}

            clock = status_json.get("displayClock") if isinstance(status_json, dict) else None
            raw_payload = {
                "event_id": event.get("id"),
                "competition_id": competition.get("id"),
                "status": status_json,
            }

            parsed_games.append(
                GameIngestDTO(
                    provider_event_id=provider_event_id,
                    sport=sport,
                    league=league,
                    start_time_utc=start_time_utc,
                    status=status,
                    home=_parse_competitor(home),
                    away=_parse_competitor(away),
                    period=_safe_int(status_json.get("period"))
                    if isinstance(status_json, dict)
                    else None,
                    clock=clock if isinstance(clock, str) else None,
                    status_detail=status_type.get("shortDetail") or status_type.get("detail"),
                    raw=raw_payload,
                )
            )

    return parsed_games


def parse_team(team_json: dict, league_key: str) -> TeamSnapshotDTO | None:
    """Parse an ESPN team document; returns None when the payload has no team id."""

    team = team_json.get("team")
    if not isinstance(team, dict):
        return None
    team_id = team.get("id")
    if not team_id:
        return None

    record_summary = None
    record = team.get("record")
    items = record.get("items") if isinstance(record, dict) else None
    if isinstance(items, list):
        for item in items:
            if not isinstance(item, dict):
                continue
            if item.get("type") in (None, "total") and isinstance(item.get("summary"), str):
                record_summary = item["summary"]
                break

    standing = team.get("standingSummary")
    return TeamSnapshotDTO(
        league=league_key.upper(),
        team_id=str(team_id),
        display_name=str(team.get("displayName") or team.get("name") or team_id),
        abbreviation=team.get("abbreviation"),
        color=_normalize_color(team.get("color")) or DEFAULT_TEAM_COLOR,
        alternate_color=_normalize_color(team.get("alternateColor")),
        logo=_first_logo(team),
        record_summary=record_summary,
        standing_summary=standing if isinstance(standing, str) else None,
    )
