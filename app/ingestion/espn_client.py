"""ESPN HTTP client for fetching scoreboards and team records."""

from __future__ import annotations

import logging
import os
import re
import time
from datetime import date
from typing import Optional
from urllib.parse import urlencode

import requests

from app.ingestion.leagues import split_league_path

logger = logging.getLogger(__name__)
ESPN_BASE_URL = os.getenv("ESPN_BASE_URL", "https://site.api.espn.com").rstrip("/")
SPORTS_BASE_PATH = "/apis/site/v2/sports"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5
DEFAULT_READ_TIMEOUT_SECONDS = 12
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 0.5
DEFAULT_USER_AGENT = "live-scores/1.0 (+https://example.local)"


def normalize_dates(value: str | date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.strftime("%Y%m%d")
    cleaned = value.strip()
    if not cleaned:
        return None
    if cleaned.lower() == "today":
        return date.today().strftime("%Y%m%d")
    if re.fullmatch(r"\d{8}", cleaned):
        return cleaned
    if re.fullmatch(r"\d{8}-\d{8}", cleaned):
        return cleaned
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", cleaned):
        return cleaned.replace("-", "")
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}-\d{4}-\d{2}-\d{2}", cleaned):
        parts = cleaned.split("-")
        start = "".join(parts[:3])
        end = "".join(parts[3:])
        return f"{start}-{end}"
    raise ValueError("dates must be YYYYMMDD or YYYYMMDD-YYYYMMDD")


def build_scoreboard_url(
    sport: str,
    league: str,
    dates: str | date | None = None,
    extra_params: dict[str, str] | None = None,
) -> str:
    normalized_dates = normalize_dates(dates)
    base_url = f"{ESPN_BASE_URL}{SPORTS_BASE_PATH}/{sport}/{league}/scoreboard"
    params: dict[str, str] = {}
    if normalized_dates:
        params["dates"] = normalized_dates
    if extra_params:
        params.update({key: value for key, value in extra_params.items() if value})
    if params:
        return f"{base_url}?{urlencode(params)}"
    return base_url


def build_team_url(sport: str, league: str, team_id: str) -> str:
    return f"{ESPN_BASE_URL}{SPORTS_BASE_PATH}/{sport}/{league}/teams/{team_id}"


def _get_json(url: str, context: dict) -> dict:
    """GET a JSON document with retries.

    Returns parsed JSON on success. On failure, returns a controlled error dict
    carrying *context* so callers can log which request failed.
    """

    headers = {
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "application/json",
    }

    last_error: str | None = None
    last_status: int | None = None
    last_body_snippet: str | None = None
    for attempt in range(DEFAULT_RETRIES):
        try:
            response = requests.get(
                url,
                headers=headers,
                timeout=(DEFAULT_CONNECT_TIMEOUT_SECONDS, DEFAULT_READ_TIMEOUT_SECONDS),
            )
        except requests.RequestException as exc:
            last_error = str(exc)
            logger.warning(
                "ESPN request failed attempt=%s/%s url=%s error=%s",
                attempt + 1,
                DEFAULT_RETRIES,
                url,
                last_error,
            )
            if attempt < DEFAULT_RETRIES - 1:
                time.sleep(DEFAULT_BACKOFF_SECONDS * (2**attempt))
            continue

        if response.status_code >= 500:
            last_status = response.status_code
            last_body_snippet = response.text[:300]
            last_error = f"ESPN server error {response.status_code}"
            logger.error(
                "ESPN server error status=%s body=%s",
                last_status,
                last_body_snippet,
            )
            if attempt < DEFAULT_RETRIES - 1:
                time.sleep(DEFAULT_BACKOFF_SECONDS * (2**attempt))
            continue

        if response.status_code != 200:
            body_snippet = response.text[:300]
            logger.error(
                "ESPN non-200 status=%s body=%s",
                response.status_code,
                body_snippet,
            )
            return {
                "ok": False,
                "error": "ESPN returned non-200 response",
                "status": response.status_code,
                "body": body_snippet,
                "url": url,
                **context,
            }

        try:
            payload = response.json()
        except ValueError as exc:
            last_error = f"invalid JSON: {exc}"
            if attempt < DEFAULT_RETRIES - 1:
                time.sleep(DEFAULT_BACKOFF_SECONDS * (2**attempt))
            continue
        if not isinstance(payload, dict):
            return {
                "ok": False,
                "error": "ESPN returned a non-object payload",
                "url": url,
                **context,
            }
        return payload

    return {
        "ok": False,
        "error": "Failed to fetch from ESPN",
        "details": last_error,
        "status": last_status,
        "body": last_body_snippet,
        "url": url,
        **context,
    }


def fetch_scoreboard(league_key: str, game_date: Optional[date | str] = None) -> dict:
    """Fetch ESPN scoreboard data for a league and optional date.

    Without a date ESPN serves its current scoreboard, which keeps games that
    run past midnight listed until they finish.
    """

    try:
        sport, league = split_league_path(league_key)
        url = build_scoreboard_url(sport, league, game_date)
    except ValueError as exc:
        safe_date = None
        try:
            safe_date = normalize_dates(game_date)
        except ValueError:
            safe_date = None
        return {
            "ok": False,
            "error": str(exc),
            "league": league_key,
            "date": safe_date,
        }

    return _get_json(
        url,
        {"league": league_key, "date": normalize_dates(game_date)},
    )


def fetch_team(league_key: str, team_id: str) -> dict:
    """Fetch a single team document (record, colors, logos)."""

    try:
        sport, league = split_league_path(league_key)
    except ValueError as exc:
        return {"ok": False, "error": str(exc), "league": league_key, "team_id": team_id}

    url = build_team_url(sport, league, team_id)
    return _get_json(url, {"league": league_key, "team_id": team_id})
