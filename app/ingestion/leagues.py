"""Supported leagues mapping for ESPN endpoints."""

LEAGUE_PATHS: dict[str, str] = {
    "NBA": "sports/basketball/nba",
    "WNBA": "sports/basketball/wnba",
    "NFL": "sports/football/nfl",
    "MLB": "sports/baseball/mlb",
    "NHL": "sports/hockey/nhl",
}

SUPPORTED_LEAGUES: tuple[str, ...] = tuple(LEAGUE_PATHS)


def get_league_path(league_key: str) -> str | None:
    """Return ESPN path segment for a league key (e.g., NBA).

    Returns None when the league is not supported.
    """

    return LEAGUE_PATHS.get(league_key.upper())


def split_league_path(league_key: str) -> tuple[str, str]:
    league_path = get_league_path(league_key)
    if league_path is None:
        raise ValueError(f"Unsupported league key: {league_key}")

    parts = league_path.split("/")
    if len(parts) < 3 or parts[0] != "sports":
        raise ValueError(f"Unsupported league path: {league_path}")
    return parts[1], parts[2]


def parse_leagues(raw: str) -> list[str]:
    leagues = [league.strip().upper() for league in raw.split(",") if league.strip()]
    invalid = [league for league in leagues if league not in LEAGUE_PATHS]
    if invalid:
        raise ValueError(
            f"Unsupported leagues: {', '.join(invalid)}. "
            f"Supported: {', '.join(SUPPORTED_LEAGUES)}"
        )
    return leagues
