from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from app.models import AppSettings

logger = logging.getLogger(__name__)

MIN_POLL_SECONDS = 5


@dataclass(frozen=True)
class SettingsSnapshot:
    id: int
    live_poll_seconds: int
    idle_poll_seconds: int
    update_dwell_seconds: int
    stats_refresh_enabled: bool


def _default_settings() -> AppSettings:
    return AppSettings(
        id=1,
        live_poll_seconds=20,
        idle_poll_seconds=6 * 60 * 60,
        update_dwell_seconds=30,
        stats_refresh_enabled=True,
        updated_at_utc=datetime.now(timezone.utc),
    )


def default_snapshot() -> SettingsSnapshot:
    return snapshot_settings(_default_settings())


def get_or_create_settings(db) -> AppSettings:
    settings = db.query(AppSettings).filter(AppSettings.id == 1).one_or_none()
    if settings:
        return settings
    settings = _default_settings()
    db.add(settings)
    db.commit()
    db.refresh(settings)
    return settings


def snapshot_settings(settings: AppSettings) -> SettingsSnapshot:
    return SettingsSnapshot(
        id=settings.id,
        live_poll_seconds=settings.live_poll_seconds,
        idle_poll_seconds=settings.idle_poll_seconds,
        update_dwell_seconds=settings.update_dwell_seconds,
        stats_refresh_enabled=settings.stats_refresh_enabled,
    )


def update_settings(db, changes: dict) -> AppSettings:
    """Apply validated *changes* to the settings row and commit."""
    settings = get_or_create_settings(db)
    for field in ("live_poll_seconds", "idle_poll_seconds"):
        value = changes.get(field)
        if value is not None and value < MIN_POLL_SECONDS:
            raise ValueError(f"{field} must be >= {MIN_POLL_SECONDS}")
    dwell = changes.get("update_dwell_seconds")
    if dwell is not None and dwell < 0:
        raise ValueError("update_dwell_seconds must be >= 0")

    for field, value in changes.items():
        if value is None or not hasattr(settings, field):
            continue
        setattr(settings, field, value)
    settings.updated_at_utc = datetime.now(timezone.utc)
    db.commit()
    db.refresh(settings)
    logger.info(
        "Settings updated: live=%ss idle=%ss dwell=%ss stats_refresh=%s",
        settings.live_poll_seconds,
        settings.idle_poll_seconds,
        settings.update_dwell_seconds,
        settings.stats_refresh_enabled,
    )
    return settings
