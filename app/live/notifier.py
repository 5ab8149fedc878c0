"""Change notifications pushed to connected viewers over WebSockets."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi import WebSocket

from app.ingestion.schema import GameIngestDTO

logger = logging.getLogger(__name__)

SCORE_UPDATE_EVENT = "liveScore"
GAME_REMOVED_EVENT = "gameRemoved"
UPDATES_CHANGED_EVENT = "updatesChanged"
LEAGUE_STATUS_EVENT = "leagueLiveStatus"
ACTIVE_GAMES_EVENT = "activeGames"


class ChangeNotifier(Protocol):
    async def score_update(self, league: str, game: GameIngestDTO) -> None:
        ...

    async def game_removed(self, game_id: str) -> None:
        ...

    async def updates_changed(self) -> None:
        ...

    async def league_status_changed(self, statuses: dict[str, bool]) -> None:
        ...


def build_envelope(event_type: str, data: Any) -> dict[str, Any]:
    return {
        "type": event_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class ConnectionManager:
    """Tracks WebSocket viewers and fans scheduler events out to all of them.

    Broadcasts never raise: a connection whose send fails is dropped.
    """

    MAX_CONNECTIONS = 500

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> str | None:
        """Accept and register *websocket*. Returns None at the connection limit."""
        async with self._lock:
            if len(self._connections) >= self.MAX_CONNECTIONS:
                logger.warning(
                    "WebSocket connection limit reached active=%s",
                    len(self._connections),
                )
                return None
            await websocket.accept()
            connection_id = uuid.uuid4().hex
            self._connections[connection_id] = websocket
        logger.info(
            "Viewer connected id=%s active=%s",
            connection_id,
            len(self._connections),
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            removed = self._connections.pop(connection_id, None)
        if removed is not None:
            logger.info(
                "Viewer disconnected id=%s active=%s",
                connection_id,
                len(self._connections),
            )

    async def send(self, connection_id: str, event_type: str, data: Any) -> bool:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_json(build_envelope(event_type, data))
        except Exception as exc:
            logger.warning("Send failed id=%s error=%s", connection_id, exc)
            await self.disconnect(connection_id)
            return False
        return True

    async def broadcast(self, event_type: str, data: Any) -> int:
        """Send one event to every viewer; returns the number of successful sends."""
        async with self._lock:
            targets = list(self._connections.items())

        payload = build_envelope(event_type, data)
        delivered = 0
        dead: list[str] = []
        for connection_id, websocket in targets:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Broadcast failed id=%s event=%s error=%s",
                    connection_id,
                    event_type,
                    exc,
                )
                dead.append(connection_id)

        for connection_id in dead:
            await self.disconnect(connection_id)
        logger.debug("Broadcast event=%s delivered=%s", event_type, delivered)
        return delivered

    async def score_update(self, league: str, game: GameIngestDTO) -> None:
        await self.broadcast(
            SCORE_UPDATE_EVENT,
            {"league": league, "game": game.model_dump(mode="json")},
        )

    async def game_removed(self, game_id: str) -> None:
        await self.broadcast(GAME_REMOVED_EVENT, {"gameId": game_id})

    async def updates_changed(self) -> None:
        await self.broadcast(UPDATES_CHANGED_EVENT, {})

    async def league_status_changed(self, statuses: dict[str, bool]) -> None:
        await self.broadcast(LEAGUE_STATUS_EVENT, statuses)
