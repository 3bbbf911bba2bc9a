"""
Client reconciliation loop.

A relay notification only says "something may have changed". The loop never applies its payload:
it re-fetches the session and the move log from the authoritative source and adopts the result,
unless the result is older than what is already displayed.
"""

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Optional, Protocol

from chess_sync.core.models import MoveModel, SessionModel, normalize_code

logger = logging.getLogger(__name__)


class SessionSource(Protocol):
    """Authoritative read side. SessionManager satisfies it in-process, HttpSessionSource over HTTP."""

    def get_by_code(self, game_code: str) -> SessionModel: ...

    def list_moves(self, game_code: str) -> list[MoveModel]: ...


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class LocalView:
    """What the client currently displays."""

    session: SessionModel
    moves: list[MoveModel]

    def is_newer_than(self, other: "LocalView") -> bool:
        """Move logs only grow; with equal logs the later update wins (resign / draw / joins)."""
        if len(self.moves) != len(other.moves):
            return len(self.moves) > len(other.moves)
        if self.session.updated_at is None or other.session.updated_at is None:
            return True
        return self.session.updated_at >= other.session.updated_at


class ReconciliationLoop:
    """Per-client state machine: disconnected -> connecting -> connected."""

    def __init__(
        self,
        game_code: str,
        source: SessionSource,
        join_room: Callable[[str], None],
        on_change: Optional[Callable[[LocalView], None]] = None,
    ) -> None:
        self.game_code = normalize_code(game_code)
        self.source = source
        self.join_room = join_room
        self.on_change = on_change
        self.state = ConnectionState.DISCONNECTED
        self.joined = False
        self.view: Optional[LocalView] = None

    def on_connecting(self) -> None:
        self.state = ConnectionState.CONNECTING
        self.joined = False

    def on_connected(self) -> LocalView:
        """(Re)join the room, then catch up on whatever was missed while disconnected."""
        self.state = ConnectionState.CONNECTED
        self.join_room(self.game_code)
        self.joined = True
        return self.refresh()

    def on_disconnected(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.joined = False

    def on_notification(self, payload: Any) -> bool:
        """
        Handle a relay notification.
        -----
        Returns True if it triggered a re-fetch. Notifications arriving before the room is joined,
        or addressed to another session, are ignored.
        """
        if self.state != ConnectionState.CONNECTED or not self.joined:
            logger.debug("Ignoring notification for %s: not joined yet", self.game_code)
            return False
        session_id = payload.get("session_id") if isinstance(payload, dict) else None
        if session_id is not None and normalize_code(str(session_id)) != self.game_code:
            return False
        self.refresh()
        return True

    def poll(self) -> LocalView:
        """Fallback when the relay is unavailable: fetch without waiting for a hint."""
        return self.refresh()

    def refresh(self) -> LocalView:
        fetched = self._fetch()
        if self.view is not None and not fetched.is_newer_than(self.view):
            logger.info("Discarding stale snapshot of %s", self.game_code)
            return self.view

        self.view = fetched
        if self.on_change is not None:
            self.on_change(fetched)
        return fetched

    def _fetch(self) -> LocalView:
        # session and log are two reads; a move committed in between shows up as a log ahead of the session
        for _ in range(2):
            session = self.source.get_by_code(self.game_code)
            moves = self.source.list_moves(self.game_code)
            if not moves or moves[-1].fen_after_move == session.fen_position:
                break
        return LocalView(session=session, moves=moves)
