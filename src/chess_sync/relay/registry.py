"""
Relay room registry: best-effort fan-out of "something changed" hints to the live connections of a session.

Holds no game state. A lost or reordered notification is harmless because receivers always re-fetch
authoritative state from the Session Manager.
"""

import logging
import threading
from typing import Any, Protocol

from chess_sync.core.exceptions import RelayUnavailableError
from chess_sync.core.models import normalize_code

logger = logging.getLogger(__name__)


class RelayConnection(Protocol):
    """A live client connection as seen by the registry."""

    connection_id: str

    def deliver(self, payload: dict[str, Any]) -> None:
        """Hand the payload over without blocking. Raises RelayUnavailableError if the connection is gone."""
        ...


class RelayRoomRegistry:
    """Maps game codes to the connections currently watching them.

    One instance per server process. Room membership is touched from the event loop (websocket handlers)
    and from worker threads (the Session Manager running in sync routes), hence the lock.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, RelayConnection]] = {}
        self._memberships: dict[str, set[str]] = {}
        self._lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def join_room(self, connection: RelayConnection, game_code: str) -> None:
        """Associate the connection with the room. Joining twice is a no-op."""
        code = normalize_code(game_code)
        with self._lock:
            if self._closed:
                raise RelayUnavailableError("Relay is shut down.")
            self._rooms.setdefault(code, {})[connection.connection_id] = connection
            self._memberships.setdefault(connection.connection_id, set()).add(code)
        logger.debug("Connection %s joined room %s", connection.connection_id, code)

    def leave_room(self, connection: RelayConnection, game_code: str) -> None:
        code = normalize_code(game_code)
        with self._lock:
            self._remove_locked(connection.connection_id, code)

    def disconnect(self, connection: RelayConnection) -> None:
        """Drop every association of the connection (implicit on connection loss)."""
        with self._lock:
            for code in list(self._memberships.get(connection.connection_id, ())):
                self._remove_locked(connection.connection_id, code)
        logger.debug("Connection %s disconnected", connection.connection_id)

    def is_member(self, connection: RelayConnection, game_code: str) -> bool:
        with self._lock:
            return normalize_code(game_code) in self._memberships.get(
                connection.connection_id, ()
            )

    def notify(
        self,
        game_code: str,
        payload: dict[str, Any],
        origin: RelayConnection | None = None,
    ) -> int:
        """
        Deliver the payload to every connection in the room except the originator.
        -----
        Never raises. Missing or empty rooms are silently ignored. A connection that fails delivery is dropped.
        Returns the number of connections the payload was handed to.
        """
        code = normalize_code(game_code)
        origin_id = origin.connection_id if origin is not None else None
        with self._lock:
            recipients = [
                connection
                for connection_id, connection in self._rooms.get(code, {}).items()
                if connection_id != origin_id
            ]

        delivered = 0
        for connection in recipients:
            try:
                connection.deliver(payload)
            except RelayUnavailableError:
                logger.info("Dropping unreachable connection %s from room %s", connection.connection_id, code)
                self.disconnect(connection)
                continue
            except Exception:
                logger.warning(
                    "Delivery to %s in room %s failed, dropping it", connection.connection_id, code, exc_info=True
                )
                self.disconnect(connection)
                continue
            delivered += 1
        return delivered

    def room_size(self, game_code: str) -> int:
        with self._lock:
            return len(self._rooms.get(normalize_code(game_code), {}))

    def rooms(self) -> dict[str, int]:
        with self._lock:
            return {code: len(members) for code, members in self._rooms.items()}

    def close(self) -> None:
        """Process shutdown: forget all rooms and refuse new members."""
        with self._lock:
            self._closed = True
            self._rooms.clear()
            self._memberships.clear()
        logger.info("Relay registry closed")

    def _remove_locked(self, connection_id: str, code: str) -> None:
        members = self._rooms.get(code)
        if members is not None:
            members.pop(connection_id, None)
            if not members:
                del self._rooms[code]
        codes = self._memberships.get(connection_id)
        if codes is not None:
            codes.discard(code)
            if not codes:
                del self._memberships[connection_id]
