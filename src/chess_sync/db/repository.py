"""Protocol repository. The Session Manager depends on this, never on SQLAlchemy directly."""

from typing import Optional, Protocol

from chess_sync.core.models import MoveModel, SessionModel
from chess_sync.core.shared_types import Color, Status


class SessionRepository(Protocol):
    """Persistence layer orchestration.

    Every mutating method is a conditioned write: it returns None when its precondition
    no longer holds at write time, and the caller decides whether to re-read and retry.
    """

    def get_session(self, game_code: str) -> SessionModel | None:
        """Get session by game code, if record exists."""
        ...

    def code_exists(self, game_code: str) -> bool:
        """Whether a session already uses this game code."""
        ...

    def create_session(self, session: SessionModel) -> SessionModel | None:
        """Store new session. Returns None if the game code is already taken."""
        ...

    def claim_slot(
        self, game_code: str, color: Color, player_id: str
    ) -> SessionModel | None:
        """Seat the player on the given side, only if that slot is still empty."""
        ...

    def record_move(
        self, expected: SessionModel, updated: SessionModel, move: MoveModel
    ) -> SessionModel | None:
        """Write the new position/turn/status and append the move in one transaction,
        only if the stored position, turn and status still match `expected`."""
        ...

    def set_status(
        self, game_code: str, status: Status, winner: Optional[Color] = None
    ) -> SessionModel | None:
        """Move an active session into a terminal status, only if it is still active."""
        ...

    def list_moves(self, game_code: str) -> list[MoveModel] | None:
        """Move log in creation order, or None if the session does not exist."""
        ...

    def delete_session(self, game_code: str) -> SessionModel | None:
        """Remove a session's record (its moves are removed with it)."""
        ...
