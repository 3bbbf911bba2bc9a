"""
Boundary layer data model(s).

These objects are used to communicate with the Session Manager.
The API layer (higher) and the db / rules layers (lower) send and receive the models defined here,
which decouples the SQLAlchemy tables and the pydantic request/response models from each other.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from chess_sync.core.shared_types import Color, PieceType, Status

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def normalize_code(game_code: str) -> str:
    """Game codes are shared by humans: ignore surrounding whitespace and case."""
    return game_code.strip().upper()


@dataclass
class SessionModel:
    """Transport-safe representation of one game session."""

    game_code: str
    fen_position: str = STARTING_FEN
    pgn: str = ""
    white_player_id: Optional[str] = None
    black_player_id: Optional[str] = None
    next_turn: Color = Color.WHITE
    status: Status = Status.ACTIVE
    winner: Optional[Color] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def player(self, color: Color) -> Optional[str]:
        return self.white_player_id if color == Color.WHITE else self.black_player_id

    def color_of(self, player_id: str) -> Optional[Color]:
        """Side the player is seated on, if any."""
        for color in (Color.WHITE, Color.BLACK):
            if self.player(color) == player_id:
                return color
        return None

    def open_slot(self) -> Optional[Color]:
        """First open slot, white before black."""
        for color in (Color.WHITE, Color.BLACK):
            if self.player(color) is None:
                return color
        return None


@dataclass
class MoveModel:
    """One entry of the append-only move log."""

    move_notation: str
    fen_after_move: str
    piece_moved: str
    from_square: str
    to_square: str
    is_capture: bool = False
    is_check: bool = False
    is_checkmate: bool = False
    created_at: Optional[datetime] = None


@dataclass
class CandidateMove:
    """A move as submitted by a player: origin, destination and optional promotion piece."""

    from_square: str
    to_square: str
    promote_to: Optional[PieceType] = None
    player_id: Optional[str] = None


@dataclass
class MoveResult:
    """What a successful apply_move returns."""

    session: SessionModel
    move: MoveModel


@dataclass
class ReplayReport:
    """Outcome of replaying the move log from the starting position."""

    game_code: str
    replayed_fen: str
    stored_fen: str
    mismatches: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.mismatches and self.replayed_fen == self.stored_fen
