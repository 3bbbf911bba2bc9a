"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    ACTIVE = "active"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW = "draw"
    RESIGNED = "resigned"

    @property
    def is_terminal(self) -> bool:
        return self != Status.ACTIVE


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE


class ColorPreference(StrEnum):
    WHITE = "white"
    BLACK = "black"
    RANDOM = "random"


class PieceType(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"


# --- Pieces a pawn may be promoted to. A pawn reaching the last rank without a choice becomes a queen.
PROMOTION_PIECES: tuple[PieceType, ...] = (
    PieceType.QUEEN,
    PieceType.ROOK,
    PieceType.BISHOP,
    PieceType.KNIGHT,
)
