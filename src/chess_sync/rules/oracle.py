"""
Rules oracle: the external capability that judges move legality and terminal states.

The Session Manager only sees the RulesOracle protocol. PythonChessOracle backs it with python-chess,
so no chess rules are implemented in this package.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import chess

from chess_sync.core.exceptions import InvalidRequestError
from chess_sync.core.models import STARTING_FEN, CandidateMove
from chess_sync.core.shared_types import Color, PieceType


@dataclass
class MoveEvaluation:
    """Verdict on one candidate move from a given position."""

    legal: bool
    san: str = ""
    uci: str = ""
    fen_after: str = ""
    mover: Optional[Color] = None
    piece: Optional[PieceType] = None
    is_capture: bool = False
    is_check: bool = False
    is_checkmate: bool = False
    is_stalemate: bool = False
    is_draw: bool = False

    @property
    def piece_descriptor(self) -> str:
        """e.g. 'white_knight'"""
        return f"{self.mover}_{self.piece}"


class RulesOracle(Protocol):
    def initial_position(self) -> str:
        """FEN of a new game."""
        ...

    def piece_color(self, fen: str, square: str) -> Optional[Color]:
        """Color of the piece standing on `square`, or None for an empty square."""
        ...

    def evaluate(self, fen: str, move: CandidateMove) -> MoveEvaluation:
        """Judge the move. Never raises for an illegal move: returns legal=False instead."""
        ...

    def replay(self, start_fen: str, notations: list[str]) -> list[str]:
        """Apply SAN moves one by one from `start_fen`, returning the FEN after each move."""
        ...


_PROMOTION_TO_PYTHON_CHESS: dict[PieceType, chess.PieceType] = {
    PieceType.QUEEN: chess.QUEEN,
    PieceType.ROOK: chess.ROOK,
    PieceType.BISHOP: chess.BISHOP,
    PieceType.KNIGHT: chess.KNIGHT,
}


def _color(value: chess.Color) -> Color:
    return Color.WHITE if value == chess.WHITE else Color.BLACK


def _parse_square(square: str) -> chess.Square:
    try:
        return chess.parse_square(square.strip().lower())
    except ValueError:
        raise InvalidRequestError(
            f"Cannot interpret {square!r} as a valid square name."
        ) from None


def _board(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError:
        raise InvalidRequestError(f"Cannot interpret supplied string as FEN: {fen}") from None


class PythonChessOracle:
    """RulesOracle backed by python-chess."""

    def initial_position(self) -> str:
        return STARTING_FEN

    def piece_color(self, fen: str, square: str) -> Optional[Color]:
        piece = _board(fen).piece_at(_parse_square(square))
        return _color(piece.color) if piece else None

    def evaluate(self, fen: str, move: CandidateMove) -> MoveEvaluation:
        board = _board(fen)
        from_square = _parse_square(move.from_square)
        to_square = _parse_square(move.to_square)

        piece = board.piece_at(from_square)
        if piece is None:
            return MoveEvaluation(legal=False)

        promotion = self._promotion_piece(piece, to_square, move.promote_to)
        candidate = chess.Move(from_square, to_square, promotion=promotion)
        if candidate not in board.legal_moves:
            return MoveEvaluation(legal=False)

        san = board.san(candidate)
        is_capture = board.is_capture(candidate)
        board.push(candidate)
        return MoveEvaluation(
            legal=True,
            san=san,
            uci=candidate.uci(),
            fen_after=board.fen(),
            mover=_color(piece.color),
            piece=PieceType(chess.piece_name(piece.piece_type)),
            is_capture=is_capture,
            is_check=board.is_check(),
            is_checkmate=board.is_checkmate(),
            is_stalemate=board.is_stalemate(),
            is_draw=board.is_insufficient_material() or board.is_seventyfive_moves(),
        )

    def replay(self, start_fen: str, notations: list[str]) -> list[str]:
        board = _board(start_fen)
        positions = []
        for notation in notations:
            board.push_san(notation)
            positions.append(board.fen())
        return positions

    @staticmethod
    def _promotion_piece(
        piece: chess.Piece, to_square: chess.Square, promote_to: Optional[PieceType]
    ) -> Optional[chess.PieceType]:
        """
        python-chess promotion piece for the move.
        -----
        A pawn reaching the last rank without a choice is promoted to a queen.
        Any other requested piece is passed through, so an impossible request simply fails the legality check.
        """
        if promote_to is not None:
            return _PROMOTION_TO_PYTHON_CHESS.get(promote_to, chess.KING)
        reaches_last_rank = chess.square_rank(to_square) in (0, 7)
        if piece.piece_type == chess.PAWN and reaches_last_rank:
            return chess.QUEEN
        return None
