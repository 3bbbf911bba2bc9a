"""Unit tests for chess_sync/rules/oracle.py"""

import pytest

from chess_sync.core.exceptions import InvalidRequestError
from chess_sync.core.models import STARTING_FEN, CandidateMove
from chess_sync.core.shared_types import Color, PieceType
from chess_sync.rules.oracle import PythonChessOracle


def test_initial_position(oracle: PythonChessOracle) -> None:
    assert oracle.initial_position() == STARTING_FEN


def test_piece_color(oracle: PythonChessOracle) -> None:
    assert oracle.piece_color(STARTING_FEN, "e2") == Color.WHITE
    assert oracle.piece_color(STARTING_FEN, "e7") == Color.BLACK
    assert oracle.piece_color(STARTING_FEN, "e4") is None


def test_legal_pawn_push(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate(STARTING_FEN, CandidateMove("e2", "e4"))

    assert evaluation.legal
    assert evaluation.san == "e4"
    assert evaluation.uci == "e2e4"
    assert evaluation.mover == Color.WHITE
    assert evaluation.piece == PieceType.PAWN
    assert evaluation.piece_descriptor == "white_pawn"
    assert evaluation.fen_after == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    assert not evaluation.is_capture
    assert not evaluation.is_check
    assert not evaluation.is_checkmate


@pytest.mark.parametrize(
    "from_square, to_square",
    [
        ("e2", "e5"),  # pawn cannot jump three squares
        ("e1", "e2"),  # own piece on destination
        ("e4", "e5"),  # empty origin square
        ("e7", "e5"),  # legal for black, but white is to move
    ],
)
def test_illegal_moves(oracle: PythonChessOracle, from_square: str, to_square: str) -> None:
    evaluation = oracle.evaluate(STARTING_FEN, CandidateMove(from_square, to_square))
    assert not evaluation.legal


def test_unknown_square_name(oracle: PythonChessOracle) -> None:
    with pytest.raises(InvalidRequestError):
        oracle.evaluate(STARTING_FEN, CandidateMove("z9", "e4"))


def test_capture(oracle: PythonChessOracle) -> None:
    after_e4_d5 = "rnbqkbnr/ppp1pppp/8/3p4/4P3/8/PPPP1PPP/RNBQKBNR w KQkq d6 0 2"
    evaluation = oracle.evaluate(after_e4_d5, CandidateMove("e4", "d5"))
    assert evaluation.legal
    assert evaluation.is_capture
    assert evaluation.san == "exd5"


def test_checkmate(oracle: PythonChessOracle) -> None:
    """Ladder mate with two rooks."""
    evaluation = oracle.evaluate("k7/6RR/8/8/8/8/K7/8 w - - 0 1", CandidateMove("h7", "h8"))
    assert evaluation.legal
    assert evaluation.is_check
    assert evaluation.is_checkmate
    assert evaluation.san == "Rh8#"
    assert evaluation.piece_descriptor == "white_rook"


def test_stalemate(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate("7k/5K2/8/8/8/8/8/6Q1 w - - 0 1", CandidateMove("g1", "g6"))
    assert evaluation.legal
    assert evaluation.is_stalemate
    assert not evaluation.is_check
    assert not evaluation.is_checkmate


def test_draw_by_insufficient_material(oracle: PythonChessOracle) -> None:
    """King and bishop against a lone king."""
    evaluation = oracle.evaluate("8/k7/8/8/8/8/6p1/K6B w - - 0 1", CandidateMove("h1", "g2"))
    assert evaluation.legal
    assert evaluation.is_capture
    assert evaluation.is_draw


# -- Promotion --
PROMOTION_FEN = "8/P7/8/8/8/8/2k5/7K w - - 0 1"


def test_promotion_defaults_to_queen(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate(PROMOTION_FEN, CandidateMove("a7", "a8"))
    assert evaluation.legal
    assert evaluation.san == "a8=Q"
    assert evaluation.uci == "a7a8q"


def test_under_promotion(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate(
        PROMOTION_FEN, CandidateMove("a7", "a8", promote_to=PieceType.KNIGHT)
    )
    assert evaluation.legal
    assert evaluation.san == "a8=N"
    assert evaluation.fen_after.startswith("N7/")


def test_promotion_to_king_is_illegal(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate(
        PROMOTION_FEN, CandidateMove("a7", "a8", promote_to=PieceType.KING)
    )
    assert not evaluation.legal


def test_promotion_piece_on_ordinary_move_is_illegal(oracle: PythonChessOracle) -> None:
    evaluation = oracle.evaluate(
        STARTING_FEN, CandidateMove("e2", "e4", promote_to=PieceType.QUEEN)
    )
    assert not evaluation.legal


# -- Replay --
def test_replay(oracle: PythonChessOracle) -> None:
    positions = oracle.replay(STARTING_FEN, ["e4", "e5", "Nf3"])
    assert len(positions) == 3
    assert positions[0] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    assert positions[-1] == "rnbqkbnr/pppp1ppp/8/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R b KQkq - 1 2"


def test_replay_nothing(oracle: PythonChessOracle) -> None:
    assert oracle.replay(STARTING_FEN, []) == []
