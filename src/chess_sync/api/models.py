"""Requests and Response models"""

from datetime import datetime
from typing import Optional, Self

from pydantic import BaseModel, field_validator

from chess_sync.core.exceptions import InvalidRequestError
from chess_sync.core.models import CandidateMove, MoveModel, SessionModel
from chess_sync.core.shared_types import Color, ColorPreference, PieceType, Status


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    player_id: Optional[str] = None
    color: ColorPreference = ColorPreference.RANDOM

    @field_validator("player_id")
    @classmethod
    def validate_player_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.strip():
            raise InvalidRequestError("player_id must not be blank.")
        return value.strip()


class JoinGameRequest(BaseModel):
    player_id: str

    @field_validator("player_id")
    @classmethod
    def validate_player_id(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("player_id must not be blank.")
        return value.strip()


class MoveRequest(BaseModel):
    from_square: str
    to_square: str
    promote_to: Optional[PieceType] = None
    player_id: Optional[str] = None

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        def _is_algebraic_notation(value: str) -> bool:
            if len(value) != 2:
                return False

            file_character = value[0]
            rank_character = value[1]
            return file_character in "abcdefgh" and rank_character in "12345678"

        value = value.strip().lower()
        if not _is_algebraic_notation(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name."
            )
        return value

    def to_candidate(self) -> CandidateMove:
        return CandidateMove(
            from_square=self.from_square,
            to_square=self.to_square,
            promote_to=self.promote_to,
            player_id=self.player_id,
        )


class ResignRequest(BaseModel):
    color: Color


# --- RESPONSE MODELS ---
class SessionResponse(BaseModel):
    game_code: str
    fen_position: str
    pgn: str
    white_player_id: Optional[str]
    black_player_id: Optional[str]
    next_turn: Color
    status: Status
    winner: Optional[Color]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: SessionModel) -> Self:
        return cls(
            game_code=model.game_code,
            fen_position=model.fen_position,
            pgn=model.pgn,
            white_player_id=model.white_player_id,
            black_player_id=model.black_player_id,
            next_turn=model.next_turn,
            status=model.status,
            winner=model.winner,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self) -> SessionModel:
        return SessionModel(**self.model_dump())


class MoveResponse(BaseModel):
    move_notation: str
    fen_after_move: str
    piece_moved: str
    from_square: str
    to_square: str
    is_capture: bool
    is_check: bool
    is_checkmate: bool
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, model: MoveModel) -> Self:
        return cls(
            move_notation=model.move_notation,
            fen_after_move=model.fen_after_move,
            piece_moved=model.piece_moved,
            from_square=model.from_square,
            to_square=model.to_square,
            is_capture=model.is_capture,
            is_check=model.is_check,
            is_checkmate=model.is_checkmate,
            created_at=model.created_at,
        )

    def to_model(self) -> MoveModel:
        return MoveModel(**self.model_dump())


class MoveResultResponse(BaseModel):
    session: SessionResponse
    move: MoveResponse


class ErrorResponse(BaseModel):
    error: str
    detail: str
