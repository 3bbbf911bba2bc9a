"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from chess_sync.core.models import STARTING_FEN


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBSession(Base):
    __tablename__ = "chess_sessions"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_code: Mapped[str] = mapped_column(String(10), unique=True, index=True)
    fen_position: Mapped[str] = mapped_column(Text, default=STARTING_FEN)
    pgn: Mapped[str] = mapped_column(Text, default="")
    white_player_id: Mapped[Optional[str]] = mapped_column(String(255))
    black_player_id: Mapped[Optional[str]] = mapped_column(String(255))
    next_turn: Mapped[str] = mapped_column(String(5), default="white")
    status: Mapped[str] = mapped_column(String(20), default="active")
    winner: Mapped[Optional[str]] = mapped_column(String(5))
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)

    moves: Mapped[list["DBMove"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DBMove(Base):
    __tablename__ = "chess_moves"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("chess_sessions.id", ondelete="CASCADE"), index=True
    )
    move_notation: Mapped[str] = mapped_column(String(10))
    fen_after_move: Mapped[str] = mapped_column(Text)
    piece_moved: Mapped[str] = mapped_column(String(16))
    from_square: Mapped[str] = mapped_column(String(2))
    to_square: Mapped[str] = mapped_column(String(2))
    is_capture: Mapped[bool] = mapped_column(default=False)
    is_check: Mapped[bool] = mapped_column(default=False)
    is_checkmate: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)

    session: Mapped[DBSession] = relationship(back_populates="moves")
