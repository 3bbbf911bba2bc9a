"""Implementation of (Session)Repository using SQLAlchemy"""

import logging
from typing import Optional

from sqlalchemy import Update, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chess_sync.core.models import MoveModel, SessionModel
from chess_sync.core.shared_types import Color, Status
from chess_sync.db.schema import DBMove, DBSession, utc_now

logger = logging.getLogger(__name__)


class SQLSessionRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy.

    Conditioned writes are expressed as UPDATE ... WHERE <precondition> and judged by the affected row count,
    so two processes sharing one database cannot overwrite each other blindly.
    """

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_session(self, game_code: str) -> SessionModel | None:
        """Get session by game code, if record exists."""
        session_db = self._fetch_session(game_code)
        session_model = self._to_model(session_db) if session_db else None
        # end the read transaction so the next read sees rows committed by other writers
        self.db.commit()
        return session_model

    def code_exists(self, game_code: str) -> bool:
        query = select(DBSession.id).where(DBSession.game_code == game_code)
        found = self.db.scalar(query) is not None
        self.db.commit()
        return found

    def create_session(self, session: SessionModel) -> SessionModel | None:
        """Store new session. Returns None if the game code is already taken."""
        session_db = DBSession(
            game_code=session.game_code,
            fen_position=session.fen_position,
            pgn=session.pgn,
            white_player_id=session.white_player_id,
            black_player_id=session.black_player_id,
            next_turn=str(session.next_turn),
            status=str(session.status),
            winner=str(session.winner) if session.winner else None,
        )
        self.db.add(session_db)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Game code %s collided on insert", session.game_code)
            return None
        self.db.refresh(session_db)
        return self._to_model(session_db)

    def claim_slot(
        self, game_code: str, color: Color, player_id: str
    ) -> SessionModel | None:
        """Seat the player on the given side, only if that slot is still empty."""
        slot = (
            DBSession.white_player_id
            if color == Color.WHITE
            else DBSession.black_player_id
        )
        stmt = (
            update(DBSession)
            .where(DBSession.game_code == game_code, slot.is_(None))
            .values({slot: player_id, DBSession.updated_at: utc_now()})
        )
        if not self._execute_conditioned(stmt):
            return None
        return self.get_session(game_code)

    def record_move(
        self, expected: SessionModel, updated: SessionModel, move: MoveModel
    ) -> SessionModel | None:
        """Write the new position/turn/status and append the move in one transaction,
        only if the stored position, turn and status still match `expected`."""
        stmt = (
            update(DBSession)
            .where(
                DBSession.game_code == expected.game_code,
                DBSession.fen_position == expected.fen_position,
                DBSession.next_turn == str(expected.next_turn),
                DBSession.status == str(Status.ACTIVE),
            )
            .values(
                fen_position=updated.fen_position,
                pgn=updated.pgn,
                next_turn=str(updated.next_turn),
                status=str(updated.status),
                winner=str(updated.winner) if updated.winner else None,
                updated_at=utc_now(),
            )
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                return None
            session_id = self.db.scalar(
                select(DBSession.id).where(DBSession.game_code == expected.game_code)
            )
            self.db.add(
                DBMove(
                    session_id=session_id,
                    move_notation=move.move_notation,
                    fen_after_move=move.fen_after_move,
                    piece_moved=move.piece_moved,
                    from_square=move.from_square,
                    to_square=move.to_square,
                    is_capture=move.is_capture,
                    is_check=move.is_check,
                    is_checkmate=move.is_checkmate,
                )
            )
            self.db.commit()
        except SQLAlchemyError:
            # Neither the session update nor the move insert may survive on its own
            self.db.rollback()
            raise
        return self.get_session(expected.game_code)

    def set_status(
        self, game_code: str, status: Status, winner: Optional[Color] = None
    ) -> SessionModel | None:
        """Move an active session into a terminal status, only if it is still active."""
        stmt = (
            update(DBSession)
            .where(
                DBSession.game_code == game_code,
                DBSession.status == str(Status.ACTIVE),
            )
            .values(
                status=str(status),
                winner=str(winner) if winner else None,
                updated_at=utc_now(),
            )
        )
        if not self._execute_conditioned(stmt):
            return None
        return self.get_session(game_code)

    def list_moves(self, game_code: str) -> list[MoveModel] | None:
        """Move log in creation order, or None if the session does not exist."""
        session_id = self.db.scalar(
            select(DBSession.id).where(DBSession.game_code == game_code)
        )
        if session_id is None:
            self.db.commit()
            return None
        query = (
            select(DBMove)
            .where(DBMove.session_id == session_id)
            .order_by(DBMove.created_at, DBMove.id)
        )
        moves = [self._to_move_model(move_db) for move_db in self.db.scalars(query)]
        self.db.commit()
        return moves

    def delete_session(self, game_code: str) -> SessionModel | None:
        """Remove a session's record (its moves are removed with it)."""
        session_db = self._fetch_session(game_code)
        if not session_db:
            return None
        session_model = self._to_model(session_db)
        self.db.delete(session_db)
        self.db.commit()
        return session_model

    def _execute_conditioned(self, stmt: Update) -> bool:
        """Run a conditioned UPDATE; commit if exactly one row matched, otherwise roll back."""
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                return False
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return True

    def _fetch_session(self, game_code: str) -> DBSession | None:
        query = (
            select(DBSession)
            .where(DBSession.game_code == game_code)
            .execution_options(populate_existing=True)
        )
        return self.db.scalar(query)

    def _to_model(self, session_db: DBSession) -> SessionModel:
        """Convert SQLAlchemy model to data transfer model."""
        return SessionModel(
            game_code=session_db.game_code,
            fen_position=session_db.fen_position,
            pgn=session_db.pgn or "",
            white_player_id=session_db.white_player_id,
            black_player_id=session_db.black_player_id,
            next_turn=Color(session_db.next_turn),
            status=Status(session_db.status),
            winner=Color(session_db.winner) if session_db.winner else None,
            created_at=session_db.created_at,
            updated_at=session_db.updated_at,
        )

    def _to_move_model(self, move_db: DBMove) -> MoveModel:
        return MoveModel(
            move_notation=move_db.move_notation,
            fen_after_move=move_db.fen_after_move,
            piece_moved=move_db.piece_moved,
            from_square=move_db.from_square,
            to_square=move_db.to_square,
            is_capture=move_db.is_capture,
            is_check=move_db.is_check,
            is_checkmate=move_db.is_checkmate,
            created_at=move_db.created_at,
        )
