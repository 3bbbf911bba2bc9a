"""Orchestration of communication from API router to rules oracle, persistence and relay (and the reverse direction)."""

import logging
import random
import string
from dataclasses import replace
from enum import StrEnum
from typing import Any, Optional, Protocol, TypeVar

from sqlalchemy.exc import OperationalError

from chess_sync.core.config import Settings
from chess_sync.core.exceptions import (
    CodeAllocationError,
    GameFullError,
    GameInactiveError,
    GameNotFoundError,
    IllegalMoveError,
    InvalidRequestError,
    NotYourTurnError,
    RelayUnavailableError,
    TransientStoreConflictError,
)
from chess_sync.core.models import (
    CandidateMove,
    MoveModel,
    MoveResult,
    ReplayReport,
    SessionModel,
    normalize_code,
)
from chess_sync.core.shared_types import Color, ColorPreference, Status
from chess_sync.db.repository import SessionRepository
from chess_sync.rules.oracle import MoveEvaluation, RulesOracle

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits

E = TypeVar("E", bound=StrEnum)


class Notifier(Protocol):
    """Anything that can fan out a best-effort hint to the peers of a session."""

    def notify(self, game_code: str, payload: dict[str, Any], origin: Any = None) -> int: ...


def generate_game_code(length: int, rng: random.Random) -> str:
    """Fixed-length code drawn from [A-Z0-9]."""
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(length))


def extend_pgn(pgn: str, fen_before: str, mover: Color, san: str) -> str:
    """Append one SAN move to PGN movetext, numbering from the full-move counter of the position before the move."""
    fullmove = fen_before.split(" ")[5]
    if mover == Color.WHITE:
        token = f"{fullmove}. {san}"
    elif not pgn:
        token = f"{fullmove}... {san}"
    else:
        token = san
    return f"{pgn} {token}".strip()


class SessionManager:
    """Authoritative state machine for game sessions.

    Every mutation reads the current session, validates it, and then issues a conditioned write.
    A write that loses against a concurrent writer is detected by the repository (it returns None),
    and the operation re-reads and re-validates, at most `settings.write_retries` times.
    """

    def __init__(
        self,
        repository: SessionRepository,
        oracle: RulesOracle,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.repo = repository
        self.oracle = oracle
        self.notifier = notifier
        self.settings = settings or Settings()
        self.rng = rng or random.SystemRandom()

    # -- Commands --
    def create(
        self,
        color_preference: ColorPreference | str = ColorPreference.RANDOM,
        requester_id: Optional[str] = None,
    ) -> SessionModel:
        """Open a new session and seat the requester (if any) on the preferred side."""
        preference = self._parse(ColorPreference, color_preference)

        white_player_id = black_player_id = None
        if requester_id:
            side = (
                self.rng.choice((Color.WHITE, Color.BLACK))
                if preference == ColorPreference.RANDOM
                else Color(preference.value)
            )
            if side == Color.WHITE:
                white_player_id = requester_id
            else:
                black_player_id = requester_id

        for _ in range(self.settings.code_attempts):
            code = generate_game_code(self.settings.code_length, self.rng)
            if self.repo.code_exists(code):
                logger.info("Game code %s already in use, drawing another", code)
                continue
            stored = self.repo.create_session(
                SessionModel(
                    game_code=code,
                    fen_position=self.oracle.initial_position(),
                    white_player_id=white_player_id,
                    black_player_id=black_player_id,
                )
            )
            # None: another writer committed the same code between the check and the insert
            if stored is not None:
                logger.info("Created game %s", code)
                return stored
        raise CodeAllocationError(
            f"No unused game code found after {self.settings.code_attempts} attempts."
        )

    def join(self, game_code: str, requester_id: str) -> SessionModel:
        """Seat the requester in the first open slot, white before black."""
        code = normalize_code(game_code)
        for attempt in range(1, self.settings.write_retries + 1):
            session = self._fetch_session(code)
            slot = session.open_slot()
            if slot is None:
                raise GameFullError(f"Game {code} already has two players.")
            # a seated player must not take the remaining slot as well
            if session.color_of(requester_id) is not None:
                return session

            try:
                joined = self.repo.claim_slot(code, slot, requester_id)
            except OperationalError:
                logger.warning("Store error while joining %s (attempt %d)", code, attempt, exc_info=True)
                continue
            if joined is None:
                logger.info("Slot %s of %s was taken concurrently (attempt %d)", slot, code, attempt)
                continue

            logger.info("Player joined %s as %s", code, slot)
            self._notify(code, {"event": "player-joined", "session_id": code, "color": str(slot)})
            return joined
        raise TransientStoreConflictError(
            f"Could not join game {code}: too many concurrent updates."
        )

    def apply_move(self, game_code: str, candidate: CandidateMove) -> MoveResult:
        """
        Validate and commit one move.
        -----
        1. session must exist and be active
        2. the moved piece must belong to the side to move (and to the requesting player, if given)
        3. the rules oracle must accept the move
        4. session update + move record are written in one conditioned transaction
        5. peers are notified; notification problems never fail the move
        """
        code = normalize_code(game_code)
        for attempt in range(1, self.settings.write_retries + 1):
            session = self._fetch_session(code)
            evaluation = self._validate_move(session, candidate)

            updated = replace(
                session,
                fen_position=evaluation.fen_after,
                pgn=extend_pgn(session.pgn, session.fen_position, session.next_turn, evaluation.san),
                next_turn=session.next_turn.opponent,
                status=self._status_after(evaluation),
                winner=session.next_turn if evaluation.is_checkmate else None,
            )
            move = MoveModel(
                move_notation=evaluation.san,
                fen_after_move=evaluation.fen_after,
                piece_moved=evaluation.piece_descriptor,
                from_square=candidate.from_square.lower(),
                to_square=candidate.to_square.lower(),
                is_capture=evaluation.is_capture,
                is_check=evaluation.is_check,
                is_checkmate=evaluation.is_checkmate,
            )

            try:
                stored = self.repo.record_move(session, updated, move)
            except OperationalError:
                logger.warning("Store error while moving in %s (attempt %d)", code, attempt, exc_info=True)
                continue
            if stored is None:
                logger.info("Game %s changed while %s was validated (attempt %d)", code, evaluation.uci, attempt)
                continue

            logger.info("Game %s: %s played %s, status %s", code, session.next_turn, evaluation.san, stored.status)
            self._notify(
                code,
                {
                    "event": "move",
                    "session_id": code,
                    "move": {
                        "from": move.from_square,
                        "to": move.to_square,
                        "san": move.move_notation,
                    },
                },
            )
            return MoveResult(session=stored, move=move)
        raise TransientStoreConflictError(
            f"Could not record move in game {code}: too many concurrent updates."
        )

    def resign(self, game_code: str, side: Color | str) -> SessionModel:
        """The given side gives up; the opponent wins."""
        color = self._parse(Color, side)
        return self._finish(normalize_code(game_code), Status.RESIGNED, winner=color.opponent)

    def declare_draw(self, game_code: str) -> SessionModel:
        return self._finish(normalize_code(game_code), Status.DRAW, winner=None)

    # -- Queries --
    def get_by_code(self, game_code: str) -> SessionModel:
        return self._fetch_session(normalize_code(game_code))

    def list_moves(self, game_code: str) -> list[MoveModel]:
        code = normalize_code(game_code)
        moves = self.repo.list_moves(code)
        if moves is None:
            raise GameNotFoundError(f"Game with {code=} not found.")
        return moves

    def replay(self, game_code: str) -> ReplayReport:
        """Rebuild the position from the move log and compare every step with what was stored."""
        session = self.get_by_code(game_code)
        moves = self.list_moves(session.game_code)
        start = self.oracle.initial_position()
        positions = self.oracle.replay(start, [move.move_notation for move in moves])
        return ReplayReport(
            game_code=session.game_code,
            replayed_fen=positions[-1] if positions else start,
            stored_fen=session.fen_position,
            mismatches=[
                index
                for index, (position, move) in enumerate(zip(positions, moves))
                if position != move.fen_after_move
            ],
        )

    # -- Internal helpers --
    def _validate_move(self, session: SessionModel, candidate: CandidateMove) -> MoveEvaluation:
        if session.status.is_terminal:
            raise GameInactiveError(f"Game {session.game_code} is over. status: {session.status}")

        mover = self.oracle.piece_color(session.fen_position, candidate.from_square)
        if mover is None:
            raise IllegalMoveError(f"No piece on {candidate.from_square}.")
        if mover != session.next_turn:
            raise NotYourTurnError(f"It is {session.next_turn}'s turn, not {mover}'s.")
        if (
            candidate.player_id is not None
            and session.player(session.next_turn) != candidate.player_id
        ):
            raise NotYourTurnError(
                f"Player {candidate.player_id!r} does not play {session.next_turn}."
            )

        evaluation = self.oracle.evaluate(session.fen_position, candidate)
        if not evaluation.legal:
            raise IllegalMoveError(
                f"Move not allowed: {candidate.from_square}{candidate.to_square}"
            )
        return evaluation

    @staticmethod
    def _status_after(evaluation: MoveEvaluation) -> Status:
        if evaluation.is_checkmate:
            return Status.CHECKMATE
        if evaluation.is_stalemate:
            return Status.STALEMATE
        if evaluation.is_draw:
            return Status.DRAW
        return Status.ACTIVE

    def _finish(self, code: str, status: Status, winner: Optional[Color]) -> SessionModel:
        """Move an active session into a terminal status."""
        for attempt in range(1, self.settings.write_retries + 1):
            session = self._fetch_session(code)
            if session.status.is_terminal:
                raise GameInactiveError(f"Game {code} is over. status: {session.status}")
            try:
                finished = self.repo.set_status(code, status, winner)
            except OperationalError:
                logger.warning("Store error while finishing %s (attempt %d)", code, attempt, exc_info=True)
                continue
            if finished is not None:
                logger.info("Game %s ended: %s", code, status)
                self._notify(code, {"event": "status", "session_id": code, "status": str(status)})
                return finished
        raise TransientStoreConflictError(
            f"Could not update game {code}: too many concurrent updates."
        )

    def _fetch_session(self, code: str) -> SessionModel:
        """Attempt to find the session in the repository and raise error if it fails."""
        session = self.repo.get_session(code)
        if session is None:
            raise GameNotFoundError(f"Game with {code=} not found.")
        return session

    def _notify(self, code: str, payload: dict[str, Any]) -> None:
        # The write is already committed: a relay problem must not reach the caller
        if self.notifier is None:
            return
        try:
            self.notifier.notify(code, payload)
        except RelayUnavailableError:
            logger.warning("Relay unavailable, peers of %s will have to poll", code)
        except Exception:
            logger.warning("Notifying peers of %s failed, they will have to poll", code, exc_info=True)

    @staticmethod
    def _parse(enum_type: type[E], value: E | str) -> E:
        try:
            return enum_type(value)
        except ValueError:
            raise InvalidRequestError(
                f"{value!r} is not one of {', '.join(member.value for member in enum_type)}."
            ) from None
