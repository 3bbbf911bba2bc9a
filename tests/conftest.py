"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from chess_sync.core.config import Settings
from chess_sync.core.models import MoveModel, SessionModel
from chess_sync.core.shared_types import Color, Status
from chess_sync.db.database import build_engine
from chess_sync.db.schema import Base
from chess_sync.main import create_app
from chess_sync.relay.registry import RelayRoomRegistry
from chess_sync.rules.oracle import PythonChessOracle

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = build_engine(DATABASE_URL)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def oracle() -> PythonChessOracle:
    return PythonChessOracle()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=DATABASE_URL, write_retries=3, code_attempts=5)


@pytest.fixture
def relay() -> Generator[RelayRoomRegistry, None, None]:
    """A fresh registry per test: rooms never leak between test cases."""
    registry = RelayRoomRegistry()
    try:
        yield registry
    finally:
        registry.close()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Full application (own in-memory database, own relay) with the lifespan running."""
    app = create_app(Settings(database_url=DATABASE_URL, log_level="DEBUG"))
    with TestClient(app) as test_client:
        yield test_client


# --- MOCK DEPENDENCIES ----
def _now() -> datetime:
    return datetime.now(timezone.utc)


class MockRepository:
    """Mock the SessionRepository using dictionaries, keeping the conditioned-write semantics."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionModel] = {}
        self._moves: dict[str, list[MoveModel]] = {}

    def get_session(self, game_code: str) -> SessionModel | None:
        session = self._sessions.get(game_code)
        return replace(session) if session else None

    def code_exists(self, game_code: str) -> bool:
        return game_code in self._sessions

    def create_session(self, session: SessionModel) -> SessionModel | None:
        if session.game_code in self._sessions:
            return None
        now = _now()
        self._sessions[session.game_code] = replace(session, created_at=now, updated_at=now)
        self._moves[session.game_code] = []
        return self.get_session(session.game_code)

    def claim_slot(
        self, game_code: str, color: Color, player_id: str
    ) -> SessionModel | None:
        session = self._sessions.get(game_code)
        if session is None or session.player(color) is not None:
            return None
        field = "white_player_id" if color == Color.WHITE else "black_player_id"
        self._sessions[game_code] = replace(session, **{field: player_id}, updated_at=_now())
        return self.get_session(game_code)

    def record_move(
        self, expected: SessionModel, updated: SessionModel, move: MoveModel
    ) -> SessionModel | None:
        session = self._sessions.get(expected.game_code)
        if (
            session is None
            or session.fen_position != expected.fen_position
            or session.next_turn != expected.next_turn
            or session.status != Status.ACTIVE
        ):
            return None
        now = _now()
        self._sessions[expected.game_code] = replace(updated, updated_at=now)
        self._moves[expected.game_code].append(replace(move, created_at=now))
        return self.get_session(expected.game_code)

    def set_status(
        self, game_code: str, status: Status, winner: Optional[Color] = None
    ) -> SessionModel | None:
        session = self._sessions.get(game_code)
        if session is None or session.status != Status.ACTIVE:
            return None
        self._sessions[game_code] = replace(session, status=status, winner=winner, updated_at=_now())
        return self.get_session(game_code)

    def list_moves(self, game_code: str) -> list[MoveModel] | None:
        if game_code not in self._moves:
            return None
        return [replace(move) for move in self._moves[game_code]]

    def delete_session(self, game_code: str) -> SessionModel | None:
        self._moves.pop(game_code, None)
        return self._sessions.pop(game_code, None)

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._sessions.clear()
        self._moves.clear()


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


class RecordingConnection:
    """RelayConnection that keeps what it was handed."""

    def __init__(self, connection_id: str) -> None:
        self.connection_id = connection_id
        self.received: list[dict[str, Any]] = []

    def deliver(self, payload: dict[str, Any]) -> None:
        self.received.append(payload)
