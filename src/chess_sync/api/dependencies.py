"""FastAPI dependencies handing out the process-scoped handles stored on app.state by the lifespan."""

from typing import Generator

from fastapi import Depends
from fastapi.requests import HTTPConnection
from sqlalchemy.orm import Session

from chess_sync.core.config import Settings
from chess_sync.db.sql_repository import SQLSessionRepository
from chess_sync.relay.registry import RelayRoomRegistry
from chess_sync.rules.oracle import RulesOracle
from chess_sync.services.session_manager import SessionManager


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_relay(connection: HTTPConnection) -> RelayRoomRegistry:
    return connection.app.state.relay


def get_oracle(connection: HTTPConnection) -> RulesOracle:
    return connection.app.state.oracle


def get_db(connection: HTTPConnection) -> Generator[Session, None, None]:
    yield from connection.app.state.database.get_db()


def get_session_manager(
    db: Session = Depends(get_db),
    oracle: RulesOracle = Depends(get_oracle),
    relay: RelayRoomRegistry = Depends(get_relay),
    settings: Settings = Depends(get_settings),
) -> SessionManager:
    return SessionManager(
        SQLSessionRepository(db), oracle, notifier=relay, settings=settings
    )
