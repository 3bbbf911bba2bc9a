"""
Application factory.

The lifespan creates the process-scoped handles exactly once (database engine, relay registry, rules oracle),
stores them on app.state for the dependencies in chess_sync.api.dependencies, and tears them down on shutdown.

Run with: uvicorn chess_sync.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from chess_sync.api.routes import game_error_handler
from chess_sync.api.routes import router as games_router
from chess_sync.core.config import Settings
from chess_sync.core.exceptions import GameError
from chess_sync.db.database import Database
from chess_sync.relay.registry import RelayRoomRegistry
from chess_sync.relay.websocket import router as relay_router
from chess_sync.rules.oracle import PythonChessOracle, RulesOracle

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    # Handles injected by the caller (tests) are kept; anything missing is created here, once per process
    if getattr(app.state, "database", None) is None:
        app.state.database = Database.from_settings(settings)
    if getattr(app.state, "relay", None) is None:
        app.state.relay = RelayRoomRegistry()
    if getattr(app.state, "oracle", None) is None:
        app.state.oracle = PythonChessOracle()
    logger.info("chess-sync started")
    try:
        yield
    finally:
        app.state.relay.close()
        app.state.database.dispose()
        logger.info("chess-sync stopped")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    relay: Optional[RelayRoomRegistry] = None,
    oracle: Optional[RulesOracle] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(title="chess-sync", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.relay = relay
    app.state.oracle = oracle

    app.add_exception_handler(GameError, game_error_handler)
    app.include_router(games_router)
    app.include_router(relay_router)
    return app


app = create_app()
