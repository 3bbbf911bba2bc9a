"""HTTP surface of the Session Manager: one route per operation, errors translated to status codes."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from chess_sync.api.dependencies import get_session_manager
from chess_sync.api.models import (
    CreateGameRequest,
    ErrorResponse,
    JoinGameRequest,
    MoveRequest,
    MoveResponse,
    MoveResultResponse,
    ResignRequest,
    SessionResponse,
)
from chess_sync.core.exceptions import (
    GameError,
    GameFullError,
    GameInactiveError,
    GameNotFoundError,
    IllegalMoveError,
    InvalidRequestError,
    NotYourTurnError,
    RelayUnavailableError,
    TransientStoreConflictError,
)
from chess_sync.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["games"])

ERROR_STATUS_CODES: dict[type[GameError], int] = {
    GameNotFoundError: 404,
    GameFullError: 409,
    GameInactiveError: 409,
    NotYourTurnError: 409,
    IllegalMoveError: 422,
    InvalidRequestError: 422,
    TransientStoreConflictError: 503,
    RelayUnavailableError: 503,
}


def status_code_for(error: GameError) -> int:
    """Most specific registered status code along the exception's MRO."""
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 400


async def game_error_handler(request: Request, error: GameError) -> JSONResponse:
    status_code = status_code_for(error)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, error)
    body = ErrorResponse(error=type(error).__name__, detail=str(error))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("", response_model=SessionResponse, status_code=201)
def create_game(
    request: CreateGameRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = manager.create(request.color, request.player_id)
    return SessionResponse.from_model(session)


@router.get("/{game_code}", response_model=SessionResponse)
def get_game(
    game_code: str, manager: SessionManager = Depends(get_session_manager)
) -> SessionResponse:
    """
    Authoritative game state.
    ----
    Clients call this whenever the relay hints at a change, and in their polling loop when the relay is down.
    """
    return SessionResponse.from_model(manager.get_by_code(game_code))


@router.post("/{game_code}/join", response_model=SessionResponse)
def join_game(
    game_code: str,
    request: JoinGameRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return SessionResponse.from_model(manager.join(game_code, request.player_id))


@router.get("/{game_code}/moves", response_model=list[MoveResponse])
def list_moves(
    game_code: str, manager: SessionManager = Depends(get_session_manager)
) -> list[MoveResponse]:
    return [MoveResponse.from_model(move) for move in manager.list_moves(game_code)]


@router.post("/{game_code}/moves", response_model=MoveResultResponse, status_code=201)
def make_move(
    game_code: str,
    request: MoveRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> MoveResultResponse:
    result = manager.apply_move(game_code, request.to_candidate())
    return MoveResultResponse(
        session=SessionResponse.from_model(result.session),
        move=MoveResponse.from_model(result.move),
    )


@router.post("/{game_code}/resign", response_model=SessionResponse)
def resign(
    game_code: str,
    request: ResignRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return SessionResponse.from_model(manager.resign(game_code, request.color))


@router.post("/{game_code}/draw", response_model=SessionResponse)
def declare_draw(
    game_code: str, manager: SessionManager = Depends(get_session_manager)
) -> SessionResponse:
    return SessionResponse.from_model(manager.declare_draw(game_code))
