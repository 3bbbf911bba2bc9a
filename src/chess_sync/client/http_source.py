"""
HTTP client for the authoritative read side of a chess-sync server.
"""

import logging
from typing import Any, Optional

import requests

from chess_sync.api.models import MoveResponse, SessionResponse
from chess_sync.core.exceptions import GameNotFoundError
from chess_sync.core.models import MoveModel, SessionModel, normalize_code

logger = logging.getLogger(__name__)


class HttpSessionSource:
    """SessionSource talking to the /games endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def get_by_code(self, game_code: str) -> SessionModel:
        data = self._get(f"/games/{normalize_code(game_code)}")
        return SessionResponse.model_validate(data).to_model()

    def list_moves(self, game_code: str) -> list[MoveModel]:
        data = self._get(f"/games/{normalize_code(game_code)}/moves")
        return [MoveResponse.model_validate(item).to_model() for item in data]

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            logger.warning("Game not found: %s", url)
            raise GameNotFoundError(response.json().get("detail", f"Not found: {url}"))
        response.raise_for_status()
        return response.json()
