"""
Configuration for the chess-sync service.

- Settings are read from environment variables (prefix CHESS_SYNC_), falling back to defaults.
- Tests construct Settings(...) directly instead of touching the environment.
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Self


def _get(name: str, default: Any, cast: Callable[[str], Any] | None = None) -> Any:
    env = os.environ.get(name)
    if env is None:
        return default
    return cast(env) if cast else env


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Persistence
    database_url: str = "sqlite:///./chess_sync.db"
    database_echo: bool = False

    # Game codes
    code_length: int = 6
    code_attempts: int = 10

    # Conditioned writes (join / move / status changes)
    write_retries: int = 3

    # Relay
    relay_queue_size: int = 64

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Self:
        return cls(
            database_url=_get("CHESS_SYNC_DATABASE_URL", cls.database_url),
            database_echo=_get("CHESS_SYNC_DATABASE_ECHO", cls.database_echo, cast=_as_bool),
            code_length=_get("CHESS_SYNC_CODE_LENGTH", cls.code_length, cast=int),
            code_attempts=_get("CHESS_SYNC_CODE_ATTEMPTS", cls.code_attempts, cast=int),
            write_retries=_get("CHESS_SYNC_WRITE_RETRIES", cls.write_retries, cast=int),
            relay_queue_size=_get("CHESS_SYNC_RELAY_QUEUE_SIZE", cls.relay_queue_size, cast=int),
            log_level=_get("CHESS_SYNC_LOG_LEVEL", cls.log_level).upper(),
        )
