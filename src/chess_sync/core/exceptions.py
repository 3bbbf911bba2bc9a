"""
Error taxonomy shared by all layers.

Validation errors (not found, full, inactive, wrong turn, illegal move) are terminal for the requested operation.
TransientStoreConflictError is raised only after the bounded retries of a conditioned write are exhausted.
"""


class GameError(Exception):
    """Top-level exception for anything the session subsystem refuses to do."""


class InvalidRequestError(GameError):
    """Request data could not be interpreted (bad square name, bad code, ...)."""


class GameNotFoundError(GameError):
    """No session exists for the requested game code."""


class GameFullError(GameError):
    """Both participant slots of the session are occupied."""


class GameInactiveError(GameError):
    """The session reached a terminal status and accepts no further changes."""


class NotYourTurnError(GameError):
    """The move belongs to the side that is not to move."""


class IllegalMoveError(GameError):
    """The rules oracle rejected the candidate move."""


class TransientStoreConflictError(GameError):
    """A conditioned write kept losing against concurrent writers. Safe to retry later."""


class CodeAllocationError(TransientStoreConflictError):
    """Could not find an unused game code within the allowed number of attempts."""


class RelayUnavailableError(GameError):
    """The relay cannot deliver notifications. Clients fall back to polling."""
