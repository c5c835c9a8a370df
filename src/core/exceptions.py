"""
Custom exceptions shared by all layers.

NOTE: None of these derive from ValueError. A pydantic validator raising one of them propagates it as-is
instead of wrapping it into a ValidationError.
"""


class GameError(Exception):
    """Base class for everything that can go wrong while handling a chess game."""


# --- Malformed external input (fail fast) ---
class MalformedCoordinateError(GameError):
    """Text could not be interpreted as a square name like 'e4'."""


class MalformedFENError(GameError):
    """Text could not be interpreted as a FEN string (or its piece placement field)."""


# The name used by the service layer
InvalidFENError = MalformedFENError


# --- Service / room level ---
class GameStateError(GameError):
    """The request does not fit the current state of the game room (full, not started, ...)."""


class NotYourTurnError(GameError):
    """A player tried to act while it is the opponent's turn (or is not part of the game at all)."""


class RepositoryError(GameError):
    """Persistence layer could not find / store the requested record."""


class InvalidRequestError(GameError):
    """Incoming request data does not pass validation."""
