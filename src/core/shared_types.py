"""
Type definitions used across layers (API models, service, transport model)
"""

from enum import StrEnum


class Status(StrEnum):
    """Status of a game room. The chess-specific outcome is tracked separately by the Game (see GameStatus)."""

    WAITING_FOR_PLAYERS = "waiting for players"
    IN_PROGRESS = "in progress"
    FINISHED = "finished"


# --- Color and PieceType mirror the enums in src/chess/pieces.py, but with string values that are safe to send over the wire.
# --- NOTE Same names are used on purpose; the imports show which version is used in what part of the code


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"


class PromotionChoice(StrEnum):
    """The pieces a pawn may promote into, using their notation letters."""

    QUEEN = "Q"
    ROOK = "R"
    BISHOP = "B"
    KNIGHT = "N"
