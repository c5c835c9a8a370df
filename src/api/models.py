"""Requests and Response models"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from src.chess.fen import is_valid_fen
from src.chess.square import Square
from src.core.exceptions import InvalidRequestError, MalformedCoordinateError
from src.core.shared_types import Color, PromotionChoice, Status

PieceColor = str
PlayerName = str


# --- REQUEST MODELS ---
class CreateGameRequest(BaseModel):
    player_name: str
    color: Color = Color.WHITE
    starting_fen: Optional[str] = None

    @field_validator("starting_fen")
    @classmethod
    def validate_starting_fen(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value

        value = value.strip()
        if not is_valid_fen(value):
            raise InvalidRequestError(
                f"Cannot interpret starting_fen: {value!r} as a FEN string."
            )
        return value


class JoinGameRequest(BaseModel):
    game_id: UUID
    player_name: str


class GetGameRequest(BaseModel):
    game_id: UUID


class LegalMovesRequest(BaseModel):
    game_id: UUID
    player_name: str


class MoveRequest(BaseModel):
    game_id: UUID
    player_name: str
    from_square: str
    to_square: str
    promote_to: Optional[PromotionChoice] = None

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        try:
            Square.from_algebraic(value)
        except MalformedCoordinateError as exc:
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name."
            ) from exc
        return value.lower()


class UndoMoveRequest(BaseModel):
    game_id: UUID
    player_name: str


class RestartGameRequest(BaseModel):
    game_id: UUID
    player_name: str


class DeleteGameRequest(BaseModel):
    game_id: UUID


# --- RESPONSE MODELS ---
class GameResponse(BaseModel):
    game_id: UUID
    players: dict[PieceColor, PlayerName]
    status: Status
    game_status: str
    fen_state: str
    starting_state: str
    move_history: list[str]
    pgn: str


class MoveResponse(BaseModel):
    game_id: UUID
    success: bool
    error: Optional[str] = None
    notation: Optional[str] = None
    status: str
    fen: str


class LegalMovesResponse(BaseModel):
    game_id: UUID
    player_name: str
    color: Color
    legal_moves: dict[str, list[str]]
