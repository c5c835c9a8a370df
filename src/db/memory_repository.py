"""Game rooms kept in a dictionary. Lives as long as the process does."""

from copy import deepcopy
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.core.config import get_settings
from src.core.exceptions import RepositoryError
from src.core.models import GameModel

logger = structlog.get_logger(__name__)


class InMemoryGameRepository:
    """
    Implements the GameRepository protocol on a plain dict.

    Records are copied on the way in and on the way out, so callers never share state with the stored record.
    """

    def __init__(self, max_games: Optional[int] = None) -> None:
        self._games: dict[UUID, GameModel] = {}
        self.max_games = max_games if max_games is not None else get_settings().max_games

    def get_game(self, game_id: UUID) -> GameModel | None:
        game = self._games.get(game_id)
        return deepcopy(game) if game is not None else None

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        if len(self._games) >= self.max_games:
            raise RepositoryError(
                f"Cannot open more than {self.max_games} games at the same time."
            )
        game_id = uuid4()
        self._games[game_id] = deepcopy(game)
        logger.debug("game_stored", game_id=str(game_id), total=len(self._games))
        return deepcopy(game), game_id

    def update_game(self, game_id: UUID, game: GameModel) -> GameModel | None:
        if game_id not in self._games:
            return None
        self._games[game_id] = deepcopy(game)
        return deepcopy(game)

    def delete_game(self, game_id: UUID) -> GameModel | None:
        removed = self._games.pop(game_id, None)
        if removed is not None:
            logger.debug("game_removed", game_id=str(game_id), total=len(self._games))
        return removed

    def list_game_ids(self) -> list[UUID]:
        return list(self._games)

    def clear(self) -> None:
        self._games.clear()
