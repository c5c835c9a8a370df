"""Protocol repository (the in-memory version is all a game room needs; a database could implement the same methods)"""

from typing import Protocol
from uuid import UUID

from src.core.models import GameModel


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def get_game(self, game_id: UUID) -> GameModel | None:
        """Get game by ID, if record exists."""
        ...

    def create_game(self, game: GameModel) -> tuple[GameModel, UUID]:
        """Store new game and return the stored data + newly created game ID."""
        ...

    def update_game(self, game_id: UUID, game: GameModel) -> GameModel | None:
        """Replace the record of an existing game. None if there is no such game."""
        ...

    def delete_game(self, game_id: UUID) -> GameModel | None:
        """Remove a game's record and return it, if it existed."""
        ...

    def list_game_ids(self) -> list[UUID]:
        """IDs of all games currently stored."""
        ...
