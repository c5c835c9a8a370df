"""Orchestration of communication from API models to business logic and persistence layers (and the reverse direction)."""

import threading
from typing import Optional
from uuid import UUID

import structlog

from src.api.models import (
    CreateGameRequest,
    DeleteGameRequest,
    GameResponse,
    GetGameRequest,
    JoinGameRequest,
    LegalMovesRequest,
    LegalMovesResponse,
    MoveRequest,
    MoveResponse,
    RestartGameRequest,
    UndoMoveRequest,
)
from src.chess.fen import STARTING_FEN
from src.chess.game import Game
from src.chess.pieces import Color as PieceColor
from src.core.config import get_settings
from src.core.exceptions import (
    GameStateError,
    MalformedFENError,
    NotYourTurnError,
    RepositoryError,
)
from src.core.logging_config import setup_logging
from src.core.models import GameModel
from src.core.shared_types import Color, Status
from src.db.memory_repository import InMemoryGameRepository
from src.db.repository import GameRepository

logger = structlog.get_logger(__name__)

PLAYERS_PER_GAME = 2


class ChessService:
    """
    Orchestration of layers for chess game.
    ----

    Plays the part of a game room: two players register for a colour each, moves are only accepted from the player on turn.
    Requests that change a game are serialised per game ID.
    """

    def __init__(self, repository: GameRepository) -> None:
        self.repo = repository
        self._locks: dict[UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -- Room logic ---
    def create_new_game(self, request: CreateGameRequest) -> GameResponse:
        """First player requested to create a new game."""
        starting_fen = request.starting_fen or STARTING_FEN
        try:
            game = Game.from_fen(starting_fen)
        except MalformedFENError:
            logger.debug("fen_rejected", fen=starting_fen)
            raise

        players = {str(request.color): request.player_name}
        model = self._to_model(game, players)

        stored_game, game_id = self.repo.create_game(model)
        logger.info(
            "game_created",
            game_id=str(game_id),
            player=request.player_name,
            color=str(request.color),
        )
        return self._create_game_response(game_id, stored_game, game)

    def join_game(self, request: JoinGameRequest) -> GameResponse:
        """Second player requested to join a game. They get the colour that is still free."""
        with self._lock_for(request.game_id):
            model = self._fetch_game(request.game_id)

            if len(model.registered_players) >= PLAYERS_PER_GAME:
                raise GameStateError(f"Game {request.game_id} already has two players.")
            if request.player_name in model.registered_players.values():
                raise GameStateError(
                    f"{request.player_name!r} is already registered for game {request.game_id}."
                )

            color = next(
                c for c in Color if str(c) not in model.registered_players
            )
            model.registered_players[str(color)] = request.player_name
            game = self._load_game(model)
            model.status = self._room_status(model.registered_players, game)
            self.repo.update_game(request.game_id, model)

        logger.info(
            "player_joined",
            game_id=str(request.game_id),
            player=request.player_name,
            color=str(color),
        )
        return self._create_game_response(request.game_id, model, game)

    def get_game_state(self, request: GetGameRequest) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used in "polling" loop by frontend to check when it is the player's turn for instance.
        """
        model = self._fetch_game(request.game_id)
        return self._create_game_response(
            request.game_id, model, self._load_game(model)
        )

    def legal_moves(self, request: LegalMovesRequest) -> LegalMovesResponse:
        """Legal moves for the player on turn, by square name."""
        model = self._fetch_game(request.game_id)
        color = self._color_of(model, request.player_name)
        game = self._game_on_turn(model, request.player_name)

        return LegalMovesResponse(
            game_id=request.game_id,
            player_name=request.player_name,
            color=color,
            legal_moves=game.legal_moves(PieceColor[color.name]),
        )

    def make_move(self, request: MoveRequest) -> MoveResponse:
        """
        Make a move attempt.
        ----

        Room problems (unknown game, no opponent yet, game over, not your turn) raise.
        A move the rules do not allow is answered with success=False and the reason.
        """
        with self._lock_for(request.game_id):
            model = self._fetch_game(request.game_id)
            game = self._game_on_turn(model, request.player_name)
            color = game.current_turn

            promote_to = request.promote_to or get_settings().default_promotion
            result = game.make_move(
                request.from_square, request.to_square, promote_to, as_color=color
            )

            if not result.success:
                logger.info(
                    "move_rejected",
                    game_id=str(request.game_id),
                    player=request.player_name,
                    move=f"{request.from_square}{request.to_square}",
                    reason=str(result.error),
                )
                return MoveResponse(
                    game_id=request.game_id,
                    success=False,
                    error=str(result.error),
                    status=str(game.status),
                    fen=game.get_fen(),
                )

            after_move = self._to_model(game, model.registered_players)
            self.repo.update_game(request.game_id, after_move)

        assert result.move is not None
        logger.info(
            "move_accepted",
            game_id=str(request.game_id),
            player=request.player_name,
            notation=result.move.notation,
            status=str(game.status),
        )
        return MoveResponse(
            game_id=request.game_id,
            success=True,
            notation=result.move.notation,
            status=str(game.status),
            fen=game.get_fen(),
        )

    def undo_move(self, request: UndoMoveRequest) -> GameResponse:
        """Take back the last move played in the game (by either player)."""
        with self._lock_for(request.game_id):
            model = self._fetch_game(request.game_id)
            self._color_of(model, request.player_name)
            game = self._load_game(model)

            if not game.undo_last_move():
                raise GameStateError("There is no move to undo.")

            after_undo = self._to_model(game, model.registered_players)
            self.repo.update_game(request.game_id, after_undo)

        logger.info(
            "move_undone",
            game_id=str(request.game_id),
            player=request.player_name,
            moves_left=len(after_undo.moves_uci),
        )
        return self._create_game_response(request.game_id, after_undo, game)

    def restart_game(self, request: RestartGameRequest) -> GameResponse:
        """Back to the starting position, keeping the players."""
        with self._lock_for(request.game_id):
            model = self._fetch_game(request.game_id)
            self._color_of(model, request.player_name)
            game = self._load_game(model)
            game.reset()

            restarted = self._to_model(game, model.registered_players)
            self.repo.update_game(request.game_id, restarted)

        logger.info(
            "game_restarted", game_id=str(request.game_id), player=request.player_name
        )
        return self._create_game_response(request.game_id, restarted, game)

    def list_games(self) -> list[UUID]:
        """IDs of all games in the repository."""
        return self.repo.list_game_ids()

    def delete_game(self, request: DeleteGameRequest) -> None:
        """Handle a request to delete a Game record."""
        with self._lock_for(request.game_id):
            removed = self.repo.delete_game(request.game_id)
        if removed is None:
            raise RepositoryError(f"Game with game_id={request.game_id} not found.")

        with self._locks_guard:
            self._locks.pop(request.game_id, None)
        logger.info("game_deleted", game_id=str(request.game_id))

    # -- Internal helpers --
    def _lock_for(self, game_id: UUID) -> threading.Lock:
        """The lock of an existing game. Raises RepositoryError for unknown games, so no lock is kept for them."""
        with self._locks_guard:
            lock = self._locks.get(game_id)
            if lock is None:
                self._fetch_game(game_id)
                lock = self._locks[game_id] = threading.Lock()
            return lock

    def _fetch_game(self, game_id: UUID) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.repo.get_game(game_id)
        if game_model is None:
            raise RepositoryError(f"Game with {game_id=} not found.")
        return game_model

    def _game_on_turn(self, model: GameModel, player_name: str) -> Game:
        """Only the player on turn of a game that is being played can ask for moves / make a move."""
        if model.status == Status.WAITING_FOR_PLAYERS:
            raise GameStateError("Cannot play before the opponent has joined.")
        if model.status == Status.FINISHED:
            raise GameStateError(f"The game is over ({model.game_status}).")

        color = PieceColor[self._color_of(model, player_name).name]
        game = self._load_game(model)
        if color != game.current_turn:
            raise NotYourTurnError(f"It is not {player_name}'s turn to move.")
        return game

    @staticmethod
    def _load_game(model: GameModel) -> Game:
        """Rebuild the domain object from the stored moves."""
        return Game.from_uci_moves(model.starting_fen, model.moves_uci)

    @staticmethod
    def _color_of(model: GameModel, player_name: str) -> Color:
        for color, name in model.registered_players.items():
            if name == player_name:
                return Color(color)
        raise NotYourTurnError(f"{player_name!r} does not play in this game.")

    @staticmethod
    def _room_status(players: dict[str, str], game: Game) -> Status:
        if game.is_over:
            return Status.FINISHED
        if len(players) < PLAYERS_PER_GAME:
            return Status.WAITING_FOR_PLAYERS
        return Status.IN_PROGRESS

    def _to_model(self, game: Game, players: dict[str, str]) -> GameModel:
        """Capture the state of the game (+ the room around it) in the transport model"""
        return GameModel(
            starting_fen=game.initial_fen,
            current_fen=game.get_fen(),
            moves_uci=game.moves_uci(),
            moves_san=game.move_notations(),
            registered_players=dict(players),
            status=self._room_status(players, game),
            game_status=str(game.status),
        )

    def _create_game_response(
        self, game_id: UUID, model: GameModel, game: Game
    ) -> GameResponse:
        """Convert info in GameModel (and the Game it was built from) to a GameResponse (for game with given ID.)"""
        return GameResponse(
            game_id=game_id,
            players=model.registered_players,
            status=Status(model.status),
            game_status=model.game_status,
            fen_state=model.current_fen,
            starting_state=model.starting_fen,
            move_history=model.moves_san,
            pgn=game.pgn_move_text(),
        )


def create_chess_service(repository: Optional[GameRepository] = None) -> ChessService:
    """Application start: configure logging, then wire the service to its repository (in memory unless one is given)."""
    setup_logging()
    service = ChessService(
        repository if repository is not None else InMemoryGameRepository()
    )
    logger.info("chess_service_started", repository=type(service.repo).__name__)
    return service
