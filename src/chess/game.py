"""
The Game class is the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating all the business logic required to play a turn:
whose turn it is, validating and committing moves, keeping the history, and deciding the status of the game.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional, Self

from src.chess.board import Board
from src.chess.castling import CASTLING_RULES, CastlingDirection
from src.chess.fen import STARTING_FEN, FENState
from src.chess.moves import ExecutedMove, Move, MoveError, parse_uci
from src.chess.notation import (
    BLACK_WINS,
    DRAW,
    WHITE_WINS,
    check_suffix,
    disambiguation,
    move_to_san,
    pgn_movetext,
)
from src.chess.pieces import (
    ABBREVIATION_TO_PIECE,
    FEN_TO_PIECE,
    Color,
    PieceType,
)
from src.chess.square import Square
from src.core.exceptions import GameStateError, MalformedCoordinateError

# 50 moves by each player, counted in half moves
FIFTY_MOVE_RULE_PLIES = 100
REPETITIONS_FOR_DRAW = 3


class GameStatus(StrEnum):
    ACTIVE = "active"
    CHECK = "check"
    # named after the side that delivered mate
    CHECKMATE_WHITE = "checkmate-white"
    CHECKMATE_BLACK = "checkmate-black"
    DRAW_STALEMATE = "draw-stalemate"
    DRAW_INSUFFICIENT_MATERIAL = "draw-insufficient-material"
    DRAW_REPETITION = "draw-repetition"
    DRAW_FIFTY_MOVE = "draw-fifty-move"

    @property
    def is_draw(self) -> bool:
        return self.value.startswith("draw")

    @property
    def is_terminal(self) -> bool:
        return self not in (GameStatus.ACTIVE, GameStatus.CHECK)


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a move request: either the committed move + new status, or the reason it was turned down."""

    success: bool
    move: Optional[Move] = None
    status: Optional[GameStatus] = None
    error: Optional[MoveError] = None

    @classmethod
    def accepted(cls, move: Move, status: GameStatus) -> Self:
        return cls(success=True, move=move, status=status)

    @classmethod
    def rejected(cls, error: MoveError) -> Self:
        return cls(success=False, error=error)


def parse_promotion(promote_to: PieceType | str | None) -> PieceType:
    """Accepts the piece type itself, its notation letter (Q, R, B, N) or its FEN letter. Defaults to a queen."""
    if promote_to is None:
        return PieceType.QUEEN
    if isinstance(promote_to, PieceType):
        return promote_to
    return ABBREVIATION_TO_PIECE.get(
        promote_to.upper(), FEN_TO_PIECE.get(promote_to.lower(), PieceType.QUEEN)
    )


def board_from_fen_state(state: FENState) -> Board:
    """
    Build the board described by a parsed FEN
    ----

    Castling rights are not stored separately: they follow from whether the king and rook involved have moved.
    So first mark all kings and rooks as moved, then 'unmove' those a castling right still needs.
    """
    board = Board.from_fen(state.position)
    for piece in board.pieces():
        if piece.type in (PieceType.KING, PieceType.ROOK):
            piece.has_moved = True

    for direction, has_right in state.castling_rights.items():
        if not has_right:
            continue
        squares = CASTLING_RULES[direction]
        king = board.piece_at(squares.king_from)
        rook = board.piece_at(squares.rook_from)
        if king is None or king.type != PieceType.KING or king.color != direction.color:
            continue
        if rook is None or rook.type != PieceType.ROOK or rook.color != direction.color:
            continue
        king.has_moved = False
        rook.has_moved = False

    board.en_passant_target = state.en_passant_square
    return board


def castling_rights(board: Board) -> dict[CastlingDirection, bool]:
    """Derive the castling rights from the board: king and rook still untouched on their starting squares."""
    rights: dict[CastlingDirection, bool] = {}
    for direction, squares in CASTLING_RULES.items():
        king = board.piece_at(squares.king_from)
        rook = board.piece_at(squares.rook_from)
        rights[direction] = (
            king is not None
            and king.type == PieceType.KING
            and king.color == direction.color
            and not king.has_moved
            and rook is not None
            and rook.type == PieceType.ROOK
            and rook.color == direction.color
            and not rook.has_moved
        )
    return rights


@dataclass
class Game:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    board: Board
    current_turn: Color = Color.WHITE
    moves: list[Move] = field(default_factory=list)
    position_history: list[str] = field(default_factory=list)  # position signatures
    half_move_clock: int = 0
    full_move_number: int = 1
    status: GameStatus = GameStatus.ACTIVE
    initial_fen: str = STARTING_FEN

    @classmethod
    def new_game(cls) -> Self:
        """A game in the standard starting position"""
        return cls.from_fen(STARTING_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> Self:
        """Start a game from any position. Raises MalformedFENError if the FEN can't be parsed."""
        state = FENState.from_fen(fen)
        board = board_from_fen_state(state)
        game = cls(
            board=board,
            current_turn=state.color_to_move,
            position_history=[board.position_signature()],
            half_move_clock=state.half_move_clock,
            full_move_number=state.num_turns,
            initial_fen=fen.strip(),
        )
        game.update_status()
        return game

    @classmethod
    def from_uci_moves(cls, starting_fen: str, moves_uci: list[str]) -> Self:
        """Rebuild a game by replaying the stored moves on top of its starting position."""
        game = cls.from_fen(starting_fen)
        for uci in moves_uci:
            from_square, to_square, promote_to = parse_uci(uci)
            result = game.make_move(from_square, to_square, promote_to)
            if not result.success:
                raise GameStateError(
                    f"Cannot replay stored move {uci!r}: {result.error}"
                )
        return game

    # --- MAKING MOVES ---
    def make_move(
        self,
        from_square: Square | str,
        to_square: Square | str,
        promote_to: PieceType | str | None = PieceType.QUEEN,
        as_color: Optional[Color] = None,
    ) -> MoveResult:
        """
        Attempt to make a move
        -----

        1. read the squares (either Square objects or names like 'e2')
        2. is it your turn? (a piece of the side to move must stand on the from square.
           If `as_color` is given, that side must be the one to move)
        3. is the move legal? (movement rules, castling safety, not leaving your own king in check)
        4. update the board
        5. update the counters, the history of positions and the list of moves
        6. update game status

        NOTE: The game does not stop you from moving after the game has ended. That is up to the caller.
        """
        try:
            from_sq = Square.parse(from_square)
            to_sq = Square.parse(to_square)
        except MalformedCoordinateError:
            return MoveResult.rejected(MoveError.MALFORMED_COORDINATE)

        if as_color is not None and as_color != self.current_turn:
            return MoveResult.rejected(MoveError.WRONG_TURN)

        piece = self.board.piece_at(from_sq)
        if piece is None or piece.color != self.current_turn:
            return MoveResult.rejected(MoveError.WRONG_TURN)

        promotion = parse_promotion(promote_to)
        error = self.board.validate_move(from_sq, to_sq, promotion)
        if error is not None:
            return MoveResult.rejected(error)

        # ambiguity is a question about the board before the move
        hint = disambiguation(self.board, piece, to_sq)

        executed = self.board.execute_move(from_sq, to_sq, promotion)
        # for the typechecker: validate_move already made sure this succeeds
        assert isinstance(executed, ExecutedMove)

        # NOTE: notation is written while the turn still shows the player who moved
        notation = move_to_san(
            executed, hint, check_suffix(self.board, self.current_turn.opponent)
        )
        move = Move.from_executed(executed, notation)

        self.position_history.append(self.board.position_signature())
        self.moves.append(move)
        self._update_counters(executed)
        self.update_status()
        return MoveResult.accepted(move, self.status)

    def undo_last_move(self) -> bool:
        """
        Take back the last move
        ----

        Rather than reverting the move (restoring captured pieces, castling rights, en passant squares, ...),
        start over from the initial position and replay all the remaining moves.
        Returns False if there is nothing to undo.
        """
        if not self.moves:
            return False

        self.moves.pop()
        self.position_history.pop()

        state = FENState.from_fen(self.initial_fen)
        self.board = board_from_fen_state(state)
        self.current_turn = state.color_to_move
        self.half_move_clock = state.half_move_clock
        self.full_move_number = state.num_turns

        for move in self.moves:
            executed = self.board.execute_move(
                move.from_square,
                move.to_square,
                move.promoted_to or PieceType.QUEEN,
            )
            assert isinstance(executed, ExecutedMove)
            self._update_counters(executed)

        self.update_status()
        return True

    def reset(self) -> None:
        """Back to the position the game started from, with an empty history."""
        fresh = type(self).from_fen(self.initial_fen)
        self.board = fresh.board
        self.current_turn = fresh.current_turn
        self.moves = fresh.moves
        self.position_history = fresh.position_history
        self.half_move_clock = fresh.half_move_clock
        self.full_move_number = fresh.full_move_number
        self.status = fresh.status

    # --- STATUS ---
    def update_status(self) -> None:
        """
        Performs checks to see if game has ended and changes status accordingly.
        ----

        NOTE the turn has already passed on: we look at the position from the perspective of the player that has to move next.
        The order of the checks matters: mate and stalemate first, then the draw rules, then a plain check.
        """
        color = self.current_turn
        in_check = self.board.is_king_in_check(color)
        has_moves = self.board.has_legal_moves(color)

        if in_check and not has_moves:
            # the player to move got mated, so the opponent delivered it
            self.status = (
                GameStatus.CHECKMATE_BLACK
                if color == Color.WHITE
                else GameStatus.CHECKMATE_WHITE
            )
        elif not has_moves:
            self.status = GameStatus.DRAW_STALEMATE
        elif self.board.is_insufficient_material():
            self.status = GameStatus.DRAW_INSUFFICIENT_MATERIAL
        elif self._is_three_fold_repetition():
            self.status = GameStatus.DRAW_REPETITION
        elif self.half_move_clock >= FIFTY_MOVE_RULE_PLIES:
            self.status = GameStatus.DRAW_FIFTY_MOVE
        elif in_check:
            self.status = GameStatus.CHECK
        else:
            self.status = GameStatus.ACTIVE

    @property
    def is_over(self) -> bool:
        return self.status.is_terminal

    @property
    def winner(self) -> Optional[Color]:
        """Only a checkmate has a winner"""
        if self.status == GameStatus.CHECKMATE_WHITE:
            return Color.WHITE
        if self.status == GameStatus.CHECKMATE_BLACK:
            return Color.BLACK
        return None

    # --- FEN ---
    def get_fen(self) -> str:
        state = FENState(
            position=self.board.to_fen(),
            color_to_move=self.current_turn,
            castling_rights=castling_rights(self.board),
            en_passant_square=self.board.en_passant_target,
            half_move_clock=self.half_move_clock,
            num_turns=self.full_move_number,
        )
        return state.to_fen()

    def load_fen(self, fen: str) -> None:
        """
        Replace the whole game with the position in the FEN string (the move history starts over).
        Raises MalformedFENError, in which case the game is left exactly as it was.
        """
        loaded = type(self).from_fen(fen)
        self.board = loaded.board
        self.current_turn = loaded.current_turn
        self.moves = loaded.moves
        self.position_history = loaded.position_history
        self.half_move_clock = loaded.half_move_clock
        self.full_move_number = loaded.full_move_number
        self.status = loaded.status
        self.initial_fen = loaded.initial_fen

    # --- HISTORY / NOTATION ---
    def move_notations(self) -> list[str]:
        return [move.notation for move in self.moves]

    def moves_uci(self) -> list[str]:
        return [move.to_uci() for move in self.moves]

    def pgn_move_text(self) -> str:
        """ex) 1. f3 e5 2. g4 Qh4# 0-1"""
        start = FENState.from_fen(self.initial_fen)
        return pgn_movetext(
            self.move_notations(),
            self._result_token(),
            first_move_number=start.num_turns,
            black_moves_first=start.color_to_move == Color.BLACK,
        )

    def _result_token(self) -> Optional[str]:
        if self.status == GameStatus.CHECKMATE_WHITE:
            return WHITE_WINS
        if self.status == GameStatus.CHECKMATE_BLACK:
            return BLACK_WINS
        if self.status.is_draw:
            return DRAW
        return None

    def captured_pieces(self) -> dict[Color, list[PieceType]]:
        """The pieces each side has taken from the opponent, in the order they were taken"""
        captured: dict[Color, list[PieceType]] = {color: [] for color in Color}
        for move in self.moves:
            if move.captured_type is not None:
                captured[move.color].append(move.captured_type)
        return captured

    def legal_moves(self, color: Optional[Color] = None) -> dict[str, list[str]]:
        """Legal moves (by default for the side to move) by square name. Meant for collaborators like a UI."""
        moves = self.board.legal_moves(color or self.current_turn)
        return {
            from_square.to_algebraic(): [target.to_algebraic() for target in targets]
            for from_square, targets in moves.items()
        }

    # -- PRIVATE HELPERS ---
    def _update_counters(self, executed: ExecutedMove) -> None:
        """Same bookkeeping for a new move and for a replayed one."""
        if executed.piece_type == PieceType.PAWN or executed.is_capture:
            self.half_move_clock = 0
        else:
            self.half_move_clock += 1

        if executed.color == Color.BLACK:
            self.full_move_number += 1

        self.current_turn = executed.color.opponent

    def _is_three_fold_repetition(self) -> bool:
        """Check if the current position occurs (at least) 3 times in the history"""
        current = self.board.position_signature()
        return self.position_history.count(current) >= REPETITIONS_FOR_DRAW
