"""
Geometry/Base movement and capturing/attacking rules

Key idea: Use strategy pattern to define the movement predicate for each piece type:
"Ignoring the safety of my own king, could this piece go to that square?"

Legality (not leaving your own king in check, castling through attacked squares) is checked later by the Board.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional, Protocol, Self

from src.chess.castling import rook_squares_for
from src.chess.pieces import (
    FEN_TO_PIECE,
    PIECE_TO_FEN,
    Color,
    Piece,
    PieceType,
)
from src.chess.square import BOARD_DIMENSIONS, Square


class Board(Protocol):
    """Just the parts the movement rules need"""

    en_passant_target: Optional[Square]

    def piece_at(self, square: Square) -> Optional[Piece]: ...


Vector = tuple[int, int]

KNIGHT_DELTAS: list[Vector] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]


class MoveError(StrEnum):
    """Reasons a move request gets turned down. Reported as part of a result, never raised."""

    WRONG_TURN = "wrong turn"
    ILLEGAL_SHAPE = "illegal shape"
    SELF_CHECK = "self check"
    NO_PIECE_AT_SOURCE = "no piece at source"
    MALFORMED_COORDINATE = "malformed coordinate"


@dataclass(frozen=True)
class ExecutedMove:
    """What the Board did while executing a move. Enough to write the notation and the Move record without looking again."""

    piece_type: PieceType
    color: Color
    from_square: Square
    to_square: Square
    captured_type: Optional[PieceType] = None
    is_en_passant: bool = False
    is_promotion: bool = False
    promoted_to: Optional[PieceType] = None
    is_castling: bool = False
    en_passant_target: Optional[Square] = None

    @property
    def is_capture(self) -> bool:
        return self.captured_type is not None


@dataclass(frozen=True)
class Move:
    """A committed move, as stored in the game history"""

    piece_type: PieceType
    color: Color
    from_square: Square
    to_square: Square
    notation: str
    captured_type: Optional[PieceType] = None
    is_promotion: bool = False
    promoted_to: Optional[PieceType] = None
    is_castling: bool = False
    is_en_passant: bool = False

    @classmethod
    def from_executed(cls, executed: ExecutedMove, notation: str) -> Self:
        return cls(
            piece_type=executed.piece_type,
            color=executed.color,
            from_square=executed.from_square,
            to_square=executed.to_square,
            notation=notation,
            captured_type=executed.captured_type,
            is_promotion=executed.is_promotion,
            promoted_to=executed.promoted_to,
            is_castling=executed.is_castling,
            is_en_passant=executed.is_en_passant,
        )

    def to_uci(self) -> str:
        """
        Universal Chess Interface:
        ---
        One of the standard chess notations for moves: <from><to>[promotion]

        examples:
        * "e2e4": move the piece that was on e2 to e4
        * "e7e8q" : (pawn) moves from e7 to e8 and promotes to a queen (the q)
        """
        piece_char = PIECE_TO_FEN[self.promoted_to] if self.promoted_to else ""
        return f"{self.from_square.to_algebraic()}{self.to_square.to_algebraic()}{piece_char}"


def parse_uci(uci: str) -> tuple[Square, Square, Optional[PieceType]]:
    """Inverse of `Move.to_uci()`: split into the from square, the to square and (optionally) the piece to promote into."""
    from_square = Square.from_algebraic(uci[:2])
    to_square = Square.from_algebraic(uci[2:4])
    promote_to = FEN_TO_PIECE[uci[4].lower()] if len(uci) == 5 else None
    return from_square, to_square, promote_to


# --- GEOMETRY HELPERS ---
def forward_direction(color: Color) -> int:
    """White moves UP the board, black moves DOWN"""
    return 1 if color == Color.WHITE else -1


def pawn_starting_rank(color: Color) -> int:
    return 2 if color == Color.WHITE else BOARD_DIMENSIONS[1] - 1


def promotion_rank(color: Color) -> int:
    return BOARD_DIMENSIONS[1] if color == Color.WHITE else 1


def en_passant_capture_rank(color: Color) -> int:
    """The rank a pawn of this colour lands on when taking en passant"""
    return BOARD_DIMENSIONS[1] - 2 if color == Color.WHITE else 3


def squares_between(from_square: Square, to_square: Square) -> list[Square]:
    """
    The squares strictly in between two squares on the same rank, file or diagonal.

    Endpoints are excluded. Returns an empty list for squares that do not share a line.
    """
    df = to_square.file - from_square.file
    dr = to_square.rank - from_square.rank
    if not (df == 0 or dr == 0 or abs(df) == abs(dr)):
        return []

    step_file = (df > 0) - (df < 0)
    step_rank = (dr > 0) - (dr < 0)
    squares: list[Square] = []
    square = from_square.offset(step_file, step_rank)
    while square != to_square:
        squares.append(square)
        square = square.offset(step_file, step_rank)
    return squares


def is_path_clear(board: Board, from_square: Square, to_square: Square) -> bool:
    """Line of sight: nothing stands in between the two squares"""
    return all(
        board.piece_at(square) is None
        for square in squares_between(from_square, to_square)
    )


# --- MOVEMENT RULES ---
def pawn_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """
    A pawn:
    - moves by a single square forward (onto an empty square).
    - It can move by two in their first move (so when on their starting rank), if both squares are empty
    - takes diagonally, either an enemy piece or on the en passant square
    """
    direction = forward_direction(piece.color)
    df = target.file - piece.square.file
    dr = target.rank - piece.square.rank

    if df == 0 and dr == direction:
        return board.piece_at(target) is None

    if (
        df == 0
        and dr == 2 * direction
        and piece.square.rank == pawn_starting_rank(piece.color)
    ):
        skipped = piece.square.offset(0, direction)
        return board.piece_at(skipped) is None and board.piece_at(target) is None

    if abs(df) == 1 and dr == direction:
        occupant = board.piece_at(target)
        if occupant is not None and occupant.color != piece.color:
            return True
        return (
            board.en_passant_target is not None
            and target == board.en_passant_target
            and target.rank == en_passant_capture_rank(piece.color)
        )

    return False


def knight_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """Knights always move such that |delta_rank| + |delta_file| = 3 (and jump over everything)"""
    delta = (target.file - piece.square.file, target.rank - piece.square.rank)
    return delta in KNIGHT_DELTAS


def bishop_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """Bishops move diagonally: |delta_rank| = |delta_file|"""
    df = abs(target.file - piece.square.file)
    dr = abs(target.rank - piece.square.rank)
    return df == dr and is_path_clear(board, piece.square, target)


def rook_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """Rooks move either horizontally or vertically"""
    same_line = (
        target.file == piece.square.file or target.rank == piece.square.rank
    )
    return same_line and is_path_clear(board, piece.square, target)


def queen_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """
    The Queen combines the rook moves (horizontal + vertical movements) and bishop moves (diagonal movement)
    """
    return bishop_can_reach(piece, board, target) or rook_can_reach(
        piece, board, target
    )


def king_can_reach(piece: Piece, board: Board, target: Square) -> bool:
    """
    The king can move by a single square at the time.

    Castling is modelled as a special king move of two files: Only the pieces/occupancy part is checked here.
    Whether the king would walk through (or into) an attack is the Board's business, otherwise checking for attacks would
    recurse into checking for attacks.
    """
    df = abs(target.file - piece.square.file)
    dr = abs(target.rank - piece.square.rank)
    if df <= 1 and dr <= 1:
        return True

    if piece.has_moved or dr != 0 or df != 2:
        return False

    rook_square, _ = rook_squares_for(piece.square, target)
    rook = board.piece_at(rook_square)
    if rook is None or rook.type != PieceType.ROOK or rook.color != piece.color:
        return False
    if rook.has_moved:
        return False
    return is_path_clear(board, piece.square, rook_square)


# -- STRATEGY PATTERN: MOVEMENT RULES ---
MovementRuleFn = Callable[[Piece, Board, Square], bool]
MOVEMENT_RULES: dict[PieceType, MovementRuleFn] = {
    PieceType.PAWN: pawn_can_reach,
    PieceType.KNIGHT: knight_can_reach,
    PieceType.BISHOP: bishop_can_reach,
    PieceType.ROOK: rook_can_reach,
    PieceType.QUEEN: queen_can_reach,
    PieceType.KING: king_can_reach,
}


def can_move_to(piece: Piece, board: Board, target: Square) -> bool:
    """
    Pseudo-legal move check
    ----

    Same for every piece, before the piece specific rule kicks in:
    * target must be on the board
    * target must not be the square the piece is standing on
    * target must not hold a piece of your own
    """
    if not target.is_within_bounds():
        return False
    if target == piece.square:
        return False
    occupant = board.piece_at(target)
    if occupant is not None and occupant.color == piece.color:
        return False
    return MOVEMENT_RULES[piece.type](piece, board, target)


# --- CAPTURING RULES / ATTACKING RULES ---
def pawn_attacks(piece: Piece, board: Board, square: Square) -> bool:
    """
    Pawns take diagonally
    ----

    NOTE: a pawn never attacks the square in front of it (it cannot capture by advancing),
    so the ordinary movement rule does not work here.
    """
    direction = forward_direction(piece.color)
    return (
        square.rank - piece.square.rank == direction
        and abs(square.file - piece.square.file) == 1
    )


def king_attacks(piece: Piece, board: Board, square: Square) -> bool:
    """
    The king can only attack adjacent squares.

    NOTE: never look at castling here. Castling eligibility depends on attacks, so that would recurse forever.
    """
    df = abs(square.file - piece.square.file)
    dr = abs(square.rank - piece.square.rank)
    return (df, dr) != (0, 0) and df <= 1 and dr <= 1


# --- STRATEGY PATTERN: ATTACKING RULES ---
AttackRuleFn = Callable[[Piece, Board, Square], bool]
ATTACK_RULES: dict[PieceType, AttackRuleFn] = {
    PieceType.PAWN: pawn_attacks,
    PieceType.KNIGHT: can_move_to,
    PieceType.BISHOP: can_move_to,
    PieceType.ROOK: can_move_to,
    PieceType.QUEEN: can_move_to,
    PieceType.KING: king_attacks,
}


def attacks(piece: Piece, board: Board, square: Square) -> bool:
    return ATTACK_RULES[piece.type](piece, board, square)
