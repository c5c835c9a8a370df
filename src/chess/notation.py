"""
Algebraic move notation (SAN) and PGN movetext.

ex) e4, Nbd2, R1e2, Qh4xe1, exd6, e8=Q+, O-O-O, Qxf7#
"""

from typing import Optional

from src.chess.board import Board
from src.chess.moves import ExecutedMove, can_move_to
from src.chess.pieces import ABBREVIATIONS, Color, Piece, PieceType
from src.chess.square import Square

KING_SIDE_CASTLE = "O-O"
QUEEN_SIDE_CASTLE = "O-O-O"
CAPTURE_MARKER = "x"
CHECK_MARKER = "+"
CHECKMATE_MARKER = "#"

WHITE_WINS = "1-0"
BLACK_WINS = "0-1"
DRAW = "1/2-1/2"


def disambiguation(board: Board, piece: Piece, to_square: Square) -> str:
    """
    Extra hint needed when another piece of the same kind could go to the same square.
    ----

    Must be called BEFORE the move is made (afterwards the target square holds the moving piece).

    * By default the file of the departure square is enough (Nbd2)
    * if a rival stands on that same file, use the rank instead (R1e2)
    * and if a rival shares the rank as well, write the full square (Qh4e1)

    NOTE: Pawns never need it here. Their captures always mention the file they came from.
    """
    if piece.type == PieceType.PAWN:
        return ""

    rivals = [
        other
        for other in board.locate_pieces(piece.type, piece.color)
        if other is not piece and can_move_to(other, board, to_square)
    ]
    if not rivals:
        return ""

    from_square = piece.square
    if not any(other.square.file == from_square.file for other in rivals):
        return from_square.to_algebraic()[0]
    if not any(other.square.rank == from_square.rank for other in rivals):
        return from_square.to_algebraic()[1]
    return from_square.to_algebraic()


def check_suffix(board: Board, opponent: Color) -> str:
    """Must be called AFTER the move is made: did we just check (or mate) the opponent?"""
    if board.is_checkmate(opponent):
        return CHECKMATE_MARKER
    if board.is_king_in_check(opponent):
        return CHECK_MARKER
    return ""


def move_to_san(executed: ExecutedMove, hint: str = "", suffix: str = "") -> str:
    """
    Write a move in algebraic notation:
    [Piece][disambiguation]x?<destination>[=Promotion][+|#]
    """
    if executed.is_castling:
        castle = (
            KING_SIDE_CASTLE
            if executed.to_square.file > executed.from_square.file
            else QUEEN_SIDE_CASTLE
        )
        return f"{castle}{suffix}"

    notation = ABBREVIATIONS[executed.piece_type] + hint
    if executed.is_capture:
        if executed.piece_type == PieceType.PAWN:
            notation += executed.from_square.to_algebraic()[0]
        notation += CAPTURE_MARKER

    notation += executed.to_square.to_algebraic()
    if executed.is_promotion and executed.promoted_to is not None:
        notation += f"={ABBREVIATIONS[executed.promoted_to]}"
    return notation + suffix


def pgn_movetext(
    sans: list[str],
    result_token: Optional[str] = None,
    first_move_number: int = 1,
    black_moves_first: bool = False,
) -> str:
    """
    Number the moves in pairs (1. e4 e5 2. Nf3 ...), and close with the result once the game is decided.

    A game set up with black to move opens with the black move number: 12... Qd7 13. Nf3
    """
    parts: list[str] = []
    offset = 1 if black_moves_first else 0
    for ply, san in enumerate(sans, start=offset):
        move_number = first_move_number + ply // 2
        if ply % 2 == 0:
            parts.append(f"{move_number}.")
        elif ply == offset:
            parts.append(f"{move_number}...")
        parts.append(san)
    if result_token:
        parts.append(result_token)
    return " ".join(parts)
