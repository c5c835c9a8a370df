"""The Game board implements all rules that effect the `position` (in chess: the configuration of pieces on the board)"""

from dataclasses import dataclass, field
from typing import Optional, Self

from src.chess.castling import is_castling_move, rook_squares_for
from src.chess.fen import STARTING_POSITION, is_valid_position
from src.chess.moves import (
    ExecutedMove,
    MoveError,
    attacks,
    can_move_to,
    forward_direction,
    promotion_rank,
    squares_between,
)
from src.chess.pieces import PROMOTION_OPTIONS, Color, Piece, PieceType
from src.chess.square import BOARD_DIMENSIONS, Square, all_squares
from src.core.exceptions import MalformedFENError

NO_EN_PASSANT = "-"


@dataclass
class Board:
    """
    Holds the pieces that are still alive, indexed by the square they stand on (so at most one piece per square),
    plus the en passant target square left behind by the last move.
    """

    position: dict[Square, Piece] = field(default_factory=dict)
    en_passant_target: Optional[Square] = None

    # -- CREATION LOGIC ---
    @classmethod
    def from_fen(cls, fen_str: str) -> Self:
        """Construct a board using a given FEN string.

        That is, we supply the first part of the FEN string that denotes the board position
        ex. standard starting position:
        rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR
        means:
        * black pieces are on the 8th rank, starting with rook on a8, knight on b8, etc.
        * pawns cover 7th rank entirely
        * ranks 6 through 3 have 8 consecutive empty squares
        * rank 2 are the white pawns (capital letters)
        * 1st rank are the white pieces. Again, left-to-right reads a1-h1.
        """
        if not is_valid_position(fen_str):
            raise MalformedFENError(
                f"Cannot interpret {fen_str!r} as the piece placement of a FEN string."
            )

        position: dict[Square, Piece] = {}
        for rank_idx, fen_one_rank in enumerate(fen_str.split("/")):
            # FEN string is read from top rank (8th) to bottom rank (1st)
            rank = BOARD_DIMENSIONS[1] - rank_idx
            # ... but the first character is the a-file, so reads in normal direction
            file = 1
            for character in fen_one_rank:
                if character.isalpha():
                    # simple case: a letter directly denotes the piece that should be created
                    square = Square(file, rank)
                    position[square] = Piece.from_fen(character, square)
                    file += 1
                else:
                    # A number denotes the amount of empty squares after each other
                    file += int(character)
        return cls(position)

    @classmethod
    def starting_position(cls) -> Self:
        return cls.from_fen(STARTING_POSITION)

    def load_fen(self, fen_str: str) -> None:
        """Replace the pieces with the given placement. Leaves the board untouched if the string can't be parsed."""
        loaded = Board.from_fen(fen_str)
        self.position = loaded.position
        self.en_passant_target = None

    def to_fen(self) -> str:
        """Ranks are separated by slashes in FEN string."""
        return "/".join(
            self._rank_to_fen(rank) for rank in range(BOARD_DIMENSIONS[1], 0, -1)
        )

    def _rank_to_fen(self, rank: int) -> str:
        """FEN string of a single rank"""
        fen_characters: list[str] = []
        empty_count = 0
        for file in range(1, BOARD_DIMENSIONS[0] + 1):
            piece = self.piece_at(Square(file, rank))

            if piece is not None:
                if empty_count > 0:
                    fen_characters.append(str(empty_count))
                    empty_count = 0
                fen_characters.append(piece.to_fen())
            else:
                empty_count += 1

        # if the entire rank is empty, then we still place this number in the string
        if empty_count > 0:
            fen_characters.append(str(empty_count))
        return "".join(fen_characters)

    def clone(self) -> Self:
        """Independent copy: moving pieces around on the copy leaves this board alone."""
        return type(self)(
            {square: piece.clone() for square, piece in self.position.items()},
            self.en_passant_target,
        )

    # -- LOOKUPS ---
    def piece_at(self, square: Square) -> Optional[Piece]:
        return self.position.get(square)

    def pieces(self, color: Optional[Color] = None) -> list[Piece]:
        return [
            piece
            for piece in self.position.values()
            if color is None or piece.color == color
        ]

    def locate_pieces(self, piece_type: PieceType, color: Optional[Color] = None) -> list[Piece]:
        return [piece for piece in self.pieces(color) if piece.type == piece_type]

    def king(self, color: Color) -> Optional[Piece]:
        kings = self.locate_pieces(PieceType.KING, color)
        return kings[0] if kings else None

    def place_piece(self, piece: Piece) -> None:
        """Put a piece on the square it claims to stand on (replacing whatever was there)."""
        self.position[piece.square] = piece

    def remove_piece(self, square: Square) -> Optional[Piece]:
        return self.position.pop(square, None)

    # -- MAKING MOVES ---
    def execute_move(
        self,
        from_square: Square,
        to_square: Square,
        promote_to: PieceType = PieceType.QUEEN,
    ) -> ExecutedMove | MoveError:
        """
        Apply a pseudo-legal move
        ----

        The caller is responsible for checking that the move does not leave the own king in check.
        Nothing on the board changes when the move gets rejected.

        1. remove a piece captured on the target square
        2. en passant: remove the pawn that just passed the target square
        3. promotion: swap the pawn for a new piece, otherwise just relocate the moving piece
        4. castling: bring the rook over to the other side of the king
        5. set (or clear) the en passant target square for the next move
        """
        piece = self.piece_at(from_square)
        if piece is None:
            return MoveError.NO_PIECE_AT_SOURCE

        if not can_move_to(piece, self, to_square):
            return MoveError.ILLEGAL_SHAPE

        # 1: normal capture
        captured = self.remove_piece(to_square)
        captured_type = captured.type if captured else None

        # 2: en passant
        is_en_passant = False
        if self._is_en_passant_capture(piece, to_square):
            # The pawn taken stands one rank behind the target square (seen from the moving pawn)
            take_square = to_square.offset(0, -forward_direction(piece.color))
            taken = self.piece_at(take_square)
            if taken is not None and taken.color != piece.color:
                self.remove_piece(take_square)
                captured_type = taken.type
                is_en_passant = True

        # 3: promotion (or just a regular relocation)
        del self.position[from_square]
        is_promotion = (
            piece.type == PieceType.PAWN
            and to_square.rank == promotion_rank(piece.color)
        )
        promoted_to: Optional[PieceType] = None
        if is_promotion:
            promoted_to = promote_to if promote_to in PROMOTION_OPTIONS else PieceType.QUEEN
            self.place_piece(Piece(promoted_to, piece.color, to_square, has_moved=True))
        else:
            piece.move_to(to_square)
            self.place_piece(piece)

        # 4: castling
        is_castling = piece.type == PieceType.KING and is_castling_move(
            from_square, to_square
        )
        if is_castling:
            rook_from, rook_to = rook_squares_for(from_square, to_square)
            rook = self.remove_piece(rook_from)
            if rook is not None:
                rook.move_to(rook_to)
                self.place_piece(rook)

        # 5: en passant target square for the next move
        ranks_moved = abs(to_square.rank - from_square.rank)
        if piece.type == PieceType.PAWN and ranks_moved == 2:
            self.en_passant_target = from_square.offset(
                0, forward_direction(piece.color)
            )
        else:
            self.en_passant_target = None

        return ExecutedMove(
            piece_type=piece.type,
            color=piece.color,
            from_square=from_square,
            to_square=to_square,
            captured_type=captured_type,
            is_en_passant=is_en_passant,
            is_promotion=is_promotion,
            promoted_to=promoted_to,
            is_castling=is_castling,
            en_passant_target=self.en_passant_target,
        )

    def _is_en_passant_capture(self, piece: Piece, to_square: Square) -> bool:
        return (
            piece.type == PieceType.PAWN
            and self.en_passant_target is not None
            and to_square == self.en_passant_target
            and to_square.file != piece.square.file
        )

    # -- ATTACKS ---
    def is_square_attacked(self, square: Square, by_color: Color) -> bool:
        """Is any piece of `by_color` eyeing this square? Stops at the first attacker found."""
        return any(attacks(piece, self, square) for piece in self.pieces(by_color))

    def attackers_of(self, square: Square, by_color: Color) -> list[Piece]:
        """All pieces of `by_color` attacking the square"""
        return [piece for piece in self.pieces(by_color) if attacks(piece, self, square)]

    def is_king_in_check(self, color: Color) -> bool:
        """NOTE: without a king, there is nothing to be in check."""
        king = self.king(color)
        if king is None:
            return False
        return self.is_square_attacked(king.square, color.opponent)

    # -- LEGALITY ---
    def validate_move(
        self,
        from_square: Square,
        to_square: Square,
        promote_to: PieceType = PieceType.QUEEN,
    ) -> Optional[MoveError]:
        """
        Full legality check of a move. Returns None if the move is legal.
        ----

        1. There must be a piece to move
        2. The move must follow the movement rules of that piece
        3. Castling: cannot castle out of, through, or into check
        4. Make the move on a copy of the board: your own king must not be in check afterwards
        """
        piece = self.piece_at(from_square)
        if piece is None:
            return MoveError.NO_PIECE_AT_SOURCE

        if not can_move_to(piece, self, to_square):
            return MoveError.ILLEGAL_SHAPE

        if piece.type == PieceType.KING and is_castling_move(from_square, to_square):
            if not self._is_castling_path_safe(piece, to_square):
                return MoveError.SELF_CHECK

        simulation = self.clone()
        simulation.execute_move(from_square, to_square, promote_to)
        if simulation.is_king_in_check(piece.color):
            return MoveError.SELF_CHECK
        return None

    def _is_castling_path_safe(self, king: Piece, to_square: Square) -> bool:
        """The king may not stand on, cross, or land on an attacked square."""
        path = [king.square, *squares_between(king.square, to_square), to_square]
        opponent = king.color.opponent
        return not any(self.is_square_attacked(square, opponent) for square in path)

    def legal_moves_for(self, piece: Piece) -> list[Square]:
        """
        Squares this piece can legally move to
        ----

        Try every square on the board: keep those the piece can reach that do not leave its own king in check.
        """
        return [
            target
            for target in all_squares()
            if target != piece.square
            and self.validate_move(piece.square, target) is None
        ]

    def legal_moves(self, color: Color) -> dict[Square, list[Square]]:
        """Legal target squares per square of a piece that can move at all"""
        moves: dict[Square, list[Square]] = {}
        for piece in self.pieces(color):
            targets = self.legal_moves_for(piece)
            if targets:
                moves[piece.square] = targets
        return moves

    def has_legal_moves(self, color: Color) -> bool:
        for piece in self.pieces(color):
            for target in all_squares():
                if target == piece.square:
                    continue
                if self.validate_move(piece.square, target) is None:
                    return True
        return False

    # --- CHECKS FOR ENDING THE GAME ---
    def is_checkmate(self, color: Color) -> bool:
        return self.is_king_in_check(color) and not self.has_legal_moves(color)

    def is_stalemate(self, color: Color) -> bool:
        return not self.is_king_in_check(color) and not self.has_legal_moves(color)

    def is_insufficient_material(self) -> bool:
        """
        Only the simplest dead positions are recognized:
        * king vs king
        * king + bishop or king + knight vs king
        * king + bishop vs king + bishop, with both bishops on the same square color

        Everything else counts as enough material to mate.
        """
        pieces = self.pieces()
        if len(pieces) == 2:
            return True

        bishops = [piece for piece in pieces if piece.type == PieceType.BISHOP]
        knights = [piece for piece in pieces if piece.type == PieceType.KNIGHT]
        if len(pieces) == 3:
            return len(bishops) == 1 or len(knights) == 1

        if len(pieces) == 4 and len(bishops) == 2:
            first, second = bishops
            return (
                first.color != second.color
                and first.square.parity == second.square.parity
            )
        return False

    def position_signature(self) -> str:
        """
        Canonical description of the piece placement (+ en passant square), for detecting repeated positions.

        NOTE: castling rights and the side to move are not part of it.
        """
        ordered = sorted(
            self.pieces(),
            key=lambda piece: (piece.to_fen(), piece.square.rank, piece.square.file),
        )
        placement = "".join(
            f"{piece.to_fen()}{piece.square.to_algebraic()}" for piece in ordered
        )
        en_passant = (
            self.en_passant_target.to_algebraic()
            if self.en_passant_target is not None
            else NO_EN_PASSANT
        )
        return f"{placement};ep:{en_passant}"

    def count_material(self) -> dict[Color, int]:
        """Tally the points of material each player has on the board"""
        return {color: self._count_material_player(color) for color in Color}

    def _count_material_player(self, color: Color) -> int:
        """Tally the points of material for a specific player"""
        return sum(piece.points for piece in self.pieces(color))
