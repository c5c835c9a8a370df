"""
A square on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass
from string import ascii_lowercase

from src.core.exceptions import MalformedCoordinateError

# Chess board is always 8x8. Just in case we want to try some funky stuff, make it adjustable
BOARD_DIMENSIONS = (8, 8)

FILE_NAMES = ascii_lowercase[: BOARD_DIMENSIONS[0]]
RANK_NAMES = "".join(str(rank) for rank in range(1, BOARD_DIMENSIONS[1] + 1))


@dataclass(frozen=True)
class Square:
    """
    Files and ranks count from 1, so they line up with algebraic notation: a1 = (1, 1), h8 = (8, 8).

    Squares outside the board can be constructed (handy when stepping along a direction), check with `is_within_bounds()`.
    """

    file: int
    rank: int

    @classmethod
    def from_algebraic(cls, sq: str) -> Square:
        """Algebraic notation: 'a1' - 'h8' get converted to (1,1) - (8,8)"""
        if len(sq) != 2:
            raise MalformedCoordinateError(f"Cannot interpret {sq!r} as a square name.")

        file_char, rank_char = sq[0].lower(), sq[1]
        if file_char not in FILE_NAMES or rank_char not in RANK_NAMES:
            raise MalformedCoordinateError(f"Cannot interpret {sq!r} as a square name.")

        file = ord(file_char) - ord("a") + 1
        rank = int(rank_char)
        return cls(file, rank)

    @classmethod
    def parse(cls, value: Square | str) -> Square:
        """Callers may hand us either a Square or its name."""
        if isinstance(value, Square):
            if not value.is_within_bounds():
                raise MalformedCoordinateError(f"{value} is not on the board.")
            return value
        return cls.from_algebraic(value)

    def to_algebraic(self) -> str:
        return f"{chr(self.file + ord('a') - 1)}{self.rank}"

    def is_within_bounds(self) -> bool:
        return (1 <= self.file <= BOARD_DIMENSIONS[0]) and (
            1 <= self.rank <= BOARD_DIMENSIONS[1]
        )

    def offset(self, df: int, dr: int) -> Square:
        return Square(self.file + df, self.rank + dr)

    @property
    def parity(self) -> int:
        """Squares with equal parity share the same color on the board."""
        return (self.file + self.rank) % 2

    def __str__(self) -> str:
        return self.to_algebraic()


def all_squares() -> list[Square]:
    return [
        Square(file, rank)
        for rank in range(1, BOARD_DIMENSIONS[1] + 1)
        for file in range(1, BOARD_DIMENSIONS[0] + 1)
    ]
