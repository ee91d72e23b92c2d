"""
A coordinate on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from string import ascii_lowercase

from src.core.exceptions import InvalidPositionError

# Board may be anything from 4x4 up to 26x26 (one letter per file)
MIN_BOARD_SIZE = 4
MAX_BOARD_SIZE = len(ascii_lowercase)

ALGEBRAIC_PATTERN = re.compile(r"^([a-zA-Z])(\d{1,2})$")

Vector = tuple[int, int]


@dataclass(frozen=True)
class Position:
    """Zero-based (file, rank). a1 == Position(0, 0)"""

    file: int
    rank: int

    @classmethod
    def from_algebraic(cls, sq: str) -> Position:
        """Algebraic notation: 'a1' - 'z26' get converted to (0,0) - (25,25)"""
        match = ALGEBRAIC_PATTERN.match(sq.strip())
        if match is None:
            raise InvalidPositionError(f"Cannot interpret {sq!r} as a square name.")
        letter, number = match.groups()
        return cls(ord(letter.lower()) - ord("a"), int(number) - 1)

    def to_algebraic(self) -> str:
        return f"{chr(self.file + ord('a'))}{self.rank + 1}"

    def is_within_bounds(self, board_size: int) -> bool:
        return (0 <= self.file < board_size) and (0 <= self.rank < board_size)

    def offset(self, vector: Vector) -> Position:
        df, dr = vector
        return Position(self.file + df, self.rank + dr)

    def __str__(self) -> str:
        return self.to_algebraic()
