"""The Game board owns the state of every square. Rules live elsewhere (moves.py, portals.py, game.py)"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Iterable, Iterator, Self

from src.chess.pieces import Square
from src.chess.position import Position
from src.core.exceptions import InvalidPositionError
from src.core.shared_types import Color

# (kind, color, square) as it comes out of the configuration
Placement = tuple[str, Color, Position]


@dataclass
class Board:
    size: int
    squares: dict[Position, Square]

    @classmethod
    def empty(cls, size: int) -> Self:
        squares = {
            Position(file, rank): Square.empty()
            for rank in range(size)
            for file in range(size)
        }
        return cls(size, squares)

    @classmethod
    def from_placements(cls, size: int, placements: Iterable[Placement]) -> Self:
        """Construct a board with the pieces listed in the configuration"""
        board = cls.empty(size)
        for kind, color, position in placements:
            board.place_piece(kind, color, position)
        return board

    # --- BOARD CAPABILITY ---
    def get_size(self) -> int:
        return self.size

    def in_bounds(self, position: Position) -> bool:
        return position.is_within_bounds(self.size)

    def get_square(self, position: Position) -> Square:
        self._assert_in_bounds(position)
        return self.squares[position]

    def place_piece(self, kind: str, color: Color | None, position: Position) -> None:
        """Put a piece on the square. An empty kind clears the square."""
        self._assert_in_bounds(position)
        self.squares[position] = Square(kind, color) if kind else Square.empty()

    def clear(self, position: Position) -> None:
        self.place_piece("", None, position)

    def duplicate(self) -> Self:
        """Independent copy for 'what-if' evaluations. Changing the copy never touches this board."""
        return deepcopy(self)

    # --- CONVENIENCE ---
    def relocate(self, start: Position, end: Position) -> None:
        """Move whatever stands on start to end (overwriting end), then clear start"""
        square = self.get_square(start)
        self.place_piece(square.piece, square.color, end)
        self.clear(start)

    def occupied(self) -> Iterator[tuple[Position, Square]]:
        """Scan rank by rank, file by file (a1, b1, ..., a2, ...)"""
        for rank in range(self.size):
            for file in range(self.size):
                position = Position(file, rank)
                square = self.squares[position]
                if not square.is_empty:
                    yield position, square

    def locate_color(self, color: Color) -> list[Position]:
        return [position for position, square in self.occupied() if square.color == color]

    def find_first(self, kind: str, color: Color) -> Position | None:
        return next(
            (
                position
                for position, square in self.occupied()
                if square.is_kind(kind) and square.color == color
            ),
            None,
        )

    def render(self) -> str:
        """Text diagram, top rank first, with file letters / rank numbers along the edges"""
        lines: list[str] = []
        for rank in range(self.size - 1, -1, -1):
            row = " ".join(
                self.squares[Position(file, rank)].symbol() for file in range(self.size)
            )
            lines.append(f"{rank + 1:>2} {row}")
        files = " ".join(chr(ord("a") + file) for file in range(self.size))
        lines.append(f"   {files}")
        return "\n".join(lines)

    def _assert_in_bounds(self, position: Position) -> None:
        if not self.in_bounds(position):
            raise InvalidPositionError(
                f"Square {position!r} is outside of the {self.size}x{self.size} board."
            )
