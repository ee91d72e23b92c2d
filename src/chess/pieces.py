"""Occupancy of a single square"""

from dataclasses import dataclass
from typing import Optional, Self

from src.core.shared_types import Color, PieceKind


@dataclass(frozen=True)
class Square:
    """
    Either empty, or holding a piece of some kind and color.

    NOTE: kind names are case-insensitive ("Pawn" == "pawn"). The original spelling is kept for display.
    Emptiness is derived from the piece name being absent.
    """

    piece: str = ""
    color: Optional[Color] = None

    @classmethod
    def empty(cls) -> Self:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.piece

    @property
    def kind(self) -> str:
        return self.piece.lower()

    def is_kind(self, kind: str) -> bool:
        return not self.is_empty and self.kind == kind.lower()

    def is_friend_of(self, color: Color) -> bool:
        return not self.is_empty and self.color == color

    def is_enemy_of(self, color: Color) -> bool:
        return not self.is_empty and self.color != color

    def symbol(self) -> str:
        """Single character used when rendering: upper case for white, lower case for black"""
        if self.is_empty:
            return "."
        letter = "n" if self.kind == PieceKind.KNIGHT else self.kind[0]
        return letter.upper() if self.color == Color.WHITE else letter.lower()
