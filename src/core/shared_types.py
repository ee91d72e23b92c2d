"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    IN_PROGRESS = "in progress"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    QUIT = "quit"


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self == Color.WHITE else Color.WHITE

    @property
    def forward(self) -> int:
        """White moves UP the board (rank index increases), black moves DOWN"""
        return 1 if self == Color.WHITE else -1


# NOTE: piece kinds on the board are plain strings (configs may define custom kinds).
# These are the ones the rule engine knows how to move. StrEnum compares equal to the lower case string.
class PieceKind(StrEnum):
    PAWN = "pawn"
    KNIGHT = "knight"
    BISHOP = "bishop"
    ROOK = "rook"
    QUEEN = "queen"
    KING = "king"
    TELEPORTER = "teleporter"
