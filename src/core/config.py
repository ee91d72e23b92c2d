"""
Configuration of a game: board size, the pieces to place and the portals.

The file format is JSON. Squares are written in algebraic notation ("a1").
Everything is validated once, at startup. After that the core only sees parsed values (Board, PortalConfig).
"""

from pathlib import Path
from typing import Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from src.chess.board import Board, Placement
from src.chess.portals import PortalConfig
from src.chess.position import MAX_BOARD_SIZE, MIN_BOARD_SIZE, Position
from src.core.exceptions import ConfigError, InvalidPositionError
from src.core.shared_types import Color

DEFAULT_CONFIG_PATH = Path("data/chess_pieces.json")


def _check_square_name(value: str) -> str:
    try:
        Position.from_algebraic(value)
    except InvalidPositionError as exc:
        # pydantic only collects ValueErrors into a ValidationError
        raise ValueError(str(exc)) from exc
    return value.strip().lower()


class GameSettings(BaseModel):
    board_size: int = Field(default=8, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)


class PiecePlacement(BaseModel):
    kind: str = Field(min_length=1)
    color: Color
    positions: list[str]

    @field_validator("positions")
    @classmethod
    def validate_positions(cls, value: list[str]) -> list[str]:
        return [_check_square_name(square) for square in value]


class PortalDefinition(BaseModel):
    id: str = Field(min_length=1)
    entry: str
    exit: str
    allowed_colors: list[Color] = Field(default_factory=lambda: [Color.WHITE, Color.BLACK])
    cooldown: int = Field(default=0, ge=0)

    @field_validator(*["entry", "exit"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _check_square_name(value)

    def to_portal_config(self) -> PortalConfig:
        return PortalConfig(
            id=self.id,
            entry=Position.from_algebraic(self.entry),
            exit=Position.from_algebraic(self.exit),
            allowed_colors=frozenset(self.allowed_colors),
            cooldown=self.cooldown,
        )


class GameConfig(BaseModel):
    game_settings: GameSettings = Field(default_factory=GameSettings)
    pieces: list[PiecePlacement] = Field(default_factory=list)
    portals: list[PortalDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_consistency(self) -> Self:
        """
        Checks that need more than a single field
        ----

        * every square lies on the board
        * no two pieces share a square
        * portal ids are unique, and no portal leads back onto its own entry
        """
        size = self.game_settings.board_size
        occupied: set[Position] = set()
        for _, _, position in self.placements():
            if not position.is_within_bounds(size):
                raise ValueError(f"Piece placed outside of the {size}x{size} board: {position}")
            if position in occupied:
                raise ValueError(f"More than one piece placed on {position}")
            occupied.add(position)

        portal_ids = [portal.id for portal in self.portals]
        duplicates = sorted({pid for pid in portal_ids if portal_ids.count(pid) > 1})
        if duplicates:
            raise ValueError(f"Portal ids must be unique. Duplicates: {', '.join(duplicates)}")

        for portal in self.portal_configs():
            for end in (portal.entry, portal.exit):
                if not end.is_within_bounds(size):
                    raise ValueError(f"Portal {portal.id} lies outside of the board: {end}")
            if portal.entry == portal.exit:
                raise ValueError(f"Portal {portal.id} has the same entry and exit.")
        return self

    @property
    def board_size(self) -> int:
        return self.game_settings.board_size

    def placements(self) -> list[Placement]:
        return [
            (piece.kind, piece.color, Position.from_algebraic(square))
            for piece in self.pieces
            for square in piece.positions
        ]

    def portal_configs(self) -> list[PortalConfig]:
        return [portal.to_portal_config() for portal in self.portals]

    def build_board(self) -> Board:
        return Board.from_placements(self.board_size, self.placements())


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> GameConfig:
    """Read and validate a JSON configuration file"""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {str(path)!r}: {exc}") from exc

    try:
        return GameConfig.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {str(path)!r}:\n{exc}") from exc
