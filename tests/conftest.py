"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures required for testing multiple layers.
"""

from typing import Callable, Generator

import pytest
from loguru import logger

from src.chess.board import Board
from src.chess.portals import PortalConfig, PortalSystem
from src.chess.position import Position
from src.core.shared_types import Color

# "e1": ("king", Color.WHITE)
PieceMap = dict[str, tuple[str, Color]]
BoardFactory = Callable[..., Board]


@pytest.fixture
def make_board() -> BoardFactory:
    """Call the inner function with the pieces to place (by algebraic square) and optionally the board size"""

    def _create_board(pieces: PieceMap | None = None, size: int = 8) -> Board:
        placements = [
            (kind, color, Position.from_algebraic(square))
            for square, (kind, color) in (pieces or {}).items()
        ]
        return Board.from_placements(size, placements)

    return _create_board


@pytest.fixture
def no_portals() -> PortalSystem:
    return PortalSystem()


@pytest.fixture
def make_portal() -> Callable[..., PortalConfig]:
    """Convenience constructor so tests can define portals in a single line"""

    def _create_portal(
        portal_id: str,
        entry: str,
        exit: str,
        colors: tuple[Color, ...] = (Color.WHITE, Color.BLACK),
        cooldown: int = 2,
    ) -> PortalConfig:
        return PortalConfig(
            id=portal_id,
            entry=Position.from_algebraic(entry),
            exit=Position.from_algebraic(exit),
            allowed_colors=frozenset(colors),
            cooldown=cooldown,
        )

    return _create_portal


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Collect everything logged through loguru while the test runs"""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    try:
        yield messages
    finally:
        logger.remove(handler_id)
