"""
Custom exceptions.

Every error is recoverable at the turn boundary: the session catches GameError and reports the message.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.chess.portals import PortalVerdict


class GameError(Exception):
    """Top-level exception for everything raised by this package"""


class InvalidCommandError(GameError):
    """Input could not be interpreted as one of the known commands"""


class InvalidPositionError(GameError):
    """Coordinate is unparsable or lies outside of the board"""


class IllegalMoveError(GameError):
    """The move fails validation (wrong mover, blocked path, wrong geometry, ...)"""


class PortalRejectedError(IllegalMoveError):
    """A portal move was refused. The verdict tells why (cooldown or color restriction)."""

    def __init__(self, message: str, verdict: "PortalVerdict") -> None:
        super().__init__(message)
        self.verdict = verdict


class RestoreFailureError(GameError):
    """Undo could not restore the board. The move is put back on the history."""


class GameStateError(GameError):
    """Command does not make sense in the current state of the game"""


class ConfigError(GameError):
    """Configuration could not be read or is inconsistent"""
