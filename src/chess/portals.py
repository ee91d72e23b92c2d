"""
Portal system
----

A portal is a fixed (entry -> exit) pair of squares. Moving a piece from the entry to the exit is a legal move
for the allowed colors, regardless of the piece's normal movement geometry.

After use, a portal goes on cooldown for `cooldown` turns. Recovery is scheduled through one global FIFO queue of
decrement tokens: using a portal enqueues `cooldown` tokens for it and every call to `advance_cooldowns()` consumes
exactly ONE token (so one portal recovers by one step per turn, in the order the portals were used).
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Optional, Protocol

from loguru import logger

from src.chess.pieces import Square
from src.chess.position import Position
from src.core.shared_types import Color


class Board(Protocol):
    """Just the parts the portal system needs"""

    def get_square(self, position: Position) -> Square: ...
    def relocate(self, start: Position, end: Position) -> None: ...


@dataclass(frozen=True)
class PortalConfig:
    """Configured once at startup. Only the cooldown counter (owned by PortalSystem) changes afterwards."""

    id: str
    entry: Position
    exit: Position
    allowed_colors: frozenset[Color]
    cooldown: int

    def connects(self, start: Position, end: Position) -> bool:
        """Portals are directional: exit -> entry is NOT the same portal"""
        return self.entry == start and self.exit == end


class PortalVerdict(Enum):
    """Why a portal move is (not) allowed. Collapsed to a bool by `validate_portal_move`."""

    ALLOWED = auto()
    NOT_A_PORTAL = auto()
    WRONG_PIECE = auto()
    ON_COOLDOWN = auto()
    COLOR_NOT_ALLOWED = auto()


class PortalSystem:
    """Owns the portal configurations, their cooldown counters and the queue of pending decrements."""

    def __init__(self, portals: Iterable[PortalConfig] = ()) -> None:
        self._portals: dict[str, PortalConfig] = {portal.id: portal for portal in portals}
        self._cooldowns: dict[str, int] = {portal_id: 0 for portal_id in self._portals}
        self._queue: deque[str] = deque()

    @property
    def portals(self) -> list[PortalConfig]:
        return list(self._portals.values())

    @property
    def pending_decrements(self) -> list[str]:
        """Portal ids in the order their decrement tokens will be consumed"""
        return list(self._queue)

    def remaining_cooldown(self, portal_id: str) -> int:
        return self._cooldowns[portal_id]

    def find_portal(self, start: Position, end: Position) -> Optional[PortalConfig]:
        return next(
            (portal for portal in self._portals.values() if portal.connects(start, end)),
            None,
        )

    def portals_from(self, entry: Position) -> list[PortalConfig]:
        return [portal for portal in self._portals.values() if portal.entry == entry]

    def is_portal_move(self, start: Position, end: Position) -> bool:
        return self.find_portal(start, end) is not None

    def is_open(self, portal: PortalConfig, color: Color) -> bool:
        """Ready (no cooldown) and usable by this color"""
        return self._cooldowns[portal.id] == 0 and color in portal.allowed_colors

    # --- VALIDATION ---
    def check_portal_move(
        self, piece: str, start: Position, end: Position, color: Color, board: Board
    ) -> PortalVerdict:
        """
        Detailed verdict for a portal move
        ----

        1. The mover must stand on the entry square, with the stated kind and color.
        2. The portal must not be on cooldown (blocks every color).
        3. The color must be in the portal's allowed colors.
        """
        portal = self.find_portal(start, end)
        if portal is None:
            return PortalVerdict.NOT_A_PORTAL

        square = board.get_square(start)
        if not (square.is_kind(piece) and square.color == color):
            return PortalVerdict.WRONG_PIECE

        if self._cooldowns[portal.id] > 0:
            logger.debug(
                f"Portal {portal.id} is on cooldown. Remaining turns: {self._cooldowns[portal.id]}"
            )
            return PortalVerdict.ON_COOLDOWN

        if color not in portal.allowed_colors:
            logger.debug(f"Portal {portal.id} cannot be used by {color} pieces.")
            return PortalVerdict.COLOR_NOT_ALLOWED

        return PortalVerdict.ALLOWED

    def validate_portal_move(
        self, piece: str, start: Position, end: Position, color: Color, board: Board
    ) -> bool:
        return self.check_portal_move(piece, start, end, color, board) == PortalVerdict.ALLOWED

    # --- SIDE EFFECTS ---
    def handle_portal_move(
        self, start: Position, end: Position, board: Board
    ) -> Optional[PortalConfig]:
        """
        Perform the (already validated!) portal move: relocate the piece and arm the cooldown.
        Returns the portal that was used, or None when nothing happened.
        """
        portal = self.find_portal(start, end)
        if portal is None or board.get_square(start).is_empty:
            return None
        board.relocate(start, end)
        self.use(portal.id)
        return portal

    def use(self, portal_id: str) -> None:
        """
        Set the counter to the full cooldown, and schedule one decrement token per turn of cooldown.

        NOTE: a portal that is still cooling down is not re-armed: its counter always equals its tokens in the queue.
        """
        if self._cooldowns[portal_id] > 0:
            logger.warning(
                f"Portal {portal_id} is still on cooldown ({self._cooldowns[portal_id]} turn(s)). Not re-armed."
            )
            return
        cooldown = self._portals[portal_id].cooldown
        self._cooldowns[portal_id] = cooldown
        self._queue.extend([portal_id] * cooldown)
        logger.info(f"Portal {portal_id} used. Cooldown: {cooldown} turn(s).")

    def advance_cooldowns(self) -> Optional[str]:
        """
        Consume ONE token from the front of the queue and decrement the counter of the portal owning it.
        Returns the id of the portal that was decremented (None if nothing was pending).
        """
        if not self._queue:
            return None

        portal_id = self._queue.popleft()
        if self._cooldowns[portal_id] > 0:
            self._cooldowns[portal_id] -= 1
            if self._cooldowns[portal_id] == 0:
                logger.info(f"Portal {portal_id} is now ready for use!")

        self._log_cooldown_status()
        return portal_id

    def _log_cooldown_status(self) -> None:
        cooling_down = {pid: turns for pid, turns in self._cooldowns.items() if turns > 0}
        if cooling_down:
            status = ", ".join(f"{pid}: {turns}" for pid, turns in cooling_down.items())
            logger.info(f"Portal cooldowns remaining (turns): {status}")
