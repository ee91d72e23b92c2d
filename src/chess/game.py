"""
The GameManager answers the questions that need the whole board: check, checkmate, stalemate.
It also applies validated moves to the live board and keeps the history needed to take them back.
"""

from typing import Iterator, Optional

from loguru import logger

from src.chess.board import Board
from src.chess.moves import (
    MoveRecord,
    castling_rook_squares,
    get_reachable_squares,
    is_castling_attempt,
    is_en_passant_move,
    is_promotion_move,
    is_valid_move,
    teleport_path_portals,
)
from src.chess.portals import PortalConfig, PortalSystem
from src.chess.position import Position
from src.core.exceptions import RestoreFailureError
from src.core.shared_types import Color, PieceKind

# Kings do not give check: a king standing next to the other king is not detected.
CHECKING_PIECES: tuple[str, ...] = (
    PieceKind.QUEEN,
    PieceKind.ROOK,
    PieceKind.BISHOP,
    PieceKind.KNIGHT,
    PieceKind.PAWN,
)


class GameManager:
    def __init__(self, board: Board, portal_system: PortalSystem) -> None:
        self.board = board
        self.portal_system = portal_system
        self.history: list[MoveRecord] = []

    # --- CHECKS FOR ENDING THE GAME ---
    def is_in_check(self, color: Color) -> bool:
        return self._is_in_check_on(self.board, color)

    def is_checkmate(self, color: Color) -> bool:
        """
        In check, and no move gets you out of it.

        plan (for every legal move of every piece of yours):
        1. Copy the board
        2. make the candidate move
        3. determine if king is (still) in check on the new board --> not? a saving move exists.
        """
        if not self.is_in_check(color):
            return False
        return not self._has_safe_move(color)

    def is_stalemate(self, color: Color) -> bool:
        """
        Not in check, but none of your pieces has a single legal destination.
        (A move that walks into check is not a legal destination: same test as for checkmate.)
        """
        if self.is_in_check(color):
            return False
        return not self._has_safe_move(color)

    # --- HISTORY ---
    def apply_move(
        self, start: Position, end: Position, promote_to: str = ""
    ) -> MoveRecord:
        """
        Make a move that already passed validation
        ----

        1. snapshot the move (captured piece, castling rook, portals crossed) on the board it was validated on
        2. tick the portal scheduler for the turn that is being completed
        3. update the board (moves decided by a portal are handed to the portal system)
        4. add the move to the history
        """
        record = self._create_record(self.board, start, end, promote_to)
        transit = self._portal_transit(self.board, start, end)

        self.portal_system.advance_cooldowns()

        if transit is not None:
            self._apply_side_effects(self.board, record)
            self.portal_system.handle_portal_move(start, end, self.board)
            self._promote(self.board, record)
        else:
            self._apply_to_board(self.board, record)
            for portal_id in record.portal_ids:
                self.portal_system.use(portal_id)

        self.history.append(record)
        logger.info(f"Move applied: {record}")
        return record

    def undo_move(self) -> MoveRecord | None:
        """
        Take back the last move
        ----

        * the moved piece goes back to its start square (as it was, so a promotion is undone as well)
        * the captured piece comes back, or the destination is cleared
        * the castling rook goes back to its corner

        NOTE: Portal cooldowns are NOT rolled back. Undo ticks the scheduler forward once, like a completed turn.
        """
        if not self.history:
            logger.info("No moves to undo.")
            return None

        record = self.history.pop()
        snapshot = self.board.duplicate()
        try:
            self._restore(record)
        except Exception as exc:
            self.board.squares = snapshot.squares
            self.history.append(record)
            logger.error(f"Error undoing move {record}: {exc}")
            raise RestoreFailureError(f"Could not undo {record}: {exc}") from exc

        logger.info(f"Move undone: {record.moved_piece} from {record.end} back to {record.start}")
        self.portal_system.advance_cooldowns()
        return record

    # -- PRIVATE HELPERS ---
    def _is_in_check_on(self, board: Board, color: Color) -> bool:
        """
        Find your king (first one found), then check if any opponent's piece could move onto its square.

        NOTE: no king on the board means you cannot be in check. Portals are not used to deliver check.
        """
        king_square = board.find_first(PieceKind.KING, color)
        if king_square is None:
            return False

        opponent = color.opponent
        for position, square in board.occupied():
            if square.color != opponent or square.kind not in CHECKING_PIECES:
                continue
            if self._threatens(square.piece, position, king_square, opponent, board):
                return True
        return False

    def _threatens(
        self, piece: str, position: Position, target: Position, color: Color, board: Board
    ) -> bool:
        """A portal pair would hand the decision to the portal system: for threats only the geometry counts."""
        if self.portal_system.is_portal_move(position, target):
            return target in get_reachable_squares(piece, position, color, board)
        return is_valid_move(piece, position, target, color, board, self.portal_system)

    def _has_safe_move(self, color: Color) -> bool:
        """Stops at the first move after which your king is not in check"""
        for start, end in self._legal_moves(color):
            board = self.board.duplicate()
            self._apply_to_board(board, self._create_record(board, start, end))
            if not self._is_in_check_on(board, color):
                return True
        return False

    def _legal_moves(self, color: Color) -> Iterator[tuple[Position, Position]]:
        """Generate every (start, end) pair that passes validation for the pieces of this color (on the live board)"""
        size = self.board.get_size()
        for start in self.board.locate_color(color):
            piece = self.board.get_square(start).piece
            for rank in range(size):
                for file in range(size):
                    end = Position(file, rank)
                    if end == start:
                        continue
                    if is_valid_move(piece, start, end, color, self.board, self.portal_system):
                        yield start, end

    def _create_record(
        self, board: Board, start: Position, end: Position, promote_to: str = ""
    ) -> MoveRecord:
        """Snapshot of the moving pieces before the updates are done."""
        mover = board.get_square(start)
        assert mover.color is not None, f"No piece on {start}"

        captured_at = end
        if mover.is_kind(PieceKind.PAWN) and is_en_passant_move(start, end, mover.color, board):
            captured_at = Position(end.file, start.rank)
        captured = board.get_square(captured_at)

        rook_from = rook_to = None
        if is_castling_attempt(mover.kind, start, end):
            rook_from, rook_to = castling_rook_squares(start, end, board.get_size())

        portal_ids: tuple[str, ...] = ()
        portal = self._portal_transit(board, start, end)
        if portal is not None:
            portal_ids = (portal.id,)
        elif mover.is_kind(PieceKind.TELEPORTER):
            crossed = teleport_path_portals(start, end, mover.color, board, self.portal_system)
            portal_ids = tuple(crossed or ())

        promoted_to = ""
        if promote_to and is_promotion_move(mover.kind, end, mover.color, board.get_size()):
            promoted_to = promote_to

        return MoveRecord(
            start=start,
            end=end,
            moved_piece=mover.piece,
            moved_color=mover.color,
            captured_piece=captured.piece,
            captured_color=captured.color,
            captured_at=captured_at if captured_at != end else None,
            rook_from=rook_from,
            rook_to=rook_to,
            promoted_to=promoted_to,
            portal_ids=portal_ids,
        )

    def _portal_transit(self, board: Board, start: Position, end: Position) -> Optional[PortalConfig]:
        """
        The portal that decides this move, if any.
        Castling, en passant and promotion are decided before the portals are consulted: those never use one.
        """
        mover = board.get_square(start)
        if mover.color is None or is_castling_attempt(mover.kind, start, end):
            return None
        if mover.is_kind(PieceKind.PAWN) and (
            is_en_passant_move(start, end, mover.color, board)
            or is_promotion_move(mover.kind, end, mover.color, board.get_size())
        ):
            return None
        return self.portal_system.find_portal(start, end)

    def _apply_to_board(self, board: Board, record: MoveRecord) -> None:
        """Board effects of a move only: no history, no portal cooldowns (used for speculative boards as well)"""
        self._apply_side_effects(board, record)
        board.relocate(record.start, record.end)
        self._promote(board, record)

    def _apply_side_effects(self, board: Board, record: MoveRecord) -> None:
        """Everything besides moving the piece itself: the pawn taken en passant, the rook when castling"""
        if record.captured_at is not None:
            board.clear(record.captured_at)
        if record.rook_from is not None and record.rook_to is not None:
            board.relocate(record.rook_from, record.rook_to)

    def _promote(self, board: Board, record: MoveRecord) -> None:
        if record.promoted_to:
            board.place_piece(record.promoted_to, record.moved_color, record.end)

    def _restore(self, record: MoveRecord) -> None:
        self.board.place_piece(record.moved_piece, record.moved_color, record.start)
        if record.captured_at is not None:
            self.board.clear(record.end)
        if record.is_capture:
            self.board.place_piece(
                record.captured_piece, record.captured_color, record.capture_square
            )
        else:
            self.board.clear(record.end)
        if record.rook_from is not None and record.rook_to is not None:
            self.board.relocate(record.rook_to, record.rook_from)
