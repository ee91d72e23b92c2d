"""
Geometry/Base movement rules + validation of a single move

Key idea: Use strategy pattern to define the reachable squares for each piece kind.

Whether a move leaves your own king in check is NOT decided here: that is up to the Game (checkmate / stalemate search).
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from loguru import logger

from src.chess.pieces import Square
from src.chess.portals import PortalSystem
from src.chess.position import Position, Vector
from src.core.shared_types import Color, PieceKind


class Board(Protocol):
    """Just the parts the movement strategies need"""

    def get_size(self) -> int: ...
    def in_bounds(self, position: Position) -> bool: ...
    def get_square(self, position: Position) -> Square: ...


@dataclass(frozen=True)
class MoveRecord:
    """
    Everything needed to take back a move that was applied to the board.

    `captured_piece` empty means the destination was empty (plain advance).
    `captured_at` is only different from `end` for en passant.
    """

    start: Position
    end: Position
    moved_piece: str
    moved_color: Color
    captured_piece: str = ""
    captured_color: Optional[Color] = None
    captured_at: Optional[Position] = None
    rook_from: Optional[Position] = None
    rook_to: Optional[Position] = None
    promoted_to: str = ""
    portal_ids: tuple[str, ...] = ()

    @property
    def is_capture(self) -> bool:
        return bool(self.captured_piece)

    @property
    def capture_square(self) -> Position:
        return self.captured_at if self.captured_at is not None else self.end

    def __str__(self) -> str:
        return f"{self.moved_color} {self.moved_piece} {self.start}->{self.end}"


ORTHOGONALS: list[Vector] = [(0, 1), (0, -1), (1, 0), (-1, 0)]
DIAGONALS: list[Vector] = [(1, 1), (1, -1), (-1, 1), (-1, -1)]
KNIGHT_JUMPS: list[Vector] = [
    (2, 1),
    (2, -1),
    (-2, 1),
    (-2, -1),
    (1, 2),
    (1, -2),
    (-1, 2),
    (-1, -2),
]


# --- RANKS / FILES THAT DEPEND ON THE BOARD SIZE (on 8x8 these are the classical ones) ---
def pawn_home_rank(color: Color, board_size: int) -> int:
    return 1 if color == Color.WHITE else board_size - 2


def back_rank(color: Color, board_size: int) -> int:
    """The rank a pawn of this color promotes on"""
    return board_size - 1 if color == Color.WHITE else 0


def en_passant_ranks(color: Color, board_size: int) -> tuple[int, int]:
    """(rank the capturing pawn stands on, rank it lands on). 8x8: white (4, 5), black (3, 2)"""
    if color == Color.WHITE:
        return board_size - 4, board_size - 3
    return 3, 2


def king_home(color: Color, board_size: int) -> Position:
    return Position(4, 0 if color == Color.WHITE else board_size - 1)


# --- MOVEMENT RULES ---
def raycasting_move(
    position: Position, color: Color, board: Board, directions: list[Vector]
) -> set[Position]:
    """
    Raycasting algorithm
    -----

    We define move directions and move along them until we hit another piece or
    the edge of the board. The first occupied square is only included if it holds an opponent's piece.
    """
    reachable: set[Position] = set()
    for direction in directions:
        target = position.offset(direction)
        while board.in_bounds(target):
            square = board.get_square(target)
            if not square.is_empty:
                if square.is_enemy_of(color):
                    reachable.add(target)
                break
            reachable.add(target)
            target = target.offset(direction)
    return reachable


def single_step_move(
    position: Position, color: Color, board: Board, deltas: list[Vector]
) -> set[Position]:
    """Raycasting is for sliding pieces. This is the equivalent for kings and knights that just jump once along a direction"""
    reachable: set[Position] = set()
    for delta in deltas:
        target = position.offset(delta)
        if board.in_bounds(target) and not board.get_square(target).is_friend_of(color):
            reachable.add(target)
    return reachable


def candidate_pawn_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """
    A pawn:
    - moves by a single square forward (onto an empty square only).
    - It can move by two from its home rank, if both squares in front of it are empty
    - takes diagonally (only if an opponent's piece is there)

    NOTE: En passant / promotion are validated separately
    """
    reachable: set[Position] = set()
    forward = color.forward

    one_step = position.offset((0, forward))
    if board.in_bounds(one_step) and board.get_square(one_step).is_empty:
        reachable.add(one_step)

        two_steps = position.offset((0, 2 * forward))
        on_home_rank = position.rank == pawn_home_rank(color, board.get_size())
        if on_home_rank and board.in_bounds(two_steps) and board.get_square(two_steps).is_empty:
            reachable.add(two_steps)

    for df in (-1, 1):
        target = position.offset((df, forward))
        if board.in_bounds(target) and board.get_square(target).is_enemy_of(color):
            reachable.add(target)
    return reachable


def candidate_knight_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """Knights always move such that |delta_rank| + |delta_file| = 3"""
    return single_step_move(position, color, board, KNIGHT_JUMPS)


def candidate_bishop_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """Bishops move diagonally: |delta_rank| = |delta_file|"""
    return raycasting_move(position, color, board, DIAGONALS)


def candidate_rook_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """Rooks move either horizontally or vertically"""
    return raycasting_move(position, color, board, ORTHOGONALS)


def candidate_queen_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """The Queen combines the rook moves and bishop moves"""
    return candidate_rook_moves(position, color, board) | candidate_bishop_moves(
        position, color, board
    )


def candidate_king_moves(position: Position, color: Color, board: Board) -> set[Position]:
    """
    The king can move by a single square at the time.

    Castling is modelled as a special king move (handled separately).
    """
    return single_step_move(position, color, board, ORTHOGONALS + DIAGONALS)


# -- STRATEGY PATTERN: MOVEMENT RULES ---
CandidateMovesFn = Callable[[Position, Color, Board], set[Position]]
MOVEMENT_RULES: dict[str, CandidateMovesFn] = {
    PieceKind.PAWN: candidate_pawn_moves,
    PieceKind.KNIGHT: candidate_knight_moves,
    PieceKind.BISHOP: candidate_bishop_moves,
    PieceKind.ROOK: candidate_rook_moves,
    PieceKind.QUEEN: candidate_queen_moves,
    PieceKind.KING: candidate_king_moves,
}


def get_reachable_squares(
    piece_kind: str, position: Position, color: Color, board: Board
) -> set[Position]:
    """
    Squares the piece could move to by its normal geometry (ignoring king safety).
    Kinds without a movement rule (custom kinds, the teleporter) cannot move by normal rules.
    """
    movement_rule = MOVEMENT_RULES.get(piece_kind.lower())
    if movement_rule is None:
        return set()
    return movement_rule(position, color, board)


# -- TELEPORTER: REACHABILITY THROUGH PORTALS ---
# child -> (parent, portal id used to get there or None for a normal step)
SearchTree = dict[Position, Optional[tuple[Position, Optional[str]]]]


def teleport_search(
    piece_kind: str,
    start: Position,
    color: Color,
    board: Board,
    portal_system: PortalSystem,
) -> SearchTree:
    """
    Breadth first search over the board graph
    ----

    * normal edges: the reachable squares of the piece kind from the current square.
    * portal edges (teleporter only): current square is the entry of an open portal --> edge to its exit.

    Only the final hop may land on an opponent's piece: occupied squares are visited but never expanded.
    Returns the search tree (start maps to None).
    """
    tree: SearchTree = {start: None}
    queue: deque[Position] = deque([start])
    can_teleport = piece_kind.lower() == PieceKind.TELEPORTER

    while queue:
        current = queue.popleft()
        edges: list[tuple[Position, Optional[str]]] = [
            (target, None)
            for target in get_reachable_squares(piece_kind, current, color, board)
        ]
        if can_teleport:
            edges.extend(
                (portal.exit, portal.id)
                for portal in portal_system.portals_from(current)
                if portal_system.is_open(portal, color)
            )

        for target, portal_id in edges:
            if target in tree or not board.in_bounds(target):
                continue
            square = board.get_square(target)
            if square.is_friend_of(color):
                continue
            tree[target] = (current, portal_id)
            if square.is_empty:
                queue.append(target)
    return tree


def teleporter_reachable_squares(
    start: Position, color: Color, board: Board, portal_system: PortalSystem
) -> set[Position]:
    tree = teleport_search(PieceKind.TELEPORTER, start, color, board, portal_system)
    return set(tree) - {start}


def teleport_path_portals(
    start: Position,
    end: Position,
    color: Color,
    board: Board,
    portal_system: PortalSystem,
) -> Optional[list[str]]:
    """Ids of the portals crossed on the shortest path from start to end (None when end is unreachable)"""
    tree = teleport_search(PieceKind.TELEPORTER, start, color, board, portal_system)
    if end not in tree or end == start:
        return None

    portal_ids: list[str] = []
    node = end
    while (link := tree[node]) is not None:
        node, portal_id = link
        if portal_id is not None:
            portal_ids.append(portal_id)
    return list(reversed(portal_ids))


# -- CASTLING ---
def is_castling_attempt(piece_kind: str, start: Position, end: Position) -> bool:
    return (
        piece_kind.lower() == PieceKind.KING
        and abs(end.file - start.file) == 2
        and end.rank == start.rank
    )


def castling_rook_squares(
    start: Position, end: Position, board_size: int
) -> tuple[Position, Position]:
    """Rook in the corner on the side the king moves to. It ends up on the square the king passed over."""
    king_side = end.file > start.file
    rook_file = board_size - 1 if king_side else 0
    step = 1 if king_side else -1
    return Position(rook_file, start.rank), Position(start.file + step, start.rank)


def validate_castling(start: Position, end: Position, color: Color, board: Board) -> bool:
    """
    you are allowed to castle if
    ----

    * The king stands on its home square
    * A rook of the same color stands in the corner on that side
    * There is no piece in between the two of them

    NOTE: Whether king / rook moved before is not tracked. Pieces found on their home squares are eligible.
    """
    if start != king_home(color, board.get_size()):
        return False

    rook_from, _ = castling_rook_squares(start, end, board.get_size())
    if not board.in_bounds(rook_from):
        return False
    rook = board.get_square(rook_from)
    if not (rook.is_kind(PieceKind.ROOK) and rook.color == color):
        return False

    step = 1 if rook_from.file > start.file else -1
    return all(
        board.get_square(Position(file, start.rank)).is_empty
        for file in range(start.file + step, rook_from.file, step)
    )


# -- EN PASSANT ---
def is_en_passant_move(start: Position, end: Position, color: Color, board: Board) -> bool:
    """
    Pawn takes a pawn that stands right next to it, landing behind it.

    NOTE: Any opponent's pawn on that square will do. We do not check the pawn double-stepped on the previous turn.
    """
    from_rank, to_rank = en_passant_ranks(color, board.get_size())
    if start.rank != from_rank:
        return False

    if abs(end.file - start.file) != 1 or end.rank != to_rank:
        return False

    if not board.in_bounds(end) or not board.get_square(end).is_empty:
        return False

    passed_pawn = board.get_square(Position(end.file, start.rank))
    return passed_pawn.is_kind(PieceKind.PAWN) and passed_pawn.is_enemy_of(color)


def is_promotion_move(piece_kind: str, end: Position, color: Color, board_size: int) -> bool:
    return piece_kind.lower() == PieceKind.PAWN and end.rank == back_rank(color, board_size)


# -- VALIDATION OF A SINGLE MOVE ---
def is_valid_move(
    piece_kind: str,
    start: Position,
    end: Position,
    color: Color,
    board: Board,
    portal_system: PortalSystem,
) -> bool:
    """
    Validate the move start -> end
    ----

    Each step is a short-circuit:
    1. start on the board and holding a piece of this kind and color
    2. end on the board and not holding one of your own pieces
    3. king moving 2 files along its rank --> castling rules decide
    4. pawn: en passant is legal; reaching the back rank is legal iff it is a reachable square
    5. (start, end) is a configured portal --> the portal system decides (geometry is ignored)
    6. end is one of the reachable squares (through portals as well, for a teleporter)
    """
    if not board.in_bounds(start):
        return False
    mover = board.get_square(start)
    if not (mover.is_kind(piece_kind) and mover.color == color):
        return False

    if not board.in_bounds(end) or board.get_square(end).is_friend_of(color):
        return False

    kind = piece_kind.lower()
    if is_castling_attempt(kind, start, end):
        return validate_castling(start, end, color, board)

    if kind == PieceKind.PAWN:
        if is_en_passant_move(start, end, color, board):
            return True
        if is_promotion_move(kind, end, color, board.get_size()):
            return end in get_reachable_squares(kind, start, color, board)

    if portal_system.is_portal_move(start, end):
        logger.debug(f"Portal move detected: {start} -> {end}")
        return portal_system.validate_portal_move(piece_kind, start, end, color, board)

    if kind == PieceKind.TELEPORTER:
        return end in teleporter_reachable_squares(start, color, board, portal_system)

    return end in get_reachable_squares(kind, start, color, board)
