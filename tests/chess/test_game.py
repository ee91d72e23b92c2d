"""Unit tests for /src/chess/game.py"""

from typing import Callable
from unittest.mock import patch

import pytest

from src.chess.board import Board
from src.chess.game import GameManager
from src.chess.moves import is_valid_move, teleport_path_portals
from src.chess.pieces import Square
from src.chess.portals import PortalConfig, PortalSystem
from src.chess.position import Position
from src.core.exceptions import InvalidPositionError, RestoreFailureError
from src.core.shared_types import Color

W = Color.WHITE
B = Color.BLACK


def sq(name: str) -> Position:
    return Position.from_algebraic(name)


@pytest.fixture
def make_game(make_board: Callable[..., Board]) -> Callable[..., GameManager]:
    def _create_game(pieces: dict[str, tuple[str, Color]], portals: PortalSystem | None = None) -> GameManager:
        return GameManager(make_board(pieces), portals or PortalSystem())

    return _create_game


# --- CHECK ---
def test_rook_gives_check(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"e1": ("king", W), "e8": ("rook", B)})
    assert game.is_in_check(W)
    assert not game.is_in_check(B)


def test_blocked_line_is_not_check(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"e1": ("king", W), "e4": ("pawn", W), "e8": ("rook", B)})
    assert not game.is_in_check(W)


@pytest.mark.parametrize(
    "attacker, square, in_check",
    [
        ("pawn", "d2", True),
        ("pawn", "e2", False),  # pawns take diagonally only
        ("knight", "f3", True),
        ("bishop", "a5", True),
        ("queen", "h4", True),
        ("king", "e2", False),  # kings do not give check
        ("teleporter", "e2", False),
    ],
)
def test_check_by_piece_kind(
    make_game: Callable[..., GameManager], attacker: str, square: str, in_check: bool
) -> None:
    game = make_game({"e1": ("king", W), square: (attacker, B)})
    assert game.is_in_check(W) == in_check


def test_no_king_is_not_in_check(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"e8": ("rook", B)})
    assert not game.is_in_check(W)


def test_portals_do_not_deliver_check(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    portals = PortalSystem([make_portal("p", "a3", "e1")])
    game = make_game({"e1": ("king", W), "a3": ("rook", B)}, portals)
    assert not game.is_in_check(W)


def test_geometric_threat_along_a_portal_pair_still_counts(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    """The rook attacks the king along the file. A (closed) portal on the same squares changes nothing."""
    portals = PortalSystem([make_portal("p", "e8", "e1", colors=(W,))])
    game = make_game({"e1": ("king", W), "e8": ("rook", B)}, portals)
    assert game.is_in_check(W)


# --- CHECKMATE ---
def test_lone_king_checkmated_by_protected_queen(make_game: Callable[..., GameManager]) -> None:
    """King on a1, queen on b2 covers every escape square. The rook on b8 makes taking the queen impossible."""
    game = make_game({"a1": ("king", W), "b2": ("queen", B), "b8": ("rook", B), "h8": ("king", B)})
    assert game.is_in_check(W)
    assert game.is_checkmate(W)


def test_king_escapes_by_capturing_unprotected_queen(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a1": ("king", W), "b2": ("queen", B), "h8": ("king", B)})
    assert game.is_in_check(W)
    assert not game.is_checkmate(W)


@pytest.fixture
def long_diagonal_mate() -> dict[str, tuple[str, Color]]:
    """Queen on h8 checks a1 along the long diagonal, rooks cover the b-file and the 2nd rank."""
    return {
        "a1": ("king", W),
        "h8": ("queen", B),
        "b7": ("rook", B),
        "h2": ("rook", B),
    }


def test_checkmate_along_long_diagonal(
    make_game: Callable[..., GameManager], long_diagonal_mate: dict[str, tuple[str, Color]]
) -> None:
    game = make_game(long_diagonal_mate)
    assert game.is_checkmate(W)


def test_interposing_piece_prevents_checkmate(
    make_game: Callable[..., GameManager], long_diagonal_mate: dict[str, tuple[str, Color]]
) -> None:
    """The white rook on c8 can block the diagonal on c3"""
    game = make_game({**long_diagonal_mate, "c8": ("rook", W)})
    assert game.is_in_check(W)
    assert not game.is_checkmate(W)


def test_not_in_check_is_not_checkmate(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a1": ("king", W), "b3": ("queen", B)})
    assert not game.is_checkmate(W)


def test_checkmate_search_leaves_game_untouched(
    make_game: Callable[..., GameManager], long_diagonal_mate: dict[str, tuple[str, Color]]
) -> None:
    game = make_game({**long_diagonal_mate, "c8": ("rook", W)})
    before = game.board.duplicate()
    game.is_checkmate(W)
    assert game.board == before
    assert game.history == []


# --- STALEMATE ---
def test_stalemate(make_game: Callable[..., GameManager]) -> None:
    """King on a1 is not attacked, but the queen on b3 covers a2, b1 and b2"""
    game = make_game({"a1": ("king", W), "b3": ("queen", B), "h8": ("king", B)})
    assert not game.is_in_check(W)
    assert game.is_stalemate(W)


def test_other_piece_can_move_is_not_stalemate(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a1": ("king", W), "h2": ("pawn", W), "b3": ("queen", B), "h8": ("king", B)})
    assert not game.is_stalemate(W)


def test_blocked_pawn_does_not_prevent_stalemate(make_game: Callable[..., GameManager]) -> None:
    game = make_game(
        {"a1": ("king", W), "b3": ("queen", B), "h8": ("king", B), "h4": ("pawn", W), "h5": ("pawn", B)}
    )
    assert game.is_stalemate(W)


def test_teleporter_with_open_portal_is_not_stalemate(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    portals = PortalSystem([make_portal("p", "g1", "g4")])
    game = make_game(
        {"a1": ("king", W), "b3": ("queen", B), "h8": ("king", B), "g1": ("teleporter", W)}, portals
    )
    assert not game.is_stalemate(W)

    portals.use("p")
    assert game.is_stalemate(W)


def test_in_check_is_not_stalemate(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a1": ("king", W), "b2": ("queen", B), "b8": ("rook", B)})
    assert not game.is_stalemate(W)


def test_queries_are_idempotent(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a1": ("king", W), "b3": ("queen", B), "h8": ("king", B)})
    before = game.board.duplicate()
    results = [(game.is_in_check(W), game.is_stalemate(W)) for _ in range(3)]
    assert results == [(False, True)] * 3
    assert game.board == before


# --- APPLY / UNDO ---
@pytest.mark.parametrize(
    "pieces, start, end",
    [
        ({"e2": ("pawn", W), "e8": ("king", B)}, "e2", "e4"),  # plain advance
        ({"d1": ("queen", W), "d7": ("bishop", B)}, "d1", "d7"),  # capture
        ({"d5": ("pawn", W), "e5": ("pawn", B)}, "d5", "e6"),  # en passant
        ({"e1": ("king", W), "h1": ("rook", W)}, "e1", "g1"),  # castling king side
        ({"e8": ("king", B), "a8": ("rook", B)}, "e8", "c8"),  # castling queen side
    ],
)
def test_undo_restores_board(
    make_game: Callable[..., GameManager],
    pieces: dict[str, tuple[str, Color]],
    start: str,
    end: str,
) -> None:
    game = make_game(pieces)
    before = game.board.duplicate()

    game.apply_move(sq(start), sq(end))
    assert game.board != before
    assert len(game.history) == 1

    undone = game.undo_move()
    assert undone is not None
    assert game.board == before
    assert game.history == []


def test_capture_is_recorded(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"d1": ("queen", W), "d7": ("bishop", B)})
    record = game.apply_move(sq("d1"), sq("d7"))
    assert record.is_capture
    assert (record.captured_piece, record.captured_color) == ("bishop", B)
    assert game.board.get_square(sq("d7")) == Square("queen", W)
    assert game.board.get_square(sq("d1")).is_empty


def test_en_passant_removes_passed_pawn(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"d5": ("pawn", W), "e5": ("pawn", B)})
    record = game.apply_move(sq("d5"), sq("e6"))
    assert record.captured_at == sq("e5")
    assert game.board.get_square(sq("e5")).is_empty
    assert game.board.get_square(sq("e6")) == Square("pawn", W)


def test_castling_moves_the_rook(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"e1": ("king", W), "a1": ("rook", W)})
    game.apply_move(sq("e1"), sq("c1"))
    assert game.board.get_square(sq("c1")) == Square("king", W)
    assert game.board.get_square(sq("d1")) == Square("rook", W)
    assert game.board.get_square(sq("a1")).is_empty


def test_promotion_and_undo(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a7": ("pawn", W)})
    game.apply_move(sq("a7"), sq("a8"), promote_to="queen")
    assert game.board.get_square(sq("a8")) == Square("queen", W)

    game.undo_move()
    assert game.board.get_square(sq("a7")) == Square("pawn", W)
    assert game.board.get_square(sq("a8")).is_empty


def test_undo_with_empty_history(make_game: Callable[..., GameManager], log_messages: list[str]) -> None:
    game = make_game({"e1": ("king", W)})
    before = game.board.duplicate()
    assert game.undo_move() is None
    assert game.board == before
    assert "No moves to undo." in log_messages


def test_undo_is_last_in_first_out(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"a2": ("pawn", W), "h7": ("pawn", B)})
    start = game.board.duplicate()
    game.apply_move(sq("a2"), sq("a4"))
    after_first = game.board.duplicate()
    game.apply_move(sq("h7"), sq("h5"))

    assert game.undo_move().start == sq("h7")
    assert game.board == after_first
    assert game.undo_move().start == sq("a2")
    assert game.board == start


def test_failed_restore_keeps_the_move_in_history(make_game: Callable[..., GameManager]) -> None:
    game = make_game({"e2": ("pawn", W)})
    record = game.apply_move(sq("e2"), sq("e3"))

    with patch.object(game.board, "place_piece", side_effect=InvalidPositionError("broken board")):
        with pytest.raises(RestoreFailureError):
            game.undo_move()
    assert game.history == [record]


# --- PORTALS ---
def test_portal_move_arms_cooldown(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    portals = PortalSystem([make_portal("p", "a3", "h6", cooldown=2)])
    game = make_game({"a3": ("knight", W), "h8": ("pawn", B)}, portals)

    record = game.apply_move(sq("a3"), sq("h6"))
    assert record.portal_ids == ("p",)
    assert game.board.get_square(sq("h6")) == Square("knight", W)
    assert portals.remaining_cooldown("p") == 2

    # every following move ticks the scheduler once
    game.apply_move(sq("h8"), sq("h7"))
    assert portals.remaining_cooldown("p") == 1
    game.apply_move(sq("h6"), sq("g4"))
    assert portals.remaining_cooldown("p") == 0


def test_undo_ticks_cooldowns_forward(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    """Undo does not roll the cooldown back: it advances the scheduler like a completed turn"""
    portals = PortalSystem([make_portal("p", "a3", "h6", cooldown=2)])
    game = make_game({"a3": ("knight", W)}, portals)
    before = game.board.duplicate()

    game.apply_move(sq("a3"), sq("h6"))
    game.undo_move()

    assert game.board == before
    assert portals.remaining_cooldown("p") == 1


def test_teleporter_chain_arms_every_portal_crossed(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    portals = PortalSystem(
        [make_portal("first", "a1", "c3", cooldown=1), make_portal("second", "c3", "f6", cooldown=2)]
    )
    game = make_game({"a1": ("teleporter", W)}, portals)

    record = game.apply_move(sq("a1"), sq("f6"))
    assert record.portal_ids == ("first", "second")
    assert game.board.get_square(sq("f6")) == Square("teleporter", W)
    assert game.board.get_square(sq("c3")).is_empty
    assert portals.pending_decrements == ["first", "second", "second"]


def test_castling_onto_a_cooling_portal_pair_does_not_rearm_it(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    """The castling rule decides the move: the portal on the same squares is neither used nor re-armed"""
    portals = PortalSystem([make_portal("p", "e1", "g1", cooldown=3)])
    game = make_game({"e1": ("king", W), "h1": ("rook", W)}, portals)
    portals.use("p")

    for _ in range(2):
        assert is_valid_move("king", sq("e1"), sq("g1"), W, game.board, portals)
        record = game.apply_move(sq("e1"), sq("g1"))
        assert record.portal_ids == ()
        assert game.board.get_square(sq("f1")) == Square("rook", W)
        game.undo_move()

    # 4 ticks in total: the counter and its queued tokens run out together
    assert portals.remaining_cooldown("p") == 0
    assert portals.pending_decrements == []


def test_promotion_onto_a_portal_pair_does_not_use_it(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    portals = PortalSystem([make_portal("p", "a7", "a8", cooldown=2)])
    game = make_game({"a7": ("pawn", W)}, portals)

    record = game.apply_move(sq("a7"), sq("a8"), promote_to="queen")
    assert record.portal_ids == ()
    assert game.board.get_square(sq("a8")) == Square("queen", W)
    assert portals.pending_decrements == []


def test_teleporter_path_is_chosen_before_the_turn_ticks(
    make_game: Callable[..., GameManager], make_portal: Callable[..., PortalConfig]
) -> None:
    """
    The short route (a1 -> b4 -> f6) is closed while the move is validated and only opens on this move's tick.
    The portals armed are the ones of the validated route (a1 -> c3 -> d5 -> f6).
    """
    portals = PortalSystem(
        [
            make_portal("short_1", "a1", "b4", cooldown=1),
            make_portal("short_2", "b4", "f6", cooldown=1),
            make_portal("long_1", "a1", "c3", cooldown=1),
            make_portal("long_2", "c3", "d5", cooldown=1),
            make_portal("long_3", "d5", "f6", cooldown=1),
        ]
    )
    game = make_game({"a1": ("teleporter", W)}, portals)
    portals.use("short_1")
    assert teleport_path_portals(sq("a1"), sq("f6"), W, game.board, portals) == ["long_1", "long_2", "long_3"]

    record = game.apply_move(sq("a1"), sq("f6"))
    assert record.portal_ids == ("long_1", "long_2", "long_3")
    assert portals.remaining_cooldown("short_1") == 0
    assert portals.pending_decrements == ["long_1", "long_2", "long_3"]


def test_failed_restore_leaves_the_board_as_before_the_undo(make_game: Callable[..., GameManager]) -> None:
    """The mover is already back on its start square when clearing the destination fails"""
    game = make_game({"e2": ("pawn", W)})
    game.apply_move(sq("e2"), sq("e3"))
    before = game.board.duplicate()

    with patch.object(game.board, "clear", side_effect=InvalidPositionError("broken board")):
        with pytest.raises(RestoreFailureError):
            game.undo_move()
    assert game.board == before
    assert game.board.get_square(sq("e2")).is_empty
    assert len(game.history) == 1
