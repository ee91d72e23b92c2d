"""
Orchestration of a single game session: text commands in, results out.

Commands
----
* `move <start> <end> <piece> [promote_to]`  ex. "move e2 e4 pawn"
* `undo`
* `quit`

Anything rejected leaves the game untouched. The reason is reported in the result's message.
"""

from typing import Optional

from loguru import logger
from pydantic import BaseModel, field_validator

from src.chess.game import GameManager
from src.chess.moves import MoveRecord, is_valid_move
from src.chess.portals import PortalSystem, PortalVerdict
from src.chess.position import ALGEBRAIC_PATTERN, Position
from src.core.config import GameConfig
from src.core.exceptions import (
    GameError,
    GameStateError,
    IllegalMoveError,
    InvalidCommandError,
    InvalidPositionError,
    PortalRejectedError,
)
from src.core.shared_types import Color, Status

MOVE_USAGE = "Invalid command. Example: move a1 b2 king"

PORTAL_MESSAGES: dict[PortalVerdict, str] = {
    PortalVerdict.ON_COOLDOWN: "Portal cannot be used: it is on cooldown.",
    PortalVerdict.COLOR_NOT_ALLOWED: "Portal cannot be used by {color} pieces.",
    PortalVerdict.WRONG_PIECE: "Portal cannot be used: the piece does not match the entry square.",
}


# --- REQUEST MODELS ---
class MoveCommand(BaseModel):
    start: str
    end: str
    piece: str
    promote_to: Optional[str] = None

    @classmethod
    def from_tokens(cls, tokens: list[str]) -> "MoveCommand":
        if len(tokens) not in (3, 4):
            raise InvalidCommandError(MOVE_USAGE)
        start, end, piece, *rest = tokens
        return cls(start=start, end=end, piece=piece, promote_to=rest[0] if rest else None)

    @field_validator(*["start", "end"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        if ALGEBRAIC_PATTERN.match(value) is None:
            raise InvalidPositionError(
                f"Cannot interpret {value!r} as a square. Example: a1, b2 (within bounds)"
            )
        return value.lower()


# --- RESPONSE MODELS ---
class CommandResult(BaseModel):
    accepted: bool
    message: str
    status: Status
    turn: Color
    game_over: bool


class GameSession:
    """One game: the board, the portals, the move history and whose turn it is."""

    def __init__(self, config: GameConfig) -> None:
        self.board = config.build_board()
        self.portal_system = PortalSystem(config.portal_configs())
        self.game = GameManager(self.board, self.portal_system)
        self.turn = Color.WHITE
        self.status = Status.IN_PROGRESS

    @property
    def game_over(self) -> bool:
        return self.status != Status.IN_PROGRESS

    @property
    def winner(self) -> Optional[Color]:
        """Only defined for checkmate. The turn is not handed over after the mating move, so it is the winner's."""
        if self.status != Status.CHECKMATE:
            return None
        return self.turn

    def execute(self, line: str) -> CommandResult:
        """Parse and run one command. Errors are reported, never raised."""
        try:
            message = self._dispatch(line)
        except GameError as exc:
            logger.debug(f"Command {line!r} rejected: {exc}")
            return self._result(False, str(exc))
        return self._result(True, message)

    # -- commands --
    def move(self, command: MoveCommand) -> MoveRecord:
        """
        Attempt to make a move
        -----

        1. squares must lie on the board
        2. there must be a piece of the side to move on the start square, of the kind named in the command
        3. the move must pass validation (portal refusals get their own error)
        4. update the board
        5. check if the opponent got mated / stalemated. If not, it is their turn.
        """
        self._assert_in_progress()
        start = self._to_position(command.start)
        end = self._to_position(command.end)

        square = self.board.get_square(start)
        if square.is_empty:
            raise IllegalMoveError("No piece at starting position.")
        if square.color != self.turn:
            raise IllegalMoveError(
                f"{self.turn.capitalize()} player's turn. {str(square.color).capitalize()} piece selected."
            )
        if not square.is_kind(command.piece):
            raise IllegalMoveError(
                f"Piece at starting position ({square.piece}) does not match specified piece ({command.piece})."
            )

        if not is_valid_move(command.piece, start, end, self.turn, self.board, self.portal_system):
            self._raise_rejection(command, start, end)

        record = self.game.apply_move(start, end, command.promote_to or "")
        self._update_game_status()
        return record

    def undo(self) -> Optional[MoveRecord]:
        """Take back the last move. The turn goes back to the other side, whether undo succeeded or not."""
        self._assert_in_progress()
        try:
            return self.game.undo_move()
        finally:
            self.turn = self.turn.opponent

    def quit(self) -> None:
        self.status = Status.QUIT

    # -- Internal helpers --
    def _dispatch(self, line: str) -> str:
        tokens = line.split()
        if not tokens:
            raise InvalidCommandError("Empty command. Example: move a1 b2 king")

        name, arguments = tokens[0].lower(), tokens[1:]
        if name == "quit" and not arguments:
            self.quit()
            return "Game ended."
        if name == "undo" and not arguments:
            record = self.undo()
            return f"Move undone: {record}" if record else "No moves to undo."
        if name == "move":
            command = MoveCommand.from_tokens(arguments)
            self.move(command)
            return self._after_move_message(command)
        raise InvalidCommandError(MOVE_USAGE)

    def _after_move_message(self, command: MoveCommand) -> str:
        message = f"Move successful: {command.start} -> {command.end}"
        if self.status == Status.CHECKMATE:
            return f"{message}\n{self.turn.capitalize()} checkmate! Game over."
        if self.status == Status.STALEMATE:
            return f"{message}\nGame ended in stalemate."
        return message

    def _update_game_status(self) -> None:
        """The move is made: see if the opponent can still play. Otherwise hand them the turn."""
        opponent = self.turn.opponent
        if self.game.is_checkmate(opponent):
            self.status = Status.CHECKMATE
        elif self.game.is_stalemate(opponent):
            self.status = Status.STALEMATE
        else:
            self.turn = opponent

    def _raise_rejection(self, command: MoveCommand, start: Position, end: Position) -> None:
        if self.portal_system.is_portal_move(start, end):
            verdict = self.portal_system.check_portal_move(
                command.piece, start, end, self.turn, self.board
            )
            message = PORTAL_MESSAGES.get(verdict, "Portal cannot be used.").format(color=self.turn)
            raise PortalRejectedError(message, verdict)
        raise IllegalMoveError(
            f"Invalid move: {command.piece} from {command.start} to {command.end}"
        )

    def _to_position(self, square_name: str) -> Position:
        position = Position.from_algebraic(square_name)
        if not self.board.in_bounds(position):
            raise InvalidPositionError(
                f"Invalid position {square_name!r}. Example: a1, b2 (within bounds)"
            )
        return position

    def _assert_in_progress(self) -> None:
        if self.game_over:
            raise GameStateError(f"Game is not in progress. status: {self.status}")

    def _result(self, accepted: bool, message: str) -> CommandResult:
        return CommandResult(
            accepted=accepted,
            message=message,
            status=self.status,
            turn=self.turn,
            game_over=self.game_over,
        )
