"""Command line entrypoint: play a game in the terminal"""

import argparse
import sys

from loguru import logger

from src.core.config import DEFAULT_CONFIG_PATH, load_config
from src.core.exceptions import ConfigError
from src.core.log_setup import configure_logging
from src.core.shared_types import Status
from src.services.game_session import GameSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chess with teleportation portals")
    parser.add_argument(
        "config",
        nargs="?",
        default=str(DEFAULT_CONFIG_PATH),
        help="JSON file with board size, pieces and portals",
    )
    parser.add_argument("--log-level", default="INFO", help="loguru level (DEBUG, INFO, ...)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error(str(exc))
        return 1

    session = GameSession(config)
    print("Initial board:")
    print(session.board.render())
    print("Commands: move <start> <end> <piece> (e.g., move a1 b2 king), undo, quit")

    while not session.game_over:
        try:
            line = input(f"{session.turn.capitalize()} player's turn > ")
        except EOFError:
            break

        result = session.execute(line)
        print(result.message)
        if result.accepted and result.status != Status.QUIT:
            print(session.board.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())
