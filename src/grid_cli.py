# grid_cli.py
# This file is intended to be run to play the 2048 game on the CLI

import argparse
from typing import Callable, List, Optional

from grid_config import get_config
from grid_engine import (
    DIRECTION,
    BoardSnapshot,
    GameProgressState,
    GridEngine,
    InvalidInput,
    parse_direction,
)

KEY_BINDINGS = {'W': DIRECTION.UP, 'A': DIRECTION.LEFT, 'S': DIRECTION.DOWN, 'D': DIRECTION.RIGHT}


def read_direction(move_input: str) -> Optional[DIRECTION]:
    """Maps W/A/S/D or a direction name to a DIRECTION; None if unrecognised."""
    key = move_input.strip().upper()
    if key in KEY_BINDINGS:
        return KEY_BINDINGS[key]
    try:
        return parse_direction(move_input)
    except InvalidInput:
        return None


def build_parser() -> argparse.ArgumentParser:
    config = get_config()
    parser = argparse.ArgumentParser(description="Play 2048 in the terminal.")
    parser.add_argument("--size", type=int, default=config.default_size,
                        help="Board dimension (default: %(default)s)")
    parser.add_argument("--win-tile", type=int, default=config.default_win_tile,
                        help="Tile value that wins the game (default: %(default)s)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for reproducible tile spawns")
    return parser


def play(engine: GridEngine, read_input: Callable[[str], str] = input,
         write: Callable[[str], None] = print) -> BoardSnapshot:
    """
    Runs the interactive game loop until the game ends or the player quits.
    Returns the final snapshot.
    """
    snapshot = engine.new_game()
    display_board_state(snapshot, write)

    while snapshot.progress != GameProgressState.GAME_OVER:
        try:
            move_input = read_input("Enter move (W/A/S/D for Up/Left/Down/Right, N for new game, Q to quit): ")
        except (EOFError, KeyboardInterrupt):
            move_input = 'Q'  # Ctrl-D / Ctrl-C quit like Q
        command = move_input.strip().upper()

        if command == 'Q':
            write("Quitting game.")
            break
        if command == 'N':
            snapshot = engine.new_game()
            display_board_state(snapshot, write)
            continue

        chosen_direction = read_direction(move_input)
        if chosen_direction is None:
            write("Invalid input. Use W, A, S, D.")
            continue

        was_won = snapshot.won
        result = engine.move(chosen_direction)
        snapshot = result.board

        if not result.moved:
            write("Move did not change the board. Try a different direction.")
        elif result.won and not was_won:
            write(f"You reached {engine.win_tile}! Keep going or press Q to quit.")

        display_board_state(snapshot, write)

    # Game Ended
    write("\n--- Final Board State ---")
    display_board_state(snapshot, write)
    if snapshot.won:
        write(f"Congratulations! You reached the {engine.win_tile} tile!")
    if snapshot.over:
        write("No more moves possible. Better luck next time!")
    return snapshot


# --- Display Function ---
def display_board_state(snapshot: BoardSnapshot, write: Callable[[str], None] = print):
    """Prints the board, score, and game status to the console."""
    write(f"\nScore: {snapshot.score}")
    status_message = {
        GameProgressState.IN_PROGRESS: f"Status: {snapshot.progress.name}",
        GameProgressState.GAME_WON: "YOU WON!",
        GameProgressState.GAME_OVER: "GAME OVER!"
    }
    write(status_message[snapshot.progress])

    for row in snapshot.grid:
        write("\t".join(str(value) if value else "." for value in row))
    write("-" * (snapshot.size * 6)) # Adjust width based on board size


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        engine = GridEngine(size=args.size, win_tile=args.win_tile, seed=args.seed)
    except ValueError as e:
        parser.error(str(e))
    play(engine)


if __name__ == "__main__":
    main()
