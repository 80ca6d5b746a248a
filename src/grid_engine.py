# grid_engine.py
# Grid simulation engine for the 2048 game: tile model, directional moves
# (translate, merge, spawn), win/loss detection and score accumulation.

import itertools
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_BOARD_SIZE = 4
DEFAULT_WIN_TILE = 2048
START_TILES = 2
SPAWN_FOUR_PROBABILITY = 0.1

Position = Tuple[int, int]


class GameError(Exception):
    """Base class for all engine errors."""


class InvalidInput(GameError, ValueError):
    """Raised when a caller passes a malformed direction or board."""


class InvalidConfiguration(GameError, ValueError):
    """Raised when the engine is configured with a board or target that cannot be played."""


class InvariantViolation(GameError, RuntimeError):
    """Raised when the engine reaches a state its own rules should have prevented."""


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    IN_PROGRESS = 1
    GAME_OVER = 2  # Lost
    GAME_WON = 3


class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"


VECTORS: Dict[DIRECTION, Position] = {
    DIRECTION.UP: (0, -1),
    DIRECTION.RIGHT: (1, 0),
    DIRECTION.DOWN: (0, 1),
    DIRECTION.LEFT: (-1, 0),
}


def parse_direction(value: Union[DIRECTION, str]) -> DIRECTION:
    """
    Normalizes a direction given either as a DIRECTION member or as its name.
    Args:
        value (Union[DIRECTION, str]): e.g. DIRECTION.UP, "up" or "LEFT".
    Returns:
        DIRECTION: The matching direction.
    Raises:
        InvalidInput: If the value does not name one of the four directions.
    """
    if isinstance(value, DIRECTION):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for direction in DIRECTION:
            if direction.value == key:
                return direction
    raise InvalidInput(
        f"Invalid direction {value!r}; expected one of up, right, down, left."
    )


def get_vector(direction: Union[DIRECTION, str]) -> Position:
    """Returns the unit (dx, dy) offset for a direction."""
    return VECTORS[parse_direction(direction)]


def validate_board_size(size: int) -> int:
    """
    Checks that a board of the given size can host a game.
    Raises:
        InvalidConfiguration: If size is not an integer of at least 2.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size < 2:
        raise InvalidConfiguration(f"Board size must be an integer >= 2, got {size!r}.")
    return size


def validate_win_tile(win_tile: int) -> int:
    """
    Checks that the win target is a tile value a merge can actually produce.
    Raises:
        InvalidConfiguration: If win_tile is not a power of two of at least 4.
    """
    if (isinstance(win_tile, bool) or not isinstance(win_tile, int)
            or win_tile < 4 or win_tile & (win_tile - 1)):
        raise InvalidConfiguration(
            f"Win tile must be a power of two >= 4, got {win_tile!r}."
        )
    return win_tile


# --- Tiles and Snapshots ---

@dataclass(frozen=True)
class TileSnapshot:
    """Read-only view of a tile as handed to the presentation layer."""
    id: int
    x: int
    y: int
    value: int
    previous_position: Optional[Position] = None
    merged_from: Tuple[int, ...] = ()

    @property
    def position(self) -> Position:
        return (self.x, self.y)


@dataclass
class Tile:
    """
    A numbered tile on the board. Moving a tile changes only its coordinate;
    its id stays the same until a merge consumes it.
    """
    id: int
    x: int
    y: int
    value: int
    previous_position: Optional[Position] = None
    merged_from: Tuple[int, ...] = ()

    @property
    def position(self) -> Position:
        return (self.x, self.y)

    def snapshot(self) -> TileSnapshot:
        return TileSnapshot(
            id=self.id,
            x=self.x,
            y=self.y,
            value=self.value,
            previous_position=self.previous_position,
            merged_from=self.merged_from,
        )


@dataclass(frozen=True)
class BoardSnapshot:
    """Immutable picture of a session: every live tile plus score and terminal flags."""
    size: int
    tiles: Tuple[TileSnapshot, ...]
    score: int
    won: bool
    over: bool

    @property
    def grid(self) -> List[List[int]]:
        """The board as rows of values (grid[y][x]), 0 for empty cells."""
        rows = [[0] * self.size for _ in range(self.size)]
        for tile in self.tiles:
            rows[tile.y][tile.x] = tile.value
        return rows

    @property
    def progress(self) -> GameProgressState:
        if self.over:
            return GameProgressState.GAME_OVER
        if self.won:
            return GameProgressState.GAME_WON
        return GameProgressState.IN_PROGRESS

    def tile_at(self, x: int, y: int) -> Optional[TileSnapshot]:
        for tile in self.tiles:
            if tile.x == x and tile.y == y:
                return tile
        return None


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a single move() call."""
    board: BoardSnapshot
    direction: DIRECTION
    moved: bool
    score_gain: int
    merges: int = 0
    spawned: Optional[TileSnapshot] = None

    @property
    def score(self) -> int:
        return self.board.score

    @property
    def won(self) -> bool:
        return self.board.won

    @property
    def over(self) -> bool:
        return self.board.over

    @property
    def progress(self) -> GameProgressState:
        return self.board.progress


# --- Board ---

class Board:
    """
    The set of live tiles on an N x N grid, indexed by coordinate.
    At most one tile occupies a cell at any time.
    """

    def __init__(self, size: int):
        self.size = validate_board_size(size)
        self._cells: Dict[Position, Tile] = {}

    def within_bounds(self, position: Position) -> bool:
        x, y = position
        return 0 <= x < self.size and 0 <= y < self.size

    def tile_at(self, position: Position) -> Optional[Tile]:
        return self._cells.get(position)

    def tiles(self) -> List[Tile]:
        """Live tiles in row-major order."""
        return [self._cells[pos] for pos in sorted(self._cells, key=lambda p: (p[1], p[0]))]

    def empty_cells(self) -> List[Position]:
        """
        Get coordinates of the cells that hold no tile.
        Returns:
            List[Position]: (x, y) tuples, column by column.
        """
        return [
            (x, y)
            for x in range(self.size)
            for y in range(self.size)
            if (x, y) not in self._cells
        ]

    def insert(self, tile: Tile) -> None:
        if not self.within_bounds(tile.position):
            raise InvariantViolation(f"Tile {tile.id} placed outside the board at {tile.position}.")
        if tile.position in self._cells:
            raise InvariantViolation(f"Cell {tile.position} is already occupied.")
        self._cells[tile.position] = tile

    def remove(self, tile: Tile) -> None:
        if self._cells.get(tile.position) is not tile:
            raise InvariantViolation(f"Tile {tile.id} is not on the board at {tile.position}.")
        del self._cells[tile.position]

    def relocate(self, tile: Tile, position: Position) -> None:
        self.remove(tile)
        tile.x, tile.y = position
        self.insert(tile)

    def find_farthest_position(self, position: Position,
                               vector: Position) -> Tuple[Position, Optional[Position]]:
        """
        Walks from a cell along a direction vector while the next cell is on the
        board and empty.
        Args:
            position (Position): Starting cell, normally the tile's own cell.
            vector (Position): Unit (dx, dy) step.
        Returns:
            Tuple[Position, Optional[Position]]: The last empty cell reached
            (the start cell if none) and the first cell beyond it, or None if
            that cell is off the board.
        """
        dx, dy = vector
        previous = position
        candidate = (previous[0] + dx, previous[1] + dy)
        while self.within_bounds(candidate) and candidate not in self._cells:
            previous = candidate
            candidate = (previous[0] + dx, previous[1] + dy)
        return previous, candidate if self.within_bounds(candidate) else None

    def has_adjacent_match(self) -> bool:
        """True if any two axis-adjacent tiles hold the same value."""
        for (x, y), tile in self._cells.items():
            for dx, dy in VECTORS.values():
                neighbour = self._cells.get((x + dx, y + dy))
                if neighbour is not None and neighbour.value == tile.value:
                    return True
        return False

    def can_move(self, vector: Position) -> bool:
        """
        Check if any tile can move or merge along the given vector.
        Returns:
           bool: True if some tile has an empty or equal-valued neighbour in
           that direction.
        """
        dx, dy = vector
        for (x, y), tile in self._cells.items():
            target = (x + dx, y + dy)
            if not self.within_bounds(target):
                continue
            neighbour = self._cells.get(target)
            if neighbour is None or neighbour.value == tile.value:
                return True
        return False

    def is_terminal(self) -> bool:
        # Rescans the whole board on every call.
        return not self.empty_cells() and not self.has_adjacent_match()


def build_traversals(size: int, vector: Position) -> Tuple[List[int], List[int]]:
    """
    Builds the x and y visiting orders so that the cells farthest along the
    vector come first.
    """
    xs = list(range(size))
    ys = list(range(size))
    if vector[0] == 1:
        xs.reverse()
    if vector[1] == 1:
        ys.reverse()
    return xs, ys


# --- Engine ---

class GridEngine:
    """
    Owns one game session: the board, the cumulative score and the won/over
    flags. Multiple games run as multiple engine instances.

    The engine is synchronous and not reentrant; callers must serialize
    new_game()/move() calls.
    """

    def __init__(self, size: int = DEFAULT_BOARD_SIZE, win_tile: int = DEFAULT_WIN_TILE,
                 rng: Optional[random.Random] = None, seed: Optional[int] = None):
        """
        Args:
            size (int): Dimension of the N x N board. Default is 4.
            win_tile (int): Tile value that wins the game. Default is 2048.
            rng (Optional[random.Random]): Random source for spawns. A new
                random.Random(seed) is created when omitted.
            seed (Optional[int]): Seed for the default random source.
        Raises:
            InvalidConfiguration: If size < 2, win_tile is not a reachable tile
                value, or both rng and seed are given.
        """
        self.size = validate_board_size(size)
        self.win_tile = validate_win_tile(win_tile)
        if rng is not None and seed is not None:
            raise InvalidConfiguration("Pass either rng or seed, not both; seed the rng yourself.")
        self._rng = rng if rng is not None else random.Random(seed)
        self._ids = itertools.count(1)
        self._board = Board(self.size)
        self.score = 0
        self.won = False
        self.over = False

    # --- Session Lifecycle ---

    def new_game(self, size: Optional[int] = None) -> BoardSnapshot:
        """
        Clears the board, resets score and flags, then spawns the starting tiles.
        Args:
            size (Optional[int]): Board size for the new session. Defaults to
                the engine's configured size.
        Returns:
            BoardSnapshot: The initial board.
        Raises:
            InvalidConfiguration: If size < 2.
        """
        if size is not None:
            self.size = validate_board_size(size)
        self._board = Board(self.size)
        self.score = 0
        self.won = False
        self.over = False
        for _ in range(START_TILES):
            self._spawn_tile()
        self.over = self._board.is_terminal()
        logger.debug("New %dx%d game started (win tile %d)", self.size, self.size, self.win_tile)
        return self.snapshot()

    def load_board(self, grid: Sequence[Sequence[int]], score: int = 0) -> BoardSnapshot:
        """
        Replaces the session with a board given as rows of values (0 = empty).
        Tiles receive fresh ids in row-major order.
        Args:
            grid (Sequence[Sequence[int]]): Square matrix, grid[y][x].
            score (int): Cumulative score to resume from.
        Returns:
            BoardSnapshot: The loaded board.
        Raises:
            InvalidInput: If the grid is not square or holds a value that is
                neither 0 nor a power of two >= 2, or if score is negative.
            InvalidConfiguration: If the grid is smaller than 2 x 2.
        """
        size = len(grid)
        if not grid or not all(len(row) == size for row in grid):
            raise InvalidInput("Board must be a non-empty square matrix.")
        validate_board_size(size)
        if isinstance(score, bool) or not isinstance(score, int) or score < 0:
            raise InvalidInput(f"Score must be a non-negative integer, got {score!r}.")

        board = Board(size)
        for y, row in enumerate(grid):
            for x, value in enumerate(row):
                if value == 0:
                    continue
                if (isinstance(value, bool) or not isinstance(value, int)
                        or value < 2 or value & (value - 1)):
                    raise InvalidInput(f"Invalid tile value {value!r} at ({x}, {y}).")
                board.insert(Tile(id=self._next_id(), x=x, y=y, value=value))

        self.size = size
        self._board = board
        self.score = score
        self.won = any(tile.value >= self.win_tile for tile in board.tiles())
        self.over = board.is_terminal()
        return self.snapshot()

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(
            size=self.size,
            tiles=tuple(tile.snapshot() for tile in self._board.tiles()),
            score=self.score,
            won=self.won,
            over=self.over,
        )

    def available_directions(self) -> List[DIRECTION]:
        """Directions in which at least one tile can move or merge."""
        if self.over:
            return []
        return [d for d in DIRECTION if self._board.can_move(VECTORS[d])]

    # --- Core Move Processing ---

    def move(self, direction: Union[DIRECTION, str]) -> MoveResult:
        """
        Slides every tile as far as possible in the given direction, merging
        equal neighbours once, then spawns one tile if anything changed.
        Args:
            direction (Union[DIRECTION, str]): Direction of the move.
        Returns:
            MoveResult: Post-move board, score gain and terminal flags.
        Raises:
            InvalidInput: If direction is not up, right, down or left.
        """
        direction = parse_direction(direction)
        if self.over:
            return MoveResult(board=self.snapshot(), direction=direction,
                              moved=False, score_gain=0)

        vector = VECTORS[direction]
        xs, ys = build_traversals(self.size, vector)
        board = self._board

        for tile in board.tiles():
            tile.previous_position = tile.position
            tile.merged_from = ()

        merged_ids = set()
        moved = False
        score_gain = 0
        merges = 0
        reached_target = False

        for y in ys:
            for x in xs:
                tile = board.tile_at((x, y))
                if tile is None:
                    continue

                farthest, next_position = board.find_farthest_position(tile.position, vector)
                target = board.tile_at(next_position) if next_position is not None else None

                if target is not None and target.value == tile.value and target.id not in merged_ids:
                    merged = self._merge(tile, target)
                    merged_ids.add(merged.id)
                    score_gain += merged.value
                    merges += 1
                    if merged.value == self.win_tile:
                        reached_target = True
                    moved = True
                elif farthest != tile.position:
                    board.relocate(tile, farthest)
                    moved = True

        spawned = None
        if moved:
            spawned = self._spawn_tile()
            self.score += score_gain
            if reached_target and not self.won:
                self.won = True
                logger.debug("Win tile %d reached with score %d", self.win_tile, self.score)
        if not self.over and board.is_terminal():
            self.over = True
            logger.debug("Game over with score %d", self.score)

        return MoveResult(
            board=self.snapshot(),
            direction=direction,
            moved=moved,
            score_gain=score_gain,
            merges=merges,
            spawned=spawned.snapshot() if spawned is not None else None,
        )

    # --- Internals ---

    def _next_id(self) -> int:
        return next(self._ids)

    def _merge(self, source: Tile, target: Tile) -> Tile:
        """Replaces two equal tiles with one of double value at the target's cell."""
        self._board.remove(source)
        self._board.remove(target)
        merged = Tile(
            id=self._next_id(),
            x=target.x,
            y=target.y,
            value=source.value * 2,
            merged_from=(source.id, target.id),
        )
        self._board.insert(merged)
        return merged

    def _spawn_tile(self) -> Tile:
        """
        Adds a new tile (90% chance of 2, 10% chance of 4) to a uniformly
        chosen empty cell.
        Raises:
            InvariantViolation: If the board has no empty cell.
        """
        empty_cells = self._board.empty_cells()
        if not empty_cells:
            raise InvariantViolation("Spawn requested on a board with no empty cell.")
        x, y = self._rng.choice(empty_cells)
        value = 4 if self._rng.random() < SPAWN_FOUR_PROBABILITY else 2
        tile = Tile(id=self._next_id(), x=x, y=y, value=value)
        self._board.insert(tile)
        return tile

