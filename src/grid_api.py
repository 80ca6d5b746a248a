# grid_api.py
# HTTP surface for the 2048 grid engine. Each game is an engine instance held
# server-side and addressed by its game_id.

import logging
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel, Field, field_validator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import grid_engine
from grid_config import ServiceConfig, get_config

logger = logging.getLogger(__name__)


def configure_logging(config: ServiceConfig) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _rate_limit() -> str:
    return get_config().rate_limit


# --- Session Store ---

class GameStore:
    """
    In-memory registry of running games. Once more than max_games sessions
    exist, the least recently used one is dropped. Without an explicit
    max_games the limit follows the current service configuration.
    """

    def __init__(self, max_games: Optional[int] = None):
        self._max_games = max_games
        self._games: "OrderedDict[str, grid_engine.GridEngine]" = OrderedDict()

    @property
    def max_games(self) -> int:
        if self._max_games is not None:
            return self._max_games
        return get_config().max_games

    def __len__(self) -> int:
        return len(self._games)

    def __contains__(self, game_id: str) -> bool:
        return game_id in self._games

    def add(self, engine: grid_engine.GridEngine) -> str:
        game_id = uuid.uuid4().hex
        self._games[game_id] = engine
        while len(self._games) > self.max_games:
            evicted_id, _ = self._games.popitem(last=False)
            logger.info("Evicted game %s (store limit %d)", evicted_id, self.max_games)
        return game_id

    def get(self, game_id: str) -> grid_engine.GridEngine:
        engine = self._games.get(game_id)
        if engine is None:
            raise HTTPException(status_code=404, detail=f"Game '{game_id}' not found.")
        self._games.move_to_end(game_id)
        return engine

    def remove(self, game_id: str) -> None:
        if self._games.pop(game_id, None) is None:
            raise HTTPException(status_code=404, detail=f"Game '{game_id}' not found.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_config())
    yield


# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="Play 2048 against a server-side grid engine. "\
                "Start a game, then send one direction per move.",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.state.games = GameStore()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: Optional[int] = Field(
        default=None,
        gt=1, # Board size must be at least 2x2
        description="Size of the N x N game board. Defaults to the server's configured size (4)."
    )
    win_tile: Optional[int] = Field(
        default=None,
        gt=0,
        description="The tile value to achieve for winning the game. Defaults to 2048."
    )
    seed: Optional[int] = Field(
        default=None,
        description="Seed for tile spawns, for reproducible games."
    )

    @field_validator("size")
    @classmethod
    def size_within_limit(cls, size: Optional[int]) -> Optional[int]:
        max_size = get_config().max_board_size
        if size is not None and size > max_size:
            raise ValueError(f"Board size must be at most {max_size}.")
        return size


class TileData(BaseModel):
    """A single tile, stable by id across moves until merged away."""
    id: int
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    value: int = Field(..., gt=0)
    previous_position: Optional[Tuple[int, int]] = Field(
        default=None,
        description="Cell the tile occupied before the last move; null for tiles created by it."
    )
    merged_from: List[int] = Field(
        default_factory=list,
        description="Ids of the two tiles consumed to create this one during the last move."
    )


class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    game_id: str
    board: List[List[int]] = Field(..., description="The N x N game board as rows, 0 for empty cells.")
    tiles: List[TileData] = Field(..., description="Every live tile with its id and coordinate.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    won: bool
    over: bool
    progress: grid_engine.GameProgressState = Field(
        ...,
        description="Current progress state of the game (IN_PROGRESS, GAME_WON, GAME_OVER)."
    )
    win_tile: int = Field(..., gt=0, description="The tile value required to win this game instance.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")
    available_moves: List[grid_engine.DIRECTION] = Field(
        default_factory=list,
        description="Directions that would change the board."
    )


class MoveRequestData(BaseModel):
    """Data required to make a move."""
    direction: str = Field(..., description="Direction of the move (up, right, down, left).")


class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    moved: bool = Field(
        ...,
        description="True if the move resulted in a change to the board state, False otherwise."
    )
    score_gain: int = Field(..., ge=0, description="Points earned by merges during this move.")
    spawned: Optional[TileData] = None
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was ineffective or the game ended."
    )


def _tile_data(tile: grid_engine.TileSnapshot) -> TileData:
    return TileData(
        id=tile.id,
        x=tile.x,
        y=tile.y,
        value=tile.value,
        previous_position=tile.previous_position,
        merged_from=list(tile.merged_from),
    )


def _state_fields(game_id: str, engine: grid_engine.GridEngine,
                  snapshot: grid_engine.BoardSnapshot) -> dict:
    return dict(
        game_id=game_id,
        board=snapshot.grid,
        tiles=[_tile_data(tile) for tile in snapshot.tiles],
        score=snapshot.score,
        won=snapshot.won,
        over=snapshot.over,
        progress=snapshot.progress,
        win_tile=engine.win_tile,
        board_size=snapshot.size,
        available_moves=engine.available_directions(),
    )

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit(_rate_limit)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Creates a new game and returns its initial state.

    - **size**: Dimension of the N x N board (e.g., 4 for 4x4).
    - **win_tile**: Tile value to reach to win (e.g., 2048).
    - **seed**: Optional seed making the tile spawns reproducible.

    The returned `game_id` addresses the game in subsequent requests.
    """
    config = get_config()
    size = settings.size if settings.size is not None else config.default_size
    win_tile = settings.win_tile if settings.win_tile is not None else config.default_win_tile

    try:
        engine = grid_engine.GridEngine(size=size, win_tile=win_tile, seed=settings.seed)
        snapshot = engine.new_game()
    except ValueError as e:
        # InvalidConfiguration from the engine (e.g., win_tile not a power of two)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")

    game_id = request.app.state.games.add(engine)
    logger.info("Started game %s (%dx%d, win tile %d)", game_id, size, size, win_tile)
    return GameStateData(**_state_fields(game_id, engine, snapshot))


@app.get("/game/{game_id}", response_model=GameStateData, summary="Get the Current Game State")
@limiter.limit(_rate_limit)
async def get_game(request: Request, game_id: str):
    """Returns the current board, score and status of a game."""
    engine = request.app.state.games.get(game_id)
    return GameStateData(**_state_fields(game_id, engine, engine.snapshot()))


@app.post("/game/{game_id}/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(_rate_limit)
async def make_move(request: Request, game_id: str, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    The engine will:
    1. Slide every tile in the chosen direction, merging equal neighbours once.
    2. If the board changed, add a new random tile (2 or 4).
    3. Update the score and the won/over flags.

    Moves sent after the game is over are accepted but leave the board unchanged.
    """
    engine = request.app.state.games.get(game_id)

    try:
        result = engine.move(request_data.direction)
    except ValueError as e:
        # InvalidInput: unknown direction
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error("Unexpected error in /game/%s/move: %s", game_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")

    message_for_client: Optional[str] = None
    if not result.moved:
        message_for_client = "Move was not effective; board state unchanged."
    if result.progress == grid_engine.GameProgressState.GAME_WON:
        message_for_client = "Congratulations! You won!"
    elif result.progress == grid_engine.GameProgressState.GAME_OVER:
        message_for_client = "Game Over. No more valid moves."
        logger.info("Game %s over with score %d", game_id, result.score)

    return MoveResponseData(
        **_state_fields(game_id, engine, result.board),
        moved=result.moved,
        score_gain=result.score_gain,
        spawned=_tile_data(result.spawned) if result.spawned is not None else None,
        message=message_for_client,
    )


@app.delete("/game/{game_id}", status_code=204, summary="Discard a Game")
@limiter.limit(_rate_limit)
async def delete_game(request: Request, game_id: str):
    """Removes a game from the server."""
    request.app.state.games.remove(game_id)
    logger.info("Discarded game %s", game_id)
    return Response(status_code=204)
