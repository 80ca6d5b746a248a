# grid_config.py
# Service configuration for the 2048 game API, read from the environment.

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from limits import parse_many

import grid_engine

ENV_PREFIX = "GRID2048_"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class ServiceConfig:
    """Settings shared by the API and the CLI driver."""
    default_size: int = grid_engine.DEFAULT_BOARD_SIZE
    default_win_tile: int = grid_engine.DEFAULT_WIN_TILE
    max_board_size: int = 16         # Largest board the API will create
    rate_limit: str = "100/minute"   # slowapi limit string applied to every route
    max_games: int = 1000            # Sessions kept in memory before the oldest is evicted
    log_level: str = "INFO"


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from None


def _validate_config(config: ServiceConfig) -> None:
    """Validate configuration consistency."""
    try:
        grid_engine.validate_board_size(config.default_size)
    except grid_engine.InvalidConfiguration as e:
        raise ValueError(f"{ENV_PREFIX}BOARD_SIZE: {e}") from None
    try:
        grid_engine.validate_win_tile(config.default_win_tile)
    except grid_engine.InvalidConfiguration as e:
        raise ValueError(f"{ENV_PREFIX}WIN_TILE: {e}") from None

    if config.max_board_size < config.default_size:
        raise ValueError(
            f"{ENV_PREFIX}MAX_BOARD_SIZE ({config.max_board_size}) must be at least "
            f"{ENV_PREFIX}BOARD_SIZE ({config.default_size})"
        )

    if config.max_games < 1:
        raise ValueError(f"{ENV_PREFIX}MAX_GAMES must be at least 1, got {config.max_games}")

    if config.log_level not in LOG_LEVELS:
        raise ValueError(
            f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got '{config.log_level}'"
        )

    try:
        parse_many(config.rate_limit)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}RATE_LIMIT is not a valid limit string: '{config.rate_limit}'") from None


def load_config(env: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """
    Load and validate the service configuration.

    Args:
        env: Mapping to read GRID2048_* variables from. Uses os.environ if None.

    Returns:
        Validated ServiceConfig instance.

    Raises:
        ValueError: If a variable is malformed or out of range.
    """
    if env is None:
        env = os.environ

    defaults = ServiceConfig()
    config = ServiceConfig(
        default_size=_read_int(env, "BOARD_SIZE", defaults.default_size),
        default_win_tile=_read_int(env, "WIN_TILE", defaults.default_win_tile),
        max_board_size=_read_int(env, "MAX_BOARD_SIZE", defaults.max_board_size),
        rate_limit=env.get(ENV_PREFIX + "RATE_LIMIT", defaults.rate_limit).strip(),
        max_games=_read_int(env, "MAX_GAMES", defaults.max_games),
        log_level=env.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).strip().upper(),
    )

    _validate_config(config)
    return config


# Module-level singleton for convenience
_cached_config: Optional[ServiceConfig] = None


def get_config() -> ServiceConfig:
    """Get the cached service configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(env: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(env)
    return _cached_config
