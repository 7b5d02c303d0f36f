"""
Core package for Chess LLM Arena.

This package contains the match orchestration and strength-estimation engine:
data models, the player abstraction, the engine player, the match runner, the
tournament manager and the ELO estimator.
"""

from .models import (
    AgentConfig,
    Config,
    EloEstimate,
    EngineConfig,
    EstimationUpdate,
    LevelResult,
    MatchStatus,
    MatchUpdate,
    Outcome,
    Performance,
    StrengthLevel,
    TournamentStats,
    TournamentUpdate,
)

from .errors import (
    AuthenticationError,
    IllegalMoveError,
    PlayerError,
    ProtocolError,
    TransportError,
)

from .player import Player, create_player, parse_player_spec
from .engine import EnginePlayer, autodetect_stockfish, get_friendly_stockfish_hint
from .game import MatchRunner
from .tournament import TournamentManager
from .estimator import DEFAULT_LADDER, EloEstimator

__all__ = [
    # Data models
    "AgentConfig",
    "Config",
    "EloEstimate",
    "EngineConfig",
    "EstimationUpdate",
    "LevelResult",
    "MatchStatus",
    "MatchUpdate",
    "Outcome",
    "Performance",
    "StrengthLevel",
    "TournamentStats",
    "TournamentUpdate",

    # Errors
    "AuthenticationError",
    "IllegalMoveError",
    "PlayerError",
    "ProtocolError",
    "TransportError",

    # Players
    "Player",
    "create_player",
    "parse_player_spec",
    "EnginePlayer",
    "autodetect_stockfish",
    "get_friendly_stockfish_hint",

    # Orchestration
    "MatchRunner",
    "TournamentManager",
    "DEFAULT_LADDER",
    "EloEstimator",
]
