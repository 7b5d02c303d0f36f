"""
Chess LLM Arena - pit chess players against each other and rate language models.

This package runs concurrent matches between a local UCI engine and remote
language-model agents, aggregates the results and estimates an agent's ELO by
searching over a ladder of engine strengths.
"""

__version__ = "0.3.0"
__author__ = "Chess LLM Arena Team"
__license__ = "MIT"

# Core imports
from .core.models import AgentConfig, Config, EloEstimate, EngineConfig, LevelResult
from .core.game import MatchRunner
from .core.tournament import TournamentManager
from .core.estimator import EloEstimator
from .llm.client import AgentPlayer

__all__ = [
    "AgentConfig",
    "Config",
    "EloEstimate",
    "EngineConfig",
    "LevelResult",
    "MatchRunner",
    "TournamentManager",
    "EloEstimator",
    "AgentPlayer",
]
