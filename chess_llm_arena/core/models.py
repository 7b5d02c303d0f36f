"""
Core data models for the Chess LLM Arena.

This module defines the data structures shared by the match runner, the
tournament manager and the ELO estimator: player configurations, per-match
snapshots, tournament statistics, ladder levels and rating estimates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import chess


class MatchStatus(str, Enum):
    """Lifecycle of a single match."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        """True once the match can no longer change."""
        return self in (MatchStatus.COMPLETED, MatchStatus.ERRORED)


class Outcome(str, Enum):
    """Terminal outcome of a match."""

    WHITE_WIN = "white"
    BLACK_WIN = "black"
    DRAW = "draw"

    @property
    def result(self) -> str:
        """PGN result string."""
        if self is Outcome.WHITE_WIN:
            return "1-0"
        if self is Outcome.BLACK_WIN:
            return "0-1"
        return "1/2-1/2"

    @classmethod
    def win_for(cls, color: chess.Color) -> Outcome:
        """Outcome in which ``color`` wins."""
        return cls.WHITE_WIN if color == chess.WHITE else cls.BLACK_WIN


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for a local UCI search engine player."""

    depth: int = 10
    engine_path: Optional[str] = None
    name: str = ""

    def __post_init__(self):
        if self.depth < 1:
            raise ValueError(f"Search depth must be positive, got {self.depth}")

    @property
    def display_name(self) -> str:
        return self.name or f"Stockfish(d{self.depth})"

    def __str__(self) -> str:
        return self.display_name


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for a remote language-model player."""

    provider: str  # "openai", "groq", "anthropic"
    model: str
    credential: Optional[str] = field(default=None, repr=False)
    name: str = ""
    base_url: Optional[str] = None

    def __post_init__(self):
        if not self.provider:
            raise ValueError("Provider cannot be empty")
        if not self.model:
            raise ValueError("Model cannot be empty")
        object.__setattr__(self, "provider", self.provider.lower())

    @property
    def display_name(self) -> str:
        return self.name or self.model

    def __str__(self) -> str:
        return f"{self.display_name} ({self.provider}:{self.model})"


# Tagged union of the two player kinds; the class is the tag.
PlayerConfig = Union[EngineConfig, AgentConfig]


@dataclass(frozen=True)
class Performance:
    """Heuristic per-side performance score of a finished match."""

    white_score: int
    black_score: int

    @property
    def advantage(self) -> int:
        return self.white_score - self.black_score


@dataclass(frozen=True)
class MatchUpdate:
    """Immutable snapshot of one match, emitted on every transition and move."""

    id: int
    fen: str
    status: MatchStatus
    outcome: Optional[Outcome] = None
    move_count: int = 0
    history: Tuple[str, ...] = ()
    performance: Optional[Performance] = None
    termination: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass
class TournamentStats:
    """Aggregate counters of a tournament."""

    total: int = 0
    completed: int = 0
    white_wins: int = 0
    black_wins: int = 0
    draws: int = 0

    def record(self, outcome: Outcome) -> None:
        """Count one finished match."""
        self.completed += 1
        if outcome is Outcome.WHITE_WIN:
            self.white_wins += 1
        elif outcome is Outcome.BLACK_WIN:
            self.black_wins += 1
        else:
            self.draws += 1

    def copy(self) -> TournamentStats:
        return TournamentStats(
            total=self.total,
            completed=self.completed,
            white_wins=self.white_wins,
            black_wins=self.black_wins,
            draws=self.draws,
        )

    @property
    def is_finished(self) -> bool:
        return self.completed >= self.total


@dataclass(frozen=True)
class TournamentUpdate:
    """Consolidated tournament snapshot republished on every match event."""

    matches: Tuple[MatchUpdate, ...]
    stats: TournamentStats


@dataclass(frozen=True)
class StrengthLevel:
    """One rung of the engine strength ladder."""

    elo: int    # Nominal rating of the engine at this depth
    depth: int  # Search depth handed to the engine
    label: str = ""


@dataclass(frozen=True)
class LevelResult:
    """Games played by the agent under test against one ladder level."""

    level: int  # Nominal rating of the level
    wins: int
    losses: int
    draws: int
    depth: int = 0
    label: str = ""

    @property
    def total(self) -> int:
        return self.wins + self.losses + self.draws

    @property
    def score(self) -> float:
        """Score of the agent under test in [0, 100]."""
        if self.total == 0:
            return 0.0
        return (self.wins + 0.5 * self.draws) / self.total * 100

    @property
    def win_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.wins / self.total * 100


@dataclass(frozen=True)
class EloEstimate:
    """Final rating estimate of an estimation run."""

    elo: int
    range: int          # Half-width of the plausible band, in rating points
    confidence: float   # Heuristic percentage in [50, 95]
    curve: Tuple[Tuple[int, float], ...] = ()  # (rating, log-likelihood)

    @property
    def low(self) -> int:
        return self.elo - self.range

    @property
    def high(self) -> int:
        return self.elo + self.range

    @property
    def reliability(self) -> str:
        """Coarse label for the width of the plausible band."""
        width = 2 * self.range
        if width < 100:
            return "Very High"
        if width < 200:
            return "High"
        if width < 350:
            return "Medium"
        return "Low"


@dataclass(frozen=True)
class LevelPreview:
    """Live position from the tournament currently being played."""

    fen: str
    level: int
    depth: int


@dataclass(frozen=True)
class EstimationUpdate:
    """Progress event of an estimation run."""

    status: str  # "running" or "completed"
    progress: float = 0.0
    current_level: Optional[int] = None
    total_levels: int = 0
    current_elo: Optional[int] = None
    results: Tuple[LevelResult, ...] = ()
    preview: Optional[LevelPreview] = None
    estimate: Optional[EloEstimate] = None
    stopped_early: bool = False


@dataclass
class Config:
    """Runtime settings shared by matches, tournaments and estimation runs."""

    # Engine settings
    engine_path: Optional[str] = None
    engine_threads: int = 1

    # Estimation settings
    games_per_level: int = 4
    agent_color: str = "black"  # Colour of the agent under test

    # Game settings
    move_timeout: float = 60.0
    max_plies: int = 300
    move_delay: float = 0.0

    # LLM settings
    llm_temperature: float = 0.1

    # Output settings
    output_dir: str = "runs"
    save_pgn: bool = False

    def __post_init__(self):
        self.agent_color = self.agent_color.lower()
        if self.agent_color not in ("white", "black"):
            raise ValueError(f"agent_color must be 'white' or 'black', got {self.agent_color!r}")
        if self.games_per_level < 1:
            raise ValueError("games_per_level must be at least 1")

    @property
    def agent_plays_white(self) -> bool:
        return self.agent_color == "white"

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Config:
        """Create config from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
