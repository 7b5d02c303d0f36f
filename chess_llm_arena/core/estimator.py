"""
ELO estimation of an agent against a ladder of engine strengths.

The estimator binary-searches the ladder: each probe is a full tournament
between the agent under test and the engine at one level. A score above 55%
moves the search up, below 45% moves it down, anything in between stops the
search. The tested levels are then fitted with the likelihood model in
:mod:`chess_llm_arena.core.rating`.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .cancellation import CancellationToken
from .models import (
    AgentConfig,
    Config,
    EloEstimate,
    EngineConfig,
    EstimationUpdate,
    LevelPreview,
    LevelResult,
    MatchStatus,
    StrengthLevel,
    TournamentUpdate,
)
from .player import create_player
from .rating import build_estimate
from .tournament import PlayerFactory, TournamentManager

logger = logging.getLogger(__name__)

EstimationCallback = Callable[[EstimationUpdate], None]

# Nominal ratings of Stockfish searching to a fixed depth
DEFAULT_LADDER: Tuple[StrengthLevel, ...] = (
    StrengthLevel(elo=800, depth=1, label="Beginner"),
    StrengthLevel(elo=1000, depth=2, label="Novice"),
    StrengthLevel(elo=1200, depth=3, label="Casual"),
    StrengthLevel(elo=1400, depth=5, label="Club"),
    StrengthLevel(elo=1600, depth=7, label="Intermediate"),
    StrengthLevel(elo=1800, depth=9, label="Advanced"),
    StrengthLevel(elo=2000, depth=12, label="Expert"),
    StrengthLevel(elo=2200, depth=15, label="Master"),
)

STRONGER_THRESHOLD = 55.0
WEAKER_THRESHOLD = 45.0


def next_bracket(low: int, high: int, mid: int, score: float) -> Optional[Tuple[int, int]]:
    """
    Narrow the search bracket after testing ladder index ``mid``.

    Returns:
        The new (low, high), or None when the score is even and the search stops
    """
    if score > STRONGER_THRESHOLD:
        return mid + 1, high
    if score < WEAKER_THRESHOLD:
        return low, mid - 1
    return None


class EloEstimator:
    """
    Estimates the rating of one agent configuration.

    ``stop()`` is cooperative: no new level starts after it, and the level in
    progress is abandoned at its matches' next suspension point and left out
    of the fit.
    """

    def __init__(
        self,
        agent_config: AgentConfig,
        games_per_level: Optional[int] = None,
        config: Optional[Config] = None,
        on_update: Optional[EstimationCallback] = None,
        ladder: Sequence[StrengthLevel] = DEFAULT_LADDER,
        player_factory: PlayerFactory = create_player,
    ):
        """
        Args:
            agent_config: The agent under test
            games_per_level: Games per probed level (config default when None)
            config: Global configuration
            on_update: Progress callback
            ladder: Levels ordered from weakest to strongest
            player_factory: Builds a Player from a configuration
        """
        if not ladder:
            raise ValueError("Strength ladder cannot be empty")

        self.agent_config = agent_config
        self.config = config or Config()
        self.games_per_level = games_per_level or self.config.games_per_level
        self.on_update = on_update
        self.ladder: Tuple[StrengthLevel, ...] = tuple(ladder)
        self.player_factory = player_factory

        self.results: List[LevelResult] = []
        self.estimate: Optional[EloEstimate] = None
        self.token = CancellationToken()
        self._started = False

    async def start(self) -> Optional[EloEstimate]:
        """
        Run the search and the fit.

        Returns:
            The estimate, or None when no level finished
        """
        if self._started:
            raise RuntimeError("Estimator already started")
        self._started = True

        logger.info(
            f"Estimating {self.agent_config} over {len(self.ladder)} levels, "
            f"{self.games_per_level} games per level"
        )
        await self._search()

        self.estimate = build_estimate(self.results)
        if self.estimate:
            logger.info(
                f"Estimated ELO for {self.agent_config}: {self.estimate.elo} "
                f"±{self.estimate.range} ({self.estimate.confidence:.0f}% confidence)"
            )
        else:
            logger.info(f"No levels completed for {self.agent_config}; no estimate")

        self._notify(EstimationUpdate(
            status="completed",
            progress=self._progress(),
            total_levels=len(self.ladder),
            results=tuple(self.results),
            estimate=self.estimate,
            stopped_early=self.token.cancelled,
        ))
        return self.estimate

    async def _search(self) -> None:
        low, high = 0, len(self.ladder) - 1

        while low <= high and not self.token.cancelled:
            mid = (low + high) // 2
            level = self.ladder[mid]

            self._notify(EstimationUpdate(
                status="running",
                progress=self._progress(),
                current_level=len(self.results),
                total_levels=len(self.ladder),
                current_elo=level.elo,
                results=tuple(self.results),
            ))

            result = await self.run_level(level)
            if result is None:
                break
            self.results.append(result)

            logger.info(
                f"Level {level.elo} (depth {level.depth}): "
                f"+{result.wins} ={result.draws} -{result.losses}, score {result.score:.1f}%"
            )
            self._notify(EstimationUpdate(
                status="running",
                progress=self._progress(),
                current_level=len(self.results) - 1,
                total_levels=len(self.ladder),
                current_elo=level.elo,
                results=tuple(self.results),
            ))

            bracket = next_bracket(low, high, mid, result.score)
            if bracket is None:
                logger.info(f"Even result at level {level.elo}; search stops")
                break
            low, high = bracket

    async def run_level(self, level: StrengthLevel) -> Optional[LevelResult]:
        """
        Play one tournament against the engine at ``level``.

        Returns:
            The level result, or None if the run was stopped meanwhile
        """
        engine_config = EngineConfig(
            depth=level.depth,
            engine_path=self.config.engine_path,
            name=f"Stockfish {level.elo}",
        )
        agent_white = self.config.agent_plays_white
        white, black = (self.agent_config, engine_config) if agent_white else (engine_config, self.agent_config)

        manager = TournamentManager(
            self.games_per_level,
            white,
            black,
            self.config,
            on_update=lambda update: self._forward_preview(level, update),
            player_factory=self.player_factory,
            token=self.token.child(),
        )
        final = await manager.start()

        if self.token.cancelled:
            logger.info(f"Level {level.elo} abandoned after stop request")
            return None

        stats = final.stats
        if agent_white:
            wins, losses = stats.white_wins, stats.black_wins
        else:
            wins, losses = stats.black_wins, stats.white_wins

        result = LevelResult(
            level=level.elo,
            wins=wins,
            losses=losses,
            draws=stats.draws,
            depth=level.depth,
            label=level.label,
        )
        return result if result.total > 0 else None

    def _forward_preview(self, level: StrengthLevel, update: TournamentUpdate) -> None:
        active = next((m for m in update.matches if m.status is MatchStatus.ACTIVE), None)
        if active is None:
            return
        self._notify(EstimationUpdate(
            status="running",
            progress=self._progress(),
            current_level=len(self.results),
            total_levels=len(self.ladder),
            current_elo=level.elo,
            results=tuple(self.results),
            preview=LevelPreview(fen=active.fen, level=level.elo, depth=level.depth),
        ))

    def _progress(self) -> float:
        return len(self.results) / len(self.ladder) * 100

    def _notify(self, update: EstimationUpdate) -> None:
        if self.on_update:
            self.on_update(update)

    def stop(self) -> None:
        """Stop starting new levels and abandon the current one."""
        self.token.cancel()
