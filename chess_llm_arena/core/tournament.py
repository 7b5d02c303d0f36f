"""
Tournament manager: runs N independent matches concurrently.

Every match runs as its own asyncio task and reports snapshots through a
queue. A single coordinating loop drains the queue, so the aggregate
statistics have exactly one writer and need no lock. A match's terminal
outcome is counted once, no matter how often its terminal snapshot arrives.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from .cancellation import CancellationToken
from .game import MatchRunner
from .models import (
    Config,
    MatchUpdate,
    PlayerConfig,
    TournamentStats,
    TournamentUpdate,
)
from .player import Player, create_player

logger = logging.getLogger(__name__)

PlayerFactory = Callable[[PlayerConfig, Config], Player]
TournamentCallback = Callable[[TournamentUpdate], None]


class TournamentManager:
    """
    Plays ``game_count`` games between two player configurations.

    Each match gets freshly built players, so no state leaks between games.
    """

    def __init__(
        self,
        game_count: int,
        white_config: PlayerConfig,
        black_config: PlayerConfig,
        config: Optional[Config] = None,
        on_update: Optional[TournamentCallback] = None,
        player_factory: PlayerFactory = create_player,
        token: Optional[CancellationToken] = None,
    ):
        if game_count < 1:
            raise ValueError(f"game_count must be at least 1, got {game_count}")

        self.game_count = game_count
        self.white_config = white_config
        self.black_config = black_config
        self.config = config or Config()
        self.on_update = on_update
        self.player_factory = player_factory
        self.token = token or CancellationToken()

        self.matches: List[MatchRunner] = []
        self.stats = TournamentStats(total=game_count)
        self._snapshots: List[MatchUpdate] = []
        self._counted: List[bool] = []

    async def start(self) -> TournamentUpdate:
        """
        Create all matches, run them concurrently and wait for every one.

        Returns:
            The final consolidated snapshot
        """
        if self.matches:
            raise RuntimeError("Tournament already started")

        queue: asyncio.Queue = asyncio.Queue()

        for i in range(self.game_count):
            white = self.player_factory(self.white_config, self.config)
            black = self.player_factory(self.black_config, self.config)
            runner = MatchRunner(
                i + 1,
                white,
                black,
                self.config,
                on_update=queue.put_nowait,
                token=self.token.child(),
            )
            self.matches.append(runner)
            self._snapshots.append(runner.snapshot())
            self._counted.append(False)

        logger.info(
            f"Starting tournament: {self.game_count} games, "
            f"{self.white_config} (White) vs {self.black_config} (Black)"
        )

        tasks = [
            asyncio.create_task(match.start(), name=f"match-{match.id}")
            for match in self.matches
        ]
        closer = asyncio.create_task(self._close_when_done(tasks, queue))

        try:
            while True:
                update = await queue.get()
                if update is None:
                    break
                self._handle_match_update(update)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, closer, return_exceptions=True)

        logger.info(
            f"Tournament finished: {self.stats.completed}/{self.stats.total} counted, "
            f"+{self.stats.white_wins} ={self.stats.draws} -{self.stats.black_wins} (White's view)"
        )
        return self.snapshot()

    @staticmethod
    async def _close_when_done(tasks: List[asyncio.Task], queue: asyncio.Queue) -> None:
        await asyncio.gather(*tasks, return_exceptions=True)
        queue.put_nowait(None)

    def _handle_match_update(self, update: MatchUpdate) -> None:
        """Fold one match snapshot into the aggregate and republish."""
        index = update.id - 1
        self._snapshots[index] = update

        if update.is_terminal and update.outcome is not None and not self._counted[index]:
            self._counted[index] = True
            self.stats.record(update.outcome)

        if self.on_update:
            self.on_update(self.snapshot())

    def snapshot(self) -> TournamentUpdate:
        return TournamentUpdate(matches=tuple(self._snapshots), stats=self.stats.copy())

    def stop_all(self) -> None:
        """Ask every match to stop. Does not wait; safe to call repeatedly."""
        self.token.cancel()
        for match in self.matches:
            match.terminate()
