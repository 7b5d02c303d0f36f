"""
Match runner: drives one game between two players to completion.

The runner owns the live game, asks the side to move for a move, submits it to
the rules authority and publishes a snapshot after every transition and every
move. Any failure to produce a legal move is a forfeit by the mover; nothing is
retried, so a match always terminates.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import chess

from .cancellation import CancellationToken
from .errors import PlayerError, TransportError
from .models import Config, MatchStatus, MatchUpdate, Outcome, Performance
from .player import Player
from .rules import ChessRules

logger = logging.getLogger(__name__)

MatchCallback = Callable[[MatchUpdate], None]

TERMINATION_FORFEIT = "forfeit"
TERMINATION_MOVE_LIMIT = "move_limit"
TERMINATION_TERMINATED = "terminated"


def calculate_performance(outcome: Optional[Outcome], total_moves: int) -> Optional[Performance]:
    """
    Heuristic per-side score in [5, 95].

    Seeded at 50/50 and shifted 20 points toward the winner, who also gets up to
    20 more points for a short game. The loser receives the complement, so the
    two scores always sum to 100. Not computed for games without a move.
    """
    if outcome is None or total_moves == 0:
        return None
    if outcome is Outcome.DRAW:
        return Performance(white_score=50, black_score=50)

    length_factor = max(0.0, (50 - total_moves) / 50)
    winner_score = min(95, max(5, round(70 + length_factor * 20)))
    loser_score = 100 - winner_score

    if outcome is Outcome.WHITE_WIN:
        return Performance(white_score=winner_score, black_score=loser_score)
    return Performance(white_score=loser_score, black_score=winner_score)


class MatchRunner:
    """
    Plays one game between two players.

    State machine: ``pending -> active -> completed`` or
    ``pending -> active -> errored``. The snapshot stream is strictly ordered
    by move; once terminal the state never changes again.
    """

    def __init__(
        self,
        match_id: int,
        white: Player,
        black: Player,
        config: Optional[Config] = None,
        on_update: Optional[MatchCallback] = None,
        token: Optional[CancellationToken] = None,
    ):
        """
        Args:
            match_id: Identifier reported in every snapshot
            white: Player for White
            black: Player for Black
            config: Global configuration
            on_update: Called with a fresh snapshot on every event
            token: Cancellation token; a private one is created when None
        """
        self.id = match_id
        self.white = white
        self.black = black
        self.config = config or Config()
        self.on_update = on_update
        self.token = token or CancellationToken()

        self.rules = ChessRules()
        self.status = MatchStatus.PENDING
        self.outcome: Optional[Outcome] = None
        self.move_count = 0
        self.history: List[str] = []
        self.performance: Optional[Performance] = None
        self.termination: Optional[str] = None
        self.error: Optional[str] = None
        self._players_terminated = False
        self.token.on_cancel(self._forward_terminate)

    def snapshot(self) -> MatchUpdate:
        """Immutable view of the current state."""
        return MatchUpdate(
            id=self.id,
            fen=self.rules.fen,
            status=self.status,
            outcome=self.outcome,
            move_count=self.move_count,
            history=tuple(self.history),
            performance=self.performance,
            termination=self.termination,
            error=self.error,
        )

    async def start(self) -> MatchUpdate:
        """
        Play the game to the end.

        Never raises for player or rules failures; they end the match in the
        ``errored`` state and are reported through the snapshot stream.

        Returns:
            The terminal snapshot
        """
        if self.status is not MatchStatus.PENDING:
            raise RuntimeError(f"Match {self.id} already started")

        self.status = MatchStatus.ACTIVE
        self._notify()

        failed_side: Optional[chess.Color] = None
        if self.token.cancelled:
            # Stopped while pending: never acquire player resources
            self._finish(failed_side)
            return self.snapshot()

        try:
            async with AsyncExitStack() as stack:
                for color, player in ((chess.WHITE, self.white), (chess.BLACK, self.black)):
                    try:
                        await stack.enter_async_context(player)
                    except PlayerError as e:
                        if not self.token.cancelled:
                            failed_side = color
                            self.error = f"{player.name} failed to start: {e}"
                        break

                if failed_side is None:
                    failed_side = await self._play()
        except Exception as e:
            logger.exception(f"Match {self.id} failed unexpectedly")
            failed_side = self.rules.turn
            self.error = f"Unexpected failure: {e}"

        self._finish(failed_side)
        return self.snapshot()

    async def _play(self) -> Optional[chess.Color]:
        """Main loop. Returns the side that forfeited, if any."""
        while not self.rules.is_game_over():
            if self.token.cancelled:
                return None
            if self.rules.ply >= self.config.max_plies:
                self.termination = TERMINATION_MOVE_LIMIT
                return None

            side = self.rules.turn
            player = self.white if side == chess.WHITE else self.black

            try:
                move = await asyncio.wait_for(
                    player.produce_move(
                        self.rules.position(),
                        list(self.history),
                        self.rules.legal_moves(),
                        side,
                    ),
                    timeout=self.config.move_timeout
                )
            except asyncio.TimeoutError:
                error = TransportError(f"no move within {self.config.move_timeout}s")
                return self._forfeit(side, player, error)
            except PlayerError as e:
                return self._forfeit(side, player, e)

            # A reply that arrives after a stop request is discarded
            if self.token.cancelled:
                return None

            try:
                san = self.rules.apply_move(move)
            except PlayerError as e:
                return self._forfeit(side, player, e)

            self.history.append(san)
            self.move_count += 1
            logger.debug(f"Match {self.id}: {player.name} played {san}")
            self._notify()

            if self.config.move_delay > 0:
                await asyncio.sleep(self.config.move_delay)

        return None

    def _forfeit(self, side: chess.Color, player: Player, error: Exception) -> Optional[chess.Color]:
        if self.token.cancelled:
            # Failures caused by our own termination are not forfeits
            return None
        self.error = f"{player.name}: {type(error).__name__}: {error}"
        logger.warning(f"Match {self.id}: {'White' if side == chess.WHITE else 'Black'} forfeits ({self.error})")
        return side

    def _finish(self, failed_side: Optional[chess.Color]) -> None:
        """Enter the terminal state and compute the outcome."""
        if failed_side is not None:
            self.status = MatchStatus.ERRORED
            self.outcome = Outcome.win_for(not failed_side)
            self.termination = TERMINATION_FORFEIT
        elif self.rules.is_checkmate():
            self.status = MatchStatus.COMPLETED
            # The side to move is mated, so the side that just moved won
            self.outcome = Outcome.win_for(not self.rules.turn)
            self.termination = self.rules.termination()
        elif self.rules.is_draw() or self.termination == TERMINATION_MOVE_LIMIT:
            self.status = MatchStatus.COMPLETED
            self.outcome = Outcome.DRAW
            self.termination = self.termination or self.rules.termination()
        else:
            # Stopped from outside before the game ended
            self.status = MatchStatus.ERRORED
            self.outcome = None
            self.termination = TERMINATION_TERMINATED
            self.error = self.error or "terminated"

        self.performance = calculate_performance(self.outcome, self.move_count)

        if self.outcome is not None:
            logger.info(
                f"Match {self.id} finished: {self.outcome.result} "
                f"({self.termination}) after {self.move_count} plies"
            )
        else:
            logger.info(f"Match {self.id} terminated after {self.move_count} plies")

        if self.config.save_pgn and self.outcome is not None:
            self._save_pgn()

        self._notify()

    def terminate(self) -> None:
        """Stop the match at its next suspension point. Idempotent."""
        self.token.cancel()

    def _forward_terminate(self) -> None:
        if self._players_terminated:
            return
        self._players_terminated = True
        for player in (self.white, self.black):
            try:
                player.terminate()
            except Exception as e:
                logger.warning(f"Error terminating {player.name}: {e}")

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self.snapshot())

    def _save_pgn(self) -> Optional[Path]:
        """Write the finished game as PGN; failures are logged, not raised."""
        output_dir = Path(self.config.output_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        pgn_path = output_dir / f"match_{self.id}_{timestamp}.pgn"

        headers = {
            "Event": "Chess LLM Arena",
            "Round": str(self.id),
            "White": self.white.name,
            "Black": self.black.name,
            "Termination": self.termination or "",
        }
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            pgn_path.write_text(self.rules.pgn(headers, self.outcome.result) + "\n", encoding="utf-8")
            logger.debug(f"PGN saved to {pgn_path}")
        except OSError as e:
            logger.error(f"Failed to save PGN: {e}")
            return None
        return pgn_path
