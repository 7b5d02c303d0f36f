"""
Local search engine player.

Wraps a UCI engine process (typically Stockfish) driven through
``chess.engine``. Each player owns its own process so that concurrent matches
never share engine state; the process lives exactly as long as the player's
async context.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Sequence, Union

import chess
import chess.engine as chess_engine

from .errors import ProtocolError, TransportError
from .models import Config, EngineConfig
from .player import Player

logger = logging.getLogger(__name__)

COMMON_STOCKFISH_PATHS = (
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
    "/opt/homebrew/bin/stockfish",
    "C:/Program Files/Stockfish/stockfish.exe",
    "C:/stockfish/stockfish.exe",
)


class EnginePlayer(Player):
    """
    Player backed by a UCI engine searching to a fixed depth.

    The engine is started on context entry and quit on exit; ``terminate()``
    closes the process immediately so an in-flight search cannot keep it alive.
    """

    def __init__(self, config: EngineConfig, settings: Config):
        super().__init__(config.display_name)
        self.config = config
        self.settings = settings
        self.depth = config.depth
        self.engine_path = config.engine_path or settings.engine_path
        self._engine: Optional[chess_engine.SimpleEngine] = None
        self._engine_name: str = "Unknown"
        self._terminated = False

    async def start(self) -> None:
        """Start the UCI engine process."""
        if self._engine is not None:
            return
        if self._terminated:
            raise TransportError("Engine player was terminated before start")

        path = autodetect_stockfish(self.engine_path)
        if not path:
            raise TransportError(get_friendly_stockfish_hint())

        try:
            self._engine = chess_engine.SimpleEngine.popen_uci(path)
        except Exception as e:
            raise TransportError(f"Failed to start engine at {path}: {e}")

        self._engine_name = self._engine.id.get("name", "Unknown Engine")
        logger.info(f"Started engine {self._engine_name} at depth {self.depth}")

        if self.settings.engine_threads > 1:
            try:
                await asyncio.to_thread(
                    self._engine.configure,
                    {"Threads": self.settings.engine_threads}
                )
            except chess_engine.EngineError as e:
                logger.warning(f"Could not set engine threads: {e}")

    async def stop(self) -> None:
        """Quit the engine process."""
        engine, self._engine = self._engine, None
        if engine is None:
            return

        try:
            engine.quit()
            logger.debug(f"Engine {self._engine_name} stopped")
        except Exception as e:
            logger.warning(f"Error stopping engine: {e}")

    def terminate(self) -> None:
        """Close the engine process without waiting for a running search."""
        if self._terminated:
            return
        self._terminated = True

        engine, self._engine = self._engine, None
        if engine is None:
            return

        try:
            engine.close()
            logger.debug(f"Engine {self._engine_name} terminated")
        except Exception as e:
            logger.warning(f"Error terminating engine: {e}")

    async def produce_move(
        self,
        position: chess.Board,
        history: Sequence[str],
        legal_moves: Sequence[str],
        side_to_move: chess.Color,
    ) -> chess.Move:
        """Search the position to the configured depth and return the best move."""
        if self._engine is None:
            raise TransportError("Engine not started")

        if position.is_game_over():
            raise ProtocolError("Cannot get move for finished game")

        try:
            result = await asyncio.to_thread(
                self._engine.play,
                position,
                chess_engine.Limit(depth=self.depth)
            )
        except chess_engine.EngineTerminatedError as e:
            raise TransportError(f"Engine process terminated: {e}")
        except chess_engine.EngineError as e:
            raise ProtocolError(f"Engine rejected search request: {e}")
        except Exception as e:
            raise TransportError(f"Engine move generation failed: {e}")

        if not result.move:
            raise ProtocolError("Engine returned no move")

        logger.debug(f"Engine selected move: {result.move.uci()}")
        return result.move

    async def evaluate(self, position: chess.Board, depth: int = 10) -> Union[float, str]:
        """
        Evaluate a position from the side to move's point of view.

        Returns:
            Score in pawns, or ``"M<n>"`` when a mate in n is found
            (negative n when the side to move is getting mated)
        """
        if self._engine is None:
            raise TransportError("Engine not started")

        try:
            info = await asyncio.to_thread(
                self._engine.analyse,
                position,
                chess_engine.Limit(depth=depth)
            )
        except chess_engine.EngineError as e:
            raise ProtocolError(f"Position analysis failed: {e}")
        except Exception as e:
            raise TransportError(f"Position analysis failed: {e}")

        score = info.get("score")
        if score is None:
            raise ProtocolError("Engine reported no score")

        relative = score.relative
        mate = relative.mate()
        if mate is not None:
            return f"M{mate}"
        return relative.score() / 100

    @property
    def is_running(self) -> bool:
        return self._engine is not None

    @property
    def engine_name(self) -> str:
        return self._engine_name


def autodetect_stockfish(cli_path: Optional[str] = None) -> Optional[str]:
    """
    Locate a Stockfish executable.

    Search order: explicit path, ``STOCKFISH_PATH`` environment variable,
    system ``PATH``, common installation directories.
    """
    if cli_path and Path(cli_path).exists():
        return cli_path

    env_path = os.getenv("STOCKFISH_PATH")
    if env_path and Path(env_path).exists():
        return env_path

    which_path = shutil.which("stockfish")
    if which_path:
        return which_path

    for path in COMMON_STOCKFISH_PATHS:
        if Path(path).exists():
            return path

    return None


def get_friendly_stockfish_hint() -> str:
    """Installation instructions shown when no engine can be found."""
    return (
        "Stockfish not found. Install it and try again:\n"
        "• macOS:    brew install stockfish\n"
        "• Ubuntu:   sudo apt-get install stockfish\n"
        "• Windows:  choco install stockfish\n"
        "\nOr set environment variable: export STOCKFISH_PATH=/path/to/stockfish"
    )
