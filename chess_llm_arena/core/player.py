"""
Player interface and factory.

A Player produces one move at a time for the position it is handed. There are
exactly two kinds, selected from the configuration type at construction time:
a local UCI search engine (:class:`~chess_llm_arena.core.engine.EnginePlayer`)
and a remote language-model agent (:class:`~chess_llm_arena.llm.client.AgentPlayer`).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union

import chess

from .models import AgentConfig, Config, EngineConfig, PlayerConfig

logger = logging.getLogger(__name__)

ENGINE_PROVIDERS = ("stockfish", "engine")


class Player(ABC):
    """
    Abstract move producer.

    Players are async context managers: entering acquires any external
    resource (an engine process), leaving releases it on every exit path.
    """

    def __init__(self, name: str):
        self.name = name

    async def start(self) -> None:
        """Acquire external resources. No-op by default."""

    async def stop(self) -> None:
        """Release external resources. No-op by default."""

    def terminate(self) -> None:
        """Best-effort, non-blocking cancellation signal. Idempotent."""

    @abstractmethod
    async def produce_move(
        self,
        position: chess.Board,
        history: Sequence[str],
        legal_moves: Sequence[str],
        side_to_move: chess.Color,
    ) -> Union[chess.Move, str]:
        """
        Produce a move for the given position.

        Args:
            position: Copy of the current position
            history: SAN moves played so far
            legal_moves: Legal moves in SAN
            side_to_move: Colour the move is for

        Returns:
            A structured move or a SAN/UCI string

        Raises:
            AuthenticationError: Missing or invalid credential
            ProtocolError: Malformed or absent reply
            TransportError: Network or process failure
        """

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


def create_player(config: PlayerConfig, settings: Optional[Config] = None) -> Player:
    """
    Build a fresh Player for one match from its configuration.

    Args:
        config: Engine or agent configuration
        settings: Global configuration (defaults used when None)

    Returns:
        A new, not yet started Player
    """
    settings = settings or Config()

    # Imported here to avoid circular imports
    if isinstance(config, EngineConfig):
        from .engine import EnginePlayer
        return EnginePlayer(config, settings)
    if isinstance(config, AgentConfig):
        from ..llm.client import AgentPlayer
        return AgentPlayer(config, settings)
    raise TypeError(f"Unsupported player configuration: {config!r}")


def parse_player_spec(spec_string: str, engine_path: Optional[str] = None) -> PlayerConfig:
    """
    Parse a textual player specification.

    Format: ``stockfish:<depth>`` (or ``engine:<depth>``) for a search engine,
    ``provider:model`` or ``provider:model:name`` for an agent.

    Raises:
        ValueError: If the specification is malformed
    """
    raw = spec_string.strip()
    if not raw:
        raise ValueError("Empty player specification")

    parts = raw.split(":")
    provider = parts[0].lower()

    if provider in ENGINE_PROVIDERS:
        depth_text = parts[1] if len(parts) > 1 and parts[1] else "10"
        try:
            depth = int(depth_text)
        except ValueError:
            raise ValueError(f"Invalid engine depth {depth_text!r} in {raw!r}")
        name = ":".join(parts[2:]) if len(parts) > 2 else ""
        return EngineConfig(depth=depth, engine_path=engine_path, name=name)

    # Imported here to avoid circular imports
    from ..llm.client import AgentPlayer

    if provider not in AgentPlayer.PROVIDERS:
        available = ", ".join(list(ENGINE_PROVIDERS) + AgentPlayer.get_available_providers())
        raise ValueError(f"Unsupported provider '{parts[0]}'. Available: {available}")
    if len(parts) < 2 or not parts[1]:
        raise ValueError(f"Model is required for provider '{provider}'")

    name = ":".join(parts[2:]) if len(parts) > 2 else ""
    return AgentConfig(provider=provider, model=parts[1], name=name)
