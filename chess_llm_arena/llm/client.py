"""
Language-model agent player.

The agent receives the position, the move history and the legal moves in a
natural-language prompt, sends it to a chat-completion endpoint and extracts a
single SAN move from the free-text reply. Provider SDK failures are mapped onto
the player error taxonomy; nothing here retries.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type

import anthropic
import chess
import openai

from ..core.errors import AuthenticationError, ProtocolError, TransportError
from ..core.models import AgentConfig, Config
from ..core.player import Player

logger = logging.getLogger(__name__)

# First bracket-delimited token, e.g. "[Nf3]"
BRACKET_REGEX = re.compile(r"\[(.*?)\]")
TRAILING_PUNCTUATION = ".,!?"


def format_movetext(history: Sequence[str]) -> str:
    """Render SAN history as numbered movetext: ``1. e4 e5 2. Nf3``."""
    pairs = []
    for i in range(0, len(history), 2):
        pair = f"{i // 2 + 1}. {history[i]}"
        if i + 1 < len(history):
            pair += f" {history[i + 1]}"
        pairs.append(pair)
    return " ".join(pairs)


def build_prompt(fen: str, history: Sequence[str], legal_moves: Sequence[str], side_to_move: chess.Color) -> str:
    """Create the move request sent to the agent."""
    color = "White" if side_to_move == chess.WHITE else "Black"
    movetext = format_movetext(history) or "(no moves yet)"
    return (
        "You are a Chess Grandmaster.\n"
        f"FEN: {fen}\n"
        f"PGN: {movetext}\n"
        f"Valid Moves: {', '.join(legal_moves)}\n\n"
        f"Pick the best move for {color}.\n"
        "Output ONLY the move in SAN format inside brackets: [MOVE].\n"
        "Example: [Nf3] or [e4] or [O-O]\n"
    )


def extract_move_token(content: str, legal_moves: Sequence[str]) -> Optional[str]:
    """
    Pull a move out of a free-text reply.

    The first non-empty bracketed token wins. Otherwise the reply is scanned
    word by word for one that, with brackets and trailing punctuation
    stripped, is exactly one of the legal moves.

    Returns:
        The move text, or None if nothing usable was found
    """
    match = BRACKET_REGEX.search(content)
    if match and match.group(1).strip():
        return match.group(1).strip()

    legal = set(legal_moves)
    for word in content.split():
        candidate = word.strip("[]").rstrip(TRAILING_PUNCTUATION)
        if candidate in legal:
            return candidate

    return None


class BaseLLMProvider(ABC):
    """Abstract chat-completion backend."""

    env_var: str = ""

    def __init__(self, config: AgentConfig, timeout_s: float):
        self.config = config
        self.timeout_s = timeout_s

    def api_key(self) -> str:
        """Explicit credential, else the provider's environment variable."""
        key = self.config.credential or os.getenv(self.env_var)
        if not key:
            raise AuthenticationError(
                f"{self.env_var} environment variable or an explicit credential "
                f"is required for provider '{self.config.provider}'"
            )
        return key

    @abstractmethod
    def complete(self, prompt: str, temperature: float) -> str:
        """
        Send one prompt and return the raw reply text.

        Blocking; callers run it in a worker thread.
        """


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions (and any OpenAI-compatible endpoint)."""

    env_var = "OPENAI_API_KEY"
    default_base_url: Optional[str] = None

    def __init__(self, config: AgentConfig, timeout_s: float):
        super().__init__(config, timeout_s)
        self._client: Optional[openai.OpenAI] = None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.api_key(),
                base_url=self.config.base_url or self.default_base_url,
                timeout=self.timeout_s,
                max_retries=0,
            )
        return self._client

    def complete(self, prompt: str, temperature: float) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except openai.AuthenticationError as e:
            raise AuthenticationError(f"{self.config.provider} rejected the API key: {e}")
        except openai.APIConnectionError as e:
            raise TransportError(f"{self.config.provider} request failed: {e}")
        except openai.APIStatusError as e:
            raise TransportError(f"{self.config.provider} API error {e.status_code}: {e}")

        if not response.choices:
            raise ProtocolError(f"{self.config.provider} returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise ProtocolError(f"{self.config.provider} returned an empty response")
        return content


class GroqProvider(OpenAIProvider):
    """Groq's OpenAI-compatible endpoint."""

    env_var = "GROQ_API_KEY"
    default_base_url = "https://api.groq.com/openai/v1"


class AnthropicProvider(BaseLLMProvider):
    """Anthropic messages API."""

    env_var = "ANTHROPIC_API_KEY"
    max_tokens = 256

    def __init__(self, config: AgentConfig, timeout_s: float):
        super().__init__(config, timeout_s)
        self._client: Optional[anthropic.Anthropic] = None

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(
                api_key=self.api_key(),
                base_url=self.config.base_url,
                timeout=self.timeout_s,
                max_retries=0,
            )
        return self._client

    def complete(self, prompt: str, temperature: float) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.config.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AuthenticationError as e:
            raise AuthenticationError(f"anthropic rejected the API key: {e}")
        except anthropic.APIConnectionError as e:
            raise TransportError(f"anthropic request failed: {e}")
        except anthropic.APIStatusError as e:
            raise TransportError(f"anthropic API error {e.status_code}: {e}")

        text = "".join(
            block.text for block in response.content if getattr(block, "text", None)
        )
        if not text:
            raise ProtocolError("anthropic returned no text content")
        return text


class AgentPlayer(Player):
    """Player that asks a language model for each move."""

    # Registry of available providers
    PROVIDERS: Dict[str, Type[BaseLLMProvider]] = {
        "openai": OpenAIProvider,
        "groq": GroqProvider,
        "anthropic": AnthropicProvider,
    }

    def __init__(self, config: AgentConfig, settings: Config):
        super().__init__(config.display_name)
        provider_class = self.PROVIDERS.get(config.provider)
        if not provider_class:
            available = ", ".join(self.PROVIDERS)
            raise ValueError(f"Unsupported provider '{config.provider}'. Available: {available}")

        self.config = config
        self.temperature = settings.llm_temperature
        self.provider = provider_class(config, timeout_s=settings.move_timeout)
        logger.info(f"Initialized agent player: {config}")

    async def produce_move(
        self,
        position: chess.Board,
        history: Sequence[str],
        legal_moves: Sequence[str],
        side_to_move: chess.Color,
    ) -> str:
        """Prompt the model and return the SAN token it chose."""
        prompt = build_prompt(position.fen(), history, legal_moves, side_to_move)
        content = await asyncio.to_thread(self.provider.complete, prompt, self.temperature)
        logger.debug(f"{self.name} replied: {content!r}")

        token = extract_move_token(content, legal_moves)
        if token is None:
            raise ProtocolError(f"No move found in reply from {self.name}: {content[:80]!r}")
        return token

    @classmethod
    def get_available_providers(cls) -> List[str]:
        """Get list of available agent providers."""
        return list(cls.PROVIDERS.keys())
