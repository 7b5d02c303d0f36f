"""
Language-model package for Chess LLM Arena.

Provides the agent player and its chat-completion providers.
"""

from .client import AgentPlayer, extract_move_token

__all__ = [
    "AgentPlayer",
    "extract_move_token",
]
