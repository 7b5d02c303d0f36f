#!/usr/bin/env python3
"""
Chess LLM Arena - Main Entry Point

Runs the CLI from the chess_llm_arena package without installing it.

Quick Examples:
    # Four games, Stockfish depth 5 against GPT-4o mini (requires OPENAI_API_KEY)
    python main.py tournament --white stockfish:5 --black openai:gpt-4o-mini --games 4

    # Estimate the ELO of a Groq-hosted model (requires GROQ_API_KEY)
    python main.py estimate --agent groq:llama-3.3-70b-versatile --games-per-level 3

Requirements:
    - Python 3.9+
    - Stockfish chess engine installed and in PATH
"""

import sys
from pathlib import Path

# Add the project root to the Python path so we can import our package
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from chess_llm_arena.cli import main

if __name__ == "__main__":
    sys.exit(main())
