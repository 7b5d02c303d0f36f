"""
Thin adapter over the python-chess rules authority.

The match runner never touches ``chess.Board`` directly; it goes through this
class, which exposes position serialization, legal-move listing, terminal
state predicates and move application (structured or algebraic).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Union

import chess
import chess.pgn as chess_pgn

from .errors import IllegalMoveError

logger = logging.getLogger(__name__)

Move = Union[chess.Move, str]


class ChessRules:
    """Live game owned by one match."""

    def __init__(self, fen: Optional[str] = None):
        self._board = chess.Board(fen) if fen else chess.Board()

    @property
    def fen(self) -> str:
        return self._board.fen()

    @property
    def turn(self) -> chess.Color:
        return self._board.turn

    @property
    def ply(self) -> int:
        return self._board.ply()

    def position(self) -> chess.Board:
        """Copy of the live board, safe to hand to a player."""
        return self._board.copy()

    def board(self) -> List[List[Optional[chess.Piece]]]:
        """8x8 grid, rank 8 first, of pieces or None."""
        return [
            [self._board.piece_at(chess.square(file, rank)) for file in range(8)]
            for rank in range(7, -1, -1)
        ]

    def legal_moves(self, square: Optional[chess.Square] = None) -> List[str]:
        """Legal moves in SAN, optionally restricted to one origin square."""
        return [
            self._board.san(move)
            for move in self._board.legal_moves
            if square is None or move.from_square == square
        ]

    def is_game_over(self) -> bool:
        return self._board.is_game_over(claim_draw=True)

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def is_draw(self) -> bool:
        outcome = self._board.outcome(claim_draw=True)
        return outcome is not None and outcome.winner is None

    def is_check(self) -> bool:
        return self._board.is_check()

    def termination(self) -> Optional[str]:
        """Lower-case name of how the game ended, if it has."""
        outcome = self._board.outcome(claim_draw=True)
        if outcome is None:
            return None
        return outcome.termination.name.lower()

    def apply_move(self, move: Move) -> str:
        """
        Apply a move given as ``chess.Move`` or as a SAN/UCI string.

        Returns:
            The SAN notation of the applied move

        Raises:
            IllegalMoveError: If the move cannot be parsed or is not legal
        """
        parsed = self._parse(move)
        san = self._board.san(parsed)
        self._board.push(parsed)
        logger.debug(f"Applied {san} ({parsed.uci()})")
        return san

    def _parse(self, move: Move) -> chess.Move:
        if isinstance(move, chess.Move):
            if move not in self._board.legal_moves:
                raise IllegalMoveError(f"Illegal move {move.uci()} in {self.fen}")
            return move

        text = (move or "").strip()
        if not text:
            raise IllegalMoveError("Empty move")

        try:
            return self._board.parse_san(text)
        except ValueError:
            pass

        try:
            parsed = chess.Move.from_uci(text.lower())
        except ValueError:
            raise IllegalMoveError(f"Unparseable move {text!r} in {self.fen}")

        if parsed not in self._board.legal_moves:
            raise IllegalMoveError(f"Illegal move {text!r} in {self.fen}")
        return parsed

    def pgn(self, headers: Optional[Dict[str, str]] = None, result: Optional[str] = None) -> str:
        """Serialize the game played so far as PGN."""
        game = chess_pgn.Game.from_board(self._board)
        game.headers["Date"] = datetime.now().strftime("%Y.%m.%d")
        for key, value in (headers or {}).items():
            game.headers[key] = value
        if result:
            game.headers["Result"] = result
        exporter = chess_pgn.StringExporter(headers=True, variations=False, comments=False)
        return game.accept(exporter)
