"""
Unit tests for the engine player.

Tests the EnginePlayer class and the Stockfish discovery helpers with a mocked
UCI process, so no engine binary is required.
"""

import os
import tempfile
import unittest
from unittest.mock import MagicMock, Mock, patch

import chess
import chess.engine as chess_engine

from chess_llm_arena.core.engine import (
    EnginePlayer,
    autodetect_stockfish,
    get_friendly_stockfish_hint,
)
from chess_llm_arena.core.errors import ProtocolError, TransportError
from chess_llm_arena.core.game import MatchRunner
from chess_llm_arena.core.models import Config, EngineConfig, MatchStatus


def make_mock_engine(name="Stockfish 16"):
    engine = MagicMock()
    engine.id = {"name": name}
    return engine


@patch('chess_llm_arena.core.engine.autodetect_stockfish', return_value="/fake/stockfish")
@patch('chess_llm_arena.core.engine.chess_engine.SimpleEngine.popen_uci')
class EnginePlayerTests(unittest.IsolatedAsyncioTestCase):
    """Test EnginePlayer lifecycle and move production."""

    def setUp(self):
        self.config = Config()
        self.player = EnginePlayer(EngineConfig(depth=4), self.config)

    async def test_start_success(self, mock_popen, mock_detect):
        """Test start success."""
        mock_popen.return_value = make_mock_engine()

        await self.player.start()

        self.assertTrue(self.player.is_running)
        self.assertEqual(self.player.engine_name, "Stockfish 16")
        mock_popen.assert_called_once_with("/fake/stockfish")

    async def test_start_failure(self, mock_popen, mock_detect):
        """Test start failure."""
        mock_popen.side_effect = FileNotFoundError("no such file")

        with self.assertRaises(TransportError) as context:
            await self.player.start()

        self.assertIn("Failed to start engine", str(context.exception))
        self.assertFalse(self.player.is_running)

    async def test_start_without_engine_binary(self, mock_popen, mock_detect):
        """Test start without engine binary."""
        mock_detect.return_value = None

        with self.assertRaises(TransportError):
            await self.player.start()
        mock_popen.assert_not_called()

    async def test_threads_configured(self, mock_popen, mock_detect):
        """Test threads configured."""
        engine = make_mock_engine()
        mock_popen.return_value = engine
        player = EnginePlayer(EngineConfig(depth=4), Config(engine_threads=4))

        await player.start()

        engine.configure.assert_called_once_with({"Threads": 4})

    async def test_context_manager_quits_engine(self, mock_popen, mock_detect):
        """Test context manager quits engine."""
        engine = make_mock_engine()
        mock_popen.return_value = engine

        async with self.player:
            self.assertTrue(self.player.is_running)

        engine.quit.assert_called_once()
        self.assertFalse(self.player.is_running)

    async def test_produce_move(self, mock_popen, mock_detect):
        """Test produce move."""
        engine = make_mock_engine()
        engine.play.return_value = Mock(move=chess.Move.from_uci("e2e4"))
        mock_popen.return_value = engine
        board = chess.Board()

        await self.player.start()
        move = await self.player.produce_move(board, [], ["e4"], chess.WHITE)

        self.assertEqual(move, chess.Move.from_uci("e2e4"))
        limit = engine.play.call_args[0][1]
        self.assertEqual(limit.depth, 4)

    async def test_produce_move_not_started(self, mock_popen, mock_detect):
        """Test produce move not started."""
        with self.assertRaises(TransportError):
            await self.player.produce_move(chess.Board(), [], [], chess.WHITE)

    async def test_produce_move_finished_game(self, mock_popen, mock_detect):
        """Test produce move finished game."""
        mock_popen.return_value = make_mock_engine()
        board = chess.Board()
        for san in ("f3", "e5", "g4", "Qh4#"):
            board.push_san(san)

        await self.player.start()
        with self.assertRaises(ProtocolError):
            await self.player.produce_move(board, [], [], chess.WHITE)

    async def test_produce_move_error_mapping(self, mock_popen, mock_detect):
        """Test produce move error mapping."""
        engine = make_mock_engine()
        mock_popen.return_value = engine
        await self.player.start()

        cases = [
            (chess_engine.EngineTerminatedError("process died"), TransportError),
            (chess_engine.EngineError("bad request"), ProtocolError),
            (RuntimeError("boom"), TransportError),
        ]
        for raised, expected in cases:
            with self.subTest(raised=raised):
                engine.play.side_effect = raised
                with self.assertRaises(expected):
                    await self.player.produce_move(chess.Board(), [], [], chess.WHITE)

    async def test_produce_move_without_move(self, mock_popen, mock_detect):
        """Test produce move without move."""
        engine = make_mock_engine()
        engine.play.return_value = Mock(move=None)
        mock_popen.return_value = engine

        await self.player.start()
        with self.assertRaises(ProtocolError):
            await self.player.produce_move(chess.Board(), [], [], chess.WHITE)

    async def test_evaluate(self, mock_popen, mock_detect):
        """Test evaluate."""
        engine = make_mock_engine()
        mock_popen.return_value = engine
        await self.player.start()

        engine.analyse.return_value = {"score": chess_engine.PovScore(chess_engine.Cp(35), chess.WHITE)}
        self.assertAlmostEqual(await self.player.evaluate(chess.Board()), 0.35)

        engine.analyse.return_value = {"score": chess_engine.PovScore(chess_engine.Mate(3), chess.WHITE)}
        self.assertEqual(await self.player.evaluate(chess.Board()), "M3")

    async def test_start_after_terminate(self, mock_popen, mock_detect):
        """Test that a terminated player never launches its engine."""
        self.player.terminate()

        with self.assertRaises(TransportError):
            await self.player.start()

        self.assertEqual(mock_popen.call_count, 0)
        self.assertFalse(self.player.is_running)

    async def test_terminated_match_launches_no_engine(self, mock_popen, mock_detect):
        """Test that a match stopped while pending starts no engine process."""
        mock_popen.return_value = make_mock_engine()
        white = EnginePlayer(EngineConfig(depth=1), self.config)
        black = EnginePlayer(EngineConfig(depth=2), self.config)
        runner = MatchRunner(1, white, black, self.config)

        runner.terminate()
        final = await runner.start()

        self.assertEqual(mock_popen.call_count, 0)
        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertIsNone(final.outcome)

    async def test_terminate_is_idempotent(self, mock_popen, mock_detect):
        """Test terminate is idempotent."""
        engine = make_mock_engine()
        mock_popen.return_value = engine
        await self.player.start()

        self.player.terminate()
        self.player.terminate()
        await self.player.stop()

        engine.close.assert_called_once()
        engine.quit.assert_not_called()
        self.assertFalse(self.player.is_running)


class StockfishDetectionTests(unittest.TestCase):
    """Test Stockfish autodetection helpers."""

    def test_explicit_path(self):
        """Test explicit path."""
        with tempfile.NamedTemporaryFile() as f:
            self.assertEqual(autodetect_stockfish(f.name), f.name)

    def test_environment_variable(self):
        """Test environment variable."""
        with tempfile.NamedTemporaryFile() as f:
            with patch.dict(os.environ, {"STOCKFISH_PATH": f.name}):
                self.assertEqual(autodetect_stockfish("/does/not/exist"), f.name)

    @patch('chess_llm_arena.core.engine.shutil.which', return_value="/usr/bin/stockfish")
    def test_system_path(self, mock_which):
        """Test system path."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(autodetect_stockfish(), "/usr/bin/stockfish")

    def test_hint_mentions_env_var(self):
        """Test hint mentions env var."""
        self.assertIn("STOCKFISH_PATH", get_friendly_stockfish_hint())


if __name__ == "__main__":
    unittest.main()
