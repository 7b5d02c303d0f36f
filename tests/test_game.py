"""
Unit tests for the match runner.

Games are played between scripted players so every outcome is deterministic.
"""

import asyncio
import tempfile
import unittest
from pathlib import Path

import chess

from chess_llm_arena.core.game import MatchRunner, calculate_performance
from chess_llm_arena.core.models import Config, MatchStatus, Outcome

from tests.fakes import (
    FOOLS_MATE_BLACK,
    FOOLS_MATE_WHITE,
    KNIGHT_SHUFFLE_BLACK,
    KNIGHT_SHUFFLE_WHITE,
    ScriptedPlayer,
)


class PerformanceTests(unittest.TestCase):

    def test_no_performance_without_moves(self):
        """Test no performance without moves."""
        self.assertIsNone(calculate_performance(Outcome.WHITE_WIN, 0))
        self.assertIsNone(calculate_performance(None, 12))

    def test_draw(self):
        """Test that a draw splits the performance evenly."""
        performance = calculate_performance(Outcome.DRAW, 40)
        self.assertEqual((performance.white_score, performance.black_score), (50, 50))

    def test_short_win_scores_higher(self):
        """Test short win scores higher."""
        quick = calculate_performance(Outcome.BLACK_WIN, 4)
        slow = calculate_performance(Outcome.BLACK_WIN, 120)
        self.assertGreater(quick.black_score, slow.black_score)
        self.assertEqual(slow.black_score, 70)

    def test_scores_sum_to_100_and_stay_in_range(self):
        """Test scores sum to 100 and stay in range."""
        for outcome in Outcome:
            for moves in (1, 4, 25, 50, 300):
                with self.subTest(outcome=outcome, moves=moves):
                    performance = calculate_performance(outcome, moves)
                    self.assertEqual(performance.white_score + performance.black_score, 100)
                    for score in (performance.white_score, performance.black_score):
                        self.assertGreaterEqual(score, 5)
                        self.assertLessEqual(score, 95)


class MatchRunnerTests(unittest.IsolatedAsyncioTestCase):
    """Test full games between scripted players."""

    def make_runner(self, white, black, config=None):
        self.updates = []
        return MatchRunner(1, white, black, config or Config(), on_update=self.updates.append)

    async def test_checkmate(self):
        """Test checkmate."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE, name="white")
        black = ScriptedPlayer(FOOLS_MATE_BLACK, name="black")
        runner = self.make_runner(white, black)

        final = await runner.start()

        self.assertEqual(final.status, MatchStatus.COMPLETED)
        self.assertEqual(final.outcome, Outcome.BLACK_WIN)
        self.assertEqual(final.termination, "checkmate")
        self.assertEqual(final.move_count, 4)
        self.assertEqual(final.history, ("f3", "e5", "g4", "Qh4#"))
        self.assertEqual(final.performance.white_score + final.performance.black_score, 100)
        self.assertGreater(final.performance.black_score, final.performance.white_score)
        self.assertTrue(white.stopped and black.stopped)

    async def test_players_receive_position_and_history(self):
        """Test players receive position and history."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE)
        black = ScriptedPlayer(FOOLS_MATE_BLACK)
        await self.make_runner(white, black).start()

        self.assertEqual(white.positions[0], chess.STARTING_FEN)
        self.assertEqual(black.last_history, ["f3", "e5", "g4"])

    async def test_forfeit_on_player_error(self):
        """Test forfeit on player error."""
        white = ScriptedPlayer(["e2e4", "d2d4"])
        black = ScriptedPlayer([])
        final = await self.make_runner(white, black).start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertEqual(final.outcome, Outcome.WHITE_WIN)
        self.assertEqual(final.termination, "forfeit")
        self.assertEqual(final.move_count, 1)
        self.assertIn("ProtocolError", final.error)
        self.assertEqual(final.performance.white_score, 90)
        self.assertEqual(final.performance.black_score, 10)

    async def test_forfeit_on_illegal_move(self):
        """Test forfeit on illegal move."""
        white = ScriptedPlayer(["e2e5"])
        black = ScriptedPlayer(FOOLS_MATE_BLACK)
        final = await self.make_runner(white, black).start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertEqual(final.outcome, Outcome.BLACK_WIN)
        self.assertEqual(final.move_count, 0)
        self.assertIsNone(final.performance)
        self.assertEqual(final.fen, chess.STARTING_FEN)

    async def test_forfeit_on_timeout(self):
        """Test forfeit on timeout."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE, delay=5.0)
        black = ScriptedPlayer(FOOLS_MATE_BLACK)
        final = await self.make_runner(white, black, Config(move_timeout=0.05)).start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertEqual(final.outcome, Outcome.BLACK_WIN)
        self.assertIn("TransportError", final.error)

    async def test_forfeit_on_start_failure(self):
        """Test forfeit on start failure."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE)
        black = ScriptedPlayer(FOOLS_MATE_BLACK, fail_start=True)
        final = await self.make_runner(white, black).start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertEqual(final.outcome, Outcome.WHITE_WIN)
        self.assertTrue(white.stopped)
        self.assertEqual(white.positions, [])

    async def test_threefold_repetition_draw(self):
        """Test threefold repetition draw."""
        white = ScriptedPlayer(KNIGHT_SHUFFLE_WHITE)
        black = ScriptedPlayer(KNIGHT_SHUFFLE_BLACK)
        final = await self.make_runner(white, black).start()

        self.assertEqual(final.status, MatchStatus.COMPLETED)
        self.assertEqual(final.outcome, Outcome.DRAW)
        self.assertEqual(final.termination, "threefold_repetition")
        # Claimable as soon as the next move would repeat the position a third time
        self.assertEqual(final.move_count, 7)
        self.assertEqual((final.performance.white_score, final.performance.black_score), (50, 50))

    async def test_move_limit_draw(self):
        """Test move limit draw."""
        white = ScriptedPlayer(KNIGHT_SHUFFLE_WHITE)
        black = ScriptedPlayer(KNIGHT_SHUFFLE_BLACK)
        final = await self.make_runner(white, black, Config(max_plies=4)).start()

        self.assertEqual(final.status, MatchStatus.COMPLETED)
        self.assertEqual(final.outcome, Outcome.DRAW)
        self.assertEqual(final.termination, "move_limit")
        self.assertEqual(final.move_count, 4)

    async def test_update_stream_is_ordered(self):
        """Test update stream is ordered."""
        runner = self.make_runner(ScriptedPlayer(FOOLS_MATE_WHITE), ScriptedPlayer(FOOLS_MATE_BLACK))
        await runner.start()

        self.assertEqual(self.updates[0].status, MatchStatus.ACTIVE)
        self.assertEqual(self.updates[0].move_count, 0)
        counts = [update.move_count for update in self.updates]
        self.assertEqual(counts, sorted(counts))
        self.assertEqual([u.is_terminal for u in self.updates].count(True), 1)
        self.assertTrue(self.updates[-1].is_terminal)

    async def test_start_twice(self):
        """Test start twice."""
        runner = self.make_runner(ScriptedPlayer(FOOLS_MATE_WHITE), ScriptedPlayer(FOOLS_MATE_BLACK))
        await runner.start()
        with self.assertRaises(RuntimeError):
            await runner.start()

    async def test_terminate_before_start(self):
        """Test terminate before start."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE)
        black = ScriptedPlayer(FOOLS_MATE_BLACK)
        runner = self.make_runner(white, black)

        runner.terminate()
        runner.terminate()
        final = await runner.start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertIsNone(final.outcome)
        self.assertEqual(final.termination, "terminated")
        self.assertEqual(final.move_count, 0)
        self.assertEqual(white.terminate_calls, 1)
        self.assertEqual(black.terminate_calls, 1)

    async def test_start_failure_after_terminate_is_not_a_forfeit(self):
        """Test that a start failure after a stop request is not counted as a forfeit."""
        runner = None

        class StoppingPlayer(ScriptedPlayer):
            async def start(self):
                runner.terminate()
                await super().start()

        white = StoppingPlayer(FOOLS_MATE_WHITE)
        black = ScriptedPlayer(FOOLS_MATE_BLACK, fail_start=True)
        runner = self.make_runner(white, black)

        final = await runner.start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertIsNone(final.outcome)
        self.assertEqual(final.termination, "terminated")
        self.assertTrue(white.stopped)

    async def test_terminate_mid_game(self):
        """Test terminate mid game."""
        white = ScriptedPlayer(KNIGHT_SHUFFLE_WHITE)
        black = ScriptedPlayer(KNIGHT_SHUFFLE_BLACK)
        runner = MatchRunner(1, white, black, Config())

        def on_update(update):
            if update.move_count == 2:
                runner.terminate()

        runner.on_update = on_update
        final = await runner.start()

        self.assertEqual(final.status, MatchStatus.ERRORED)
        self.assertIsNone(final.outcome)
        self.assertEqual(final.move_count, 2)
        self.assertTrue(white.stopped and black.stopped)

    async def test_reply_after_terminate_is_discarded(self):
        """Test reply after terminate is discarded."""
        white = ScriptedPlayer(FOOLS_MATE_WHITE, delay=0.05)
        black = ScriptedPlayer(FOOLS_MATE_BLACK)
        runner = self.make_runner(white, black)

        task = asyncio.create_task(runner.start())
        await asyncio.sleep(0.01)
        runner.terminate()
        final = await task

        self.assertEqual(final.move_count, 0)
        self.assertEqual(final.fen, chess.STARTING_FEN)
        self.assertIsNone(final.outcome)

    async def test_save_pgn(self):
        """Test saving a finished game as PGN."""
        with tempfile.TemporaryDirectory() as tmp:
            config = Config(save_pgn=True, output_dir=tmp)
            runner = self.make_runner(ScriptedPlayer(FOOLS_MATE_WHITE), ScriptedPlayer(FOOLS_MATE_BLACK), config)
            await runner.start()

            files = list(Path(tmp).glob("match_1_*.pgn"))
            self.assertEqual(len(files), 1)
            text = files[0].read_text(encoding="utf-8")
            self.assertIn('[Result "0-1"]', text)
            self.assertIn("Qh4#", text)


if __name__ == "__main__":
    unittest.main()
