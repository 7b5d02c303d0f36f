"""
Command-line interface for the Chess LLM Arena.

Two commands are provided: ``tournament`` plays N concurrent games between any
two players, ``estimate`` rates a language-model agent against the engine
strength ladder.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Callable, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .core.engine import autodetect_stockfish, get_friendly_stockfish_hint
from .core.estimator import DEFAULT_LADDER, EloEstimator
from .core.models import Config, EloEstimate, EngineConfig, EstimationUpdate, TournamentUpdate
from .core.player import parse_player_spec
from .core.tournament import TournamentManager

logger = logging.getLogger(__name__)

console = Console()


def setup_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """Route log records to the console (through rich) and optionally a file."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(RichHandler(console=console, show_path=False, level=level))
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root_logger.addHandler(file_handler)

    # Handlers filter; the root passes everything when a file wants debug records
    root_logger.setLevel(logging.DEBUG if log_file else level)


def install_stop_handler(stop: Callable[[], None]) -> None:
    """Turn Ctrl-C into a cooperative stop request where the platform allows it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop)
    except NotImplementedError:
        logger.debug("Signal handlers not supported on this platform")


def build_config(args: argparse.Namespace) -> Config:
    return Config(
        engine_path=args.engine_path,
        engine_threads=args.engine_threads,
        games_per_level=getattr(args, "games_per_level", 4),
        agent_color=getattr(args, "agent_color", "black"),
        move_timeout=args.move_timeout,
        max_plies=args.max_plies,
        llm_temperature=args.temperature,
        output_dir=args.output_dir,
        save_pgn=args.save_pgn,
    )


def render_tournament(update: TournamentUpdate, title: str) -> Panel:
    table = Table(expand=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("Plies", justify="right")
    table.add_column("Last move")
    table.add_column("Result")
    table.add_column("Perf (W/B)", justify="right")

    for match in update.matches:
        result = match.outcome.result if match.outcome else "-"
        if match.termination:
            result += f" ({match.termination})"
        perf = (
            f"{match.performance.white_score}/{match.performance.black_score}"
            if match.performance else "-"
        )
        table.add_row(
            str(match.id),
            match.status.value,
            str(match.move_count),
            match.history[-1] if match.history else "-",
            result,
            perf,
        )

    stats = update.stats
    footer = (
        f"{stats.completed}/{stats.total} finished  "
        f"White {stats.white_wins}  Black {stats.black_wins}  Draws {stats.draws}"
    )
    return Panel(table, title=title, subtitle=footer)


def render_estimation(update: EstimationUpdate, title: str) -> Panel:
    table = Table(expand=True, header_style="bold cyan")
    table.add_column("Level", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("Label")
    table.add_column("W/D/L", justify="center")
    table.add_column("Score", justify="right")

    for result in update.results:
        table.add_row(
            str(result.level),
            str(result.depth),
            result.label,
            f"{result.wins}/{result.draws}/{result.losses}",
            f"{result.score:.1f}%",
        )

    subtitle = f"{update.progress:.0f}% of ladder"
    if update.current_elo is not None and update.status == "running":
        subtitle += f"  testing {update.current_elo}"
    if update.preview is not None:
        subtitle += f"  [dim]{update.preview.fen}[/dim]"
    return Panel(table, title=title, subtitle=subtitle)


def print_estimate(estimate: Optional[EloEstimate]) -> None:
    if estimate is None:
        console.print("[yellow]No level finished; no estimate available[/yellow]")
        return

    console.print(
        f"\n[bold green]Estimated ELO: {estimate.elo}[/bold green] "
        f"(±{estimate.range}, {estimate.low}-{estimate.high}, "
        f"{estimate.confidence:.0f}% confidence, reliability {estimate.reliability})"
    )

    # Compact view of the likelihood curve around the peak
    peak = max(likelihood for _, likelihood in estimate.curve)
    table = Table(title="Likelihood curve (near peak)", header_style="bold cyan")
    table.add_column("Rating", justify="right")
    table.add_column("Δ log-likelihood", justify="right")
    for rating, likelihood in estimate.curve:
        if peak - likelihood <= 4:
            table.add_row(str(rating), f"{likelihood - peak:.2f}")
    console.print(table)


async def run_tournament(args: argparse.Namespace, config: Config) -> int:
    white = parse_player_spec(args.white, config.engine_path)
    black = parse_player_spec(args.black, config.engine_path)
    title = f"{white} vs {black}"

    with Live(console=console, refresh_per_second=6) as live:
        manager = TournamentManager(
            args.games,
            white,
            black,
            config,
            on_update=lambda update: live.update(render_tournament(update, title)),
        )
        install_stop_handler(manager.stop_all)
        final = await manager.start()
        live.update(render_tournament(final, title))

    stats = final.stats
    console.print(
        f"\n[bold]Final:[/bold] White {stats.white_wins}, Black {stats.black_wins}, "
        f"Draws {stats.draws} ({stats.completed}/{stats.total} counted)"
    )
    return 0


async def run_estimate(args: argparse.Namespace, config: Config) -> int:
    agent = parse_player_spec(args.agent, config.engine_path)
    if isinstance(agent, EngineConfig):
        console.print("[red]The player under test must be a language-model agent[/red]")
        return 2

    title = f"ELO estimation: {agent}"
    with Live(console=console, refresh_per_second=6) as live:
        estimator = EloEstimator(
            agent,
            games_per_level=config.games_per_level,
            config=config,
            on_update=lambda update: live.update(render_estimation(update, title)),
            ladder=DEFAULT_LADDER,
        )
        install_stop_handler(estimator.stop)
        estimate = await estimator.start()

    if estimator.token.cancelled:
        console.print("[yellow]Estimation stopped early[/yellow]")
    print_estimate(estimate)
    return 0


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--engine-path", type=str, help="Path to a UCI engine (default: autodetect Stockfish)")
    parser.add_argument("--engine-threads", type=int, default=1, help="Threads per engine process (default: %(default)s)")
    parser.add_argument("--move-timeout", type=float, default=60.0,
                        help="Seconds a player may take for one move before forfeiting (default: %(default)s)")
    parser.add_argument("--max-plies", type=int, default=300,
                        help="Plies after which a game is drawn by move limit (default: %(default)s)")
    parser.add_argument("--temperature", type=float, default=0.1, help="Agent sampling temperature (default: %(default)s)")
    parser.add_argument("--output-dir", type=str, default="runs", help="Directory for PGN files (default: %(default)s)")
    parser.add_argument("--save-pgn", action="store_true", help="Write a PGN file for every finished game")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level (default: %(default)s)")
    parser.add_argument("--log-file", type=str, help="Also write debug logs to this file")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Chess LLM Arena - engine vs LLM tournaments and ELO estimation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Player specification:
  stockfish:<depth>        local UCI engine searching to <depth>
  <provider>:<model>       language model; provider is openai, groq or anthropic

Examples:
  %(prog)s tournament --white stockfish:5 --black openai:gpt-4o-mini --games 4
  %(prog)s estimate --agent groq:llama-3.3-70b-versatile --games-per-level 3

API keys are read from OPENAI_API_KEY, GROQ_API_KEY or ANTHROPIC_API_KEY
(a .env file in the working directory is loaded automatically).
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    tournament = subparsers.add_parser("tournament", help="Play concurrent games between two players")
    tournament.add_argument("--white", type=str, required=True, help="White player spec")
    tournament.add_argument("--black", type=str, required=True, help="Black player spec")
    tournament.add_argument("--games", type=int, default=4, help="Number of games (default: %(default)s)")
    add_common_arguments(tournament)

    estimate = subparsers.add_parser("estimate", help="Estimate an agent's ELO against the engine ladder")
    estimate.add_argument("--agent", type=str, required=True, help="Agent spec, e.g. openai:gpt-4o-mini")
    estimate.add_argument("--games-per-level", type=int, default=4, help="Games per tested level (default: %(default)s)")
    estimate.add_argument("--agent-color", type=str, default="black", choices=["white", "black"],
                          help="Colour of the agent under test (default: %(default)s)")
    add_common_arguments(estimate)

    return parser


def needs_engine(args: argparse.Namespace, engine_path: Optional[str] = None) -> bool:
    """True when the command plays at least one engine player."""
    if args.command == "estimate":
        return True
    players = (parse_player_spec(args.white, engine_path), parse_player_spec(args.black, engine_path))
    return any(isinstance(player, EngineConfig) for player in players)


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    try:
        config = build_config(args)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return 2

    try:
        engine_required = needs_engine(args, config.engine_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 2

    if engine_required and not autodetect_stockfish(config.engine_path):
        console.print(f"[red]{get_friendly_stockfish_hint()}[/red]")
        return 1

    try:
        if args.command == "tournament":
            return await run_tournament(args, config)
        return await run_estimate(args, config)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 2


def main() -> int:
    """Main entry point."""
    load_dotenv()
    parser = create_argument_parser()
    args = parser.parse_args()
    setup_logging(args.log_level, args.log_file)

    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        console.print("\n[bold yellow]Interrupted by user[/bold yellow]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
