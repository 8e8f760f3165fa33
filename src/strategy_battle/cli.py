"""
Terminal host for a game session.

The transcript is rendered with rich; pressing Enter while the session is
paused continues it, Ctrl-C stops it.
"""
import argparse
import asyncio
import logging
import random
import sys
import threading
from typing import List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import load_config
from .coordinator import TurnCoordinator
from .errors import ConfigurationError, DirectorCallError
from .events import LoggingObserver
from .models import Agent, CoordinatorState, GameMode, RoundState, TranscriptMessage
from .prompts import ROLE_NAMES
from .transcript import InMemoryTranscript, redact

logger = logging.getLogger(__name__)

console = Console()


class ConsoleTranscript(InMemoryTranscript):
    """Prints every appended message (secret markers hidden)"""

    def on_append(self, message: TranscriptMessage) -> None:
        console.print(Panel(
            Text(redact(message.text)),
            title=f"[bold]{message.speaker}[/bold]",
            title_align="left",
            box=box.ROUNDED,
        ))


class ConsoleObserver(LoggingObserver):
    """Shows pauses and the roster table on top of the log lines"""

    def on_status_change(self, state: CoordinatorState, round_state: RoundState) -> None:
        super().on_status_change(state, round_state)
        if state == CoordinatorState.PAUSED:
            console.print("[yellow]⏸️ 已暂停，按 Enter 继续...[/yellow]")

    def on_players_changed(self, agents: List[Agent]) -> None:
        super().on_players_changed(agents)
        table = Table(title="👥 玩家", box=box.ROUNDED)
        table.add_column("Name", style="cyan")
        table.add_column("Model", style="magenta")
        table.add_column("Status")
        for agent in agents:
            status = "[green]✅ 存活[/green]" if agent.alive else "[red]💀 出局[/red]"
            if not agent.alive and agent.role:
                status += f" ({ROLE_NAMES[agent.role]})"
            table.add_row(agent.name, agent.model, status)
        console.print(table)


def _watch_stdin(loop: asyncio.AbstractEventLoop, session: TurnCoordinator) -> None:
    """Daemon thread: every Enter resumes a paused session"""
    for _ in sys.stdin:
        if session.ended:
            return
        loop.call_soon_threadsafe(session.resume)


async def run_session(session: TurnCoordinator) -> int:
    """Run until the session ends; returns a process exit code"""
    if not session.config.auto_continue:
        threading.Thread(
            target=_watch_stdin,
            args=(asyncio.get_running_loop(), session),
            daemon=True,
        ).start()

    try:
        result = await session.start()
    except DirectorCallError as e:
        console.print(f"[bold red]⛔ Director failed: {e}[/bold red]")
        return 2

    winner = f", winner: {result.winner.value}" if result.winner else ""
    console.print(f"[bold blue]🏁 Session ended ({result.reason}) after {result.rounds} rounds{winner}[/bold blue]")
    return 0


def main():
    """Main entry point for the terminal host."""
    parser = argparse.ArgumentParser(description="Run an AI strategy battle session")
    parser.add_argument("--config", type=str, required=True, help="Session config JSON file")
    parser.add_argument("--mode", type=str, choices=[m.value for m in GameMode], help="Override the config's mode")
    parser.add_argument("--auto", action="store_true", help="Continue rounds without waiting for Enter")
    parser.add_argument("--seed", type=int, default=None, help="Seed for role shuffles and tie-breaks")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Suppress verbose HTTP logs
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        config = load_config(args.config, GameMode(args.mode) if args.mode else None)
        if args.auto:
            config.auto_continue = True
        config.validate_for_start()
    except ConfigurationError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    rng = random.Random(args.seed) if args.seed is not None else None

    session = TurnCoordinator(
        config,
        transcript=ConsoleTranscript(),
        observer=ConsoleObserver(),
        rng=rng,
    )

    try:
        code = asyncio.run(run_session(session))
    except KeyboardInterrupt:
        session.stop("interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
