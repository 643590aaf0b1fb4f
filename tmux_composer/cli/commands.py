"""CLI commands for tmux-composer."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from tmux_composer import __version__

app = typer.Typer(
    name="tmux-composer",
    help="tmux-composer - watch tmux sessions and drive CLI agents inside them",
    no_args_is_help=True,
)
console = Console()
# stdout carries the JSON event stream for the long-running commands.
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"tmux-composer v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> {message}",
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging on stderr."),
    socket_name: str = typer.Option("", "--socket-name", "-L", help="tmux socket name (tmux -L)."),
    socket_path: str = typer.Option("", "--socket-path", "-S", help="tmux socket path (tmux -S)."),
) -> None:
    """tmux-composer entrypoint."""
    del version
    ctx.obj = {"verbose": verbose, "socket_name": socket_name, "socket_path": socket_path}


def _load(ctx: typer.Context):
    """Effective config with global command-line options applied on top."""
    from tmux_composer.config.loader import ConfigError, load_config

    try:
        config = load_config()
    except ConfigError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    options = ctx.obj or {}
    if options.get("verbose"):
        config.verbose = True
    if options.get("socket_name"):
        config.tmux.socket_name = options["socket_name"]
    if options.get("socket_path"):
        config.tmux.socket_path = options["socket_path"]

    configure_logging(config.verbose)
    return config


def _load_matchers(path: str):
    from tmux_composer.matching.definitions import MatcherConfigError, load_matchers

    try:
        return load_matchers(path or None)
    except MatcherConfigError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


def _parse_mode(value: str):
    from tmux_composer.matching.definitions import MatcherMode

    try:
        return MatcherMode(value.strip().lower())
    except ValueError:
        err_console.print(f"[red]Unknown mode '{value}'. Expected: act, plan, all[/red]")
        raise typer.Exit(1)


@app.command("watch-session")
def watch_session(ctx: typer.Context) -> None:
    """Stream session-changed events for the current tmux session."""
    from tmux_composer.bus.queue import EventBus, JsonLinesSink
    from tmux_composer.runtime.session_watcher import ControlModeError, TmuxSessionWatcher
    from tmux_composer.tmux.client import TmuxClient

    config = _load(ctx)
    client = TmuxClient(config.tmux.socket_options())
    bus = EventBus()
    JsonLinesSink(bus).attach()

    watcher = TmuxSessionWatcher(
        client,
        bus,
        throttle_s=config.watcher.refresh_throttle_s,
        connect_delay_s=config.watcher.connect_delay_s,
    )

    async def run() -> None:
        await watcher.start()
        await watcher.wait_closed()

    try:
        asyncio.run(run())
    except ControlModeError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        pass


@app.command()
def automate(
    ctx: typer.Context,
    mode: str = typer.Option("", "--mode", help="Session mode: act or plan."),
    agent: str = typer.Option("", "--agent", help="Supervised agent (claude|codex|gemini)."),
    poll_interval: float = typer.Option(0.0, "--poll-interval", help="Fast poll interval in seconds."),
    matchers_path: str = typer.Option("", "--matchers", help="Matcher definitions YAML file."),
) -> None:
    """Poll every tmux window and answer known agent prompts."""
    from tmux_composer.agents import get_agent_def
    from tmux_composer.bus.queue import EventBus, JsonLinesSink
    from tmux_composer.runtime.automator import TmuxAutomator
    from tmux_composer.tmux.client import TmuxClient

    config = _load(ctx)
    settings = config.automation

    selected_mode = _parse_mode(mode or settings.mode)
    try:
        agent_def = get_agent_def(agent or settings.agent)
    except ValueError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    matchers = _load_matchers(matchers_path or settings.matchers_path)

    client = TmuxClient(config.tmux.socket_options())
    bus = EventBus()
    JsonLinesSink(bus).attach()

    automator = TmuxAutomator(
        client,
        bus,
        matchers,
        mode=selected_mode,
        agent_binary=agent_def.resolve_binary(),
        poll_interval_s=poll_interval if poll_interval > 0 else settings.poll_interval_s,
        settled_poll_interval_s=settings.settled_poll_interval_s,
        new_pane_window_s=settings.new_pane_window_s,
        agent_scan_interval_s=settings.agent_scan_interval_s,
        action_pause_s=settings.action_pause_s,
        canonical_size=(settings.canonical_width, settings.canonical_height),
        checksum_cache_size=settings.checksum_cache_size,
    )

    async def run() -> None:
        await automator.start()
        await automator.wait()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


@app.command("matchers")
def list_matchers(
    ctx: typer.Context,
    matchers_path: str = typer.Option("", "--matchers", help="Matcher definitions YAML file."),
) -> None:
    """Validate and list matcher definitions."""
    config = _load(ctx)
    matchers = _load_matchers(matchers_path or config.automation.matchers_path)

    table = Table(title=f"Matchers ({len(matchers)})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Mode")
    table.add_column("Run once")
    table.add_column("Trigger (last line)")
    table.add_column("Response")
    for matcher in matchers:
        table.add_row(
            matcher.name,
            str(matcher.mode),
            "yes" if matcher.run_once else "no",
            matcher.trigger[-1].strip(),
            matcher.response,
        )
    console.print(table)


@app.command()
def match(
    ctx: typer.Context,
    capture: Path = typer.Argument(..., exists=True, dir_okay=False, help="Saved pane capture."),
    mode: str = typer.Option("all", "--mode", help="Session mode: act, plan or all."),
    matchers_path: str = typer.Option("", "--matchers", help="Matcher definitions YAML file."),
) -> None:
    """Report which matchers fire on a saved capture."""
    from tmux_composer.matching.definitions import eligible_matchers
    from tmux_composer.matching.matcher import clean_content, matches_pattern

    config = _load(ctx)
    matchers = eligible_matchers(
        _load_matchers(matchers_path or config.automation.matchers_path),
        _parse_mode(mode),
    )
    lines = clean_content(capture.read_text(encoding="utf-8", errors="replace")).split("\n")

    fired = [
        matcher.name
        for matcher in matchers
        if any(matches_pattern(lines, trigger) for trigger in matcher.triggers())
    ]
    if not fired:
        console.print("[yellow]No matcher fired.[/yellow]")
        raise typer.Exit(1)
    for name in fired:
        console.print(f"[green]OK[/green] {name}")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show configuration and tmux server reachability."""
    from tmux_composer.agents import AGENT_DEFS
    from tmux_composer.config.loader import get_config_path
    from tmux_composer.tmux.client import TmuxClient

    config = _load(ctx)
    config_path = get_config_path()
    socket = config.tmux.socket_options()
    reachable = asyncio.run(TmuxClient(socket).socket_exists())

    console.print("tmux-composer Status\n")
    console.print(f"Config: {config_path} {'[green]OK[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Socket: [cyan]{socket.describe()}[/cyan]")
    console.print(f"tmux server: {'[green]reachable[/green]' if reachable else '[red]not running[/red]'}")
    console.print(f"Mode: [cyan]{config.automation.mode}[/cyan]")
    console.print(
        f"Polling: {config.automation.poll_interval_s}s new / {config.automation.settled_poll_interval_s}s settled"
    )
    matchers_source = config.automation.matchers_path or "bundled"
    console.print(f"Matchers: [cyan]{matchers_source}[/cyan]")

    console.print("\nAgents:")
    for key, agent_def in AGENT_DEFS.items():
        marker = "[green]*[/green]" if key == config.automation.agent else " "
        console.print(f"  {marker} {key}: {agent_def.name} | cmd={agent_def.resolve_command()}")
