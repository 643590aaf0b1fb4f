"""Watch one tmux session over a control-mode connection.

Usage:
    watcher = TmuxSessionWatcher(client, bus)
    await watcher.start()        # resolves the current session and connects
    await watcher.wait_closed()  # until teardown (server gone, pipe broken, signal)
"""

from __future__ import annotations

import asyncio
import signal
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from tmux_composer.bus.events import ErrorEvent, SessionChanged
from tmux_composer.bus.queue import EventBus
from tmux_composer.tmux.client import TmuxClient, TmuxCommandError, normalize_session_id
from tmux_composer.tmux.control import (
    LineKind,
    build_list_panes_query,
    classify_line,
    parse_layout_size,
    parse_pane_line,
)
from tmux_composer.tmux.registry import PaneRegistry
from tmux_composer.tmux.throttle import Throttle

DEFAULT_THROTTLE_S = 0.15
DEFAULT_CONNECT_DELAY_S = 0.1
# %output lines can carry large bursts of pane output.
STREAM_LIMIT = 4 * 1024 * 1024

FATAL_STDERR_MARKERS = ("no server running", "lost server", "server exited")

Spawn = Callable[..., Awaitable[Any]]


class ControlModeError(RuntimeError):
    """The control-mode connection is missing or no longer writable."""


class WatcherState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TEARING_DOWN = "tearing-down"


class TmuxSessionWatcher:
    """Keep a pane registry in sync with one session and emit snapshots."""

    def __init__(
        self,
        client: TmuxClient,
        bus: EventBus,
        throttle_s: float = DEFAULT_THROTTLE_S,
        connect_delay_s: float = DEFAULT_CONNECT_DELAY_S,
        spawn: Spawn = asyncio.create_subprocess_exec,
        registry: PaneRegistry | None = None,
    ) -> None:
        self.client = client
        self.bus = bus
        self.connect_delay_s = connect_delay_s
        self.registry = registry or PaneRegistry()
        self._spawn = spawn

        self.session_id: str | None = None
        self.session_name: str | None = None
        self.state = WatcherState.DISCONNECTED

        self._process: Any = None
        self._readers: list[asyncio.Task] = []
        self._pending: set[asyncio.Task] = set()
        self._reapers: set[asyncio.Task] = set()
        self._closed = asyncio.Event()
        self._signals: list[int] = []

        self._in_reply = False
        self._reply_panes: set[str] = set()
        self._initial_delivered = False
        self._last_hash = ""
        self._force_emit = False
        self._throttle = Throttle(self._throttled_refresh, throttle_s)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Resolve the current session, install signal handlers, connect."""
        try:
            name = await self.client.display_message("#{session_name}")
            session_id = await self.client.display_message("#{session_id}")
        except TmuxCommandError as exc:
            raise ControlModeError(
                "Failed to get current session. Are you running inside tmux?"
            ) from exc

        self.session_name = name
        self.session_id = normalize_session_id(session_id)
        logger.info(f"[watcher] Watching session {self.session_name} ({self.session_id})")

        self._install_signal_handlers()
        await self.connect()

    async def connect(self) -> bool:
        """Spawn ``tmux -C attach-session`` and request the initial pane list."""
        if self.session_id is None:
            raise ControlModeError("No session to attach to")
        if self._process is not None:
            self.teardown()

        self._closed.clear()
        self.state = WatcherState.CONNECTING
        argv = self.client.command("-C", "attach-session", "-t", self.session_id)
        try:
            self._process = await self._spawn(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except FileNotFoundError as exc:
            self._report("tmux command not found. Please ensure tmux is installed.", exc)
            self.teardown()
            return False
        except PermissionError as exc:
            self._report("Permission denied when accessing tmux.", exc)
            self.teardown()
            return False
        except OSError as exc:
            self._report("Failed to spawn tmux control client", exc)
            self.teardown()
            return False

        self._readers = [
            asyncio.create_task(self._read_stdout(), name="tmux-control-stdout"),
            asyncio.create_task(self._read_stderr(), name="tmux-control-stderr"),
        ]

        await asyncio.sleep(self.connect_delay_s)
        try:
            await self.write(build_list_panes_query(self.session_id))
        except ControlModeError as exc:
            self._report("Failed to initialize control mode", exc)
            self.teardown()
            return False

        if self.state is WatcherState.CONNECTING:
            self.state = WatcherState.CONNECTED
            logger.info(f"[watcher] Control mode connected ({self.client.socket.describe()})")
        return True

    async def wait_closed(self) -> None:
        """Wait for teardown and for the killed control client to be reaped."""
        await self._closed.wait()
        if self._reapers:
            await asyncio.gather(*self._reapers)

    async def write(self, data: str) -> None:
        """Send one command line to the control client."""
        process = self._process
        if process is None or process.stdin is None:
            raise ControlModeError("Control mode process not available")
        if self.state not in (WatcherState.CONNECTING, WatcherState.CONNECTED):
            raise ControlModeError(f"Control mode is {self.state.value}")
        if process.stdin.is_closing():
            raise ControlModeError("Control mode stdin is closed")

        try:
            process.stdin.write(data.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.error("[watcher] Broken pipe: tmux connection lost")
            self.teardown()
            raise ControlModeError("tmux connection lost") from exc

    def request_refresh(self, force: bool = False) -> None:
        """Schedule a throttled pane-list re-query."""
        if force:
            self._force_emit = True
        self._throttle()

    async def refresh(self) -> None:
        if self.session_id is None:
            return
        await self.write(build_list_panes_query(self.session_id))

    def shutdown(self) -> None:
        """Tear down and drop the signal handlers."""
        self.teardown()
        self._remove_signal_handlers()

    def teardown(self) -> None:
        """Close the control client and forget all derived state."""
        if self.state is WatcherState.TEARING_DOWN:
            return
        was_connected = self._process is not None
        self.state = WatcherState.TEARING_DOWN
        self._throttle.cancel()

        current = asyncio.current_task()
        for task in [*self._readers, *self._pending]:
            if task is not current and not task.done():
                task.cancel()
        self._readers = []
        self._pending.clear()

        process = self._process
        self._process = None
        if process is not None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            reaper = asyncio.ensure_future(self._reap(process))
            self._reapers.add(reaper)
            reaper.add_done_callback(self._reapers.discard)

        self.registry.clear()
        self._in_reply = False
        self._reply_panes.clear()
        self._initial_delivered = False
        self._last_hash = ""
        self._force_emit = False

        self.state = WatcherState.DISCONNECTED
        self._closed.set()
        if was_connected:
            logger.info("[watcher] Control mode disconnected")

    # ------------------------------------------------------------------
    # Protocol handling
    # ------------------------------------------------------------------

    def handle_line(self, line: str) -> None:
        """Apply one control-mode line to the registry."""
        parsed = classify_line(line)

        if parsed.kind is LineKind.BEGIN:
            self._in_reply = True
            self._reply_panes = set()
            return

        if parsed.kind in (LineKind.END, LineKind.ERROR):
            self._in_reply = False
            reply_panes, self._reply_panes = self._reply_panes, set()
            if parsed.kind is LineKind.ERROR:
                logger.debug(f"[watcher] Command failed: {line}")
                return
            if reply_panes:
                self._reconcile(reply_panes)
            return

        if parsed.kind is LineKind.DATA:
            if self._in_reply:
                self._apply_pane_line(line)
            return

        self._handle_notification(parsed.name, parsed.args)

    def _apply_pane_line(self, line: str) -> None:
        pane = parse_pane_line(line)
        if pane is None or pane.session_id != self.session_id:
            return
        self.registry.upsert(pane)
        self._reply_panes.add(pane.pane_id)

    def _reconcile(self, reply_panes: set[str]) -> None:
        removed = self.registry.prune(reply_panes)
        if removed:
            logger.debug(f"[watcher] Pruned {len(removed)} pane(s) missing from reply")
        self._initial_delivered = True

        current = self.registry.content_hash()
        if current != self._last_hash or self._force_emit:
            self._force_emit = False
            self._emit_session_changed()

    def _handle_notification(self, name: str, args: tuple[str, ...]) -> None:
        if name == "window-add":
            if self._initial_delivered:
                self._throttle()
        elif name == "window-close":
            if args and self._owns_window(args[0]):
                self.registry.remove_window(args[0])
                self._emit_session_changed()
        elif name == "window-renamed":
            if args and self._owns_window(args[0]):
                self.registry.rename_window(args[0], " ".join(args[1:]))
                self._emit_session_changed()
        elif name == "layout-change":
            if len(args) >= 2 and self._owns_window(args[0]):
                size = parse_layout_size(args[1])
                if size and self.registry.resize_window(args[0], *size):
                    self._emit_session_changed()
            self._throttle()
        elif name == "window-pane-changed":
            if args and self._owns_window(args[0]):
                self._throttle()
        elif name == "exit":
            logger.info(f"[watcher] Control client exited {' '.join(args)}".rstrip())
            self.teardown()
        # %output, %session-changed, %sessions-changed and others carry nothing we track.

    def _owns_window(self, window_id: str) -> bool:
        identity = self.registry.windows.get(window_id)
        return identity is not None and identity.session_id == self.session_id

    def _emit_session_changed(self) -> None:
        self._last_hash = self.registry.content_hash()
        snapshot = self.registry.snapshot(self.session_id or "", self.session_name or "")
        self.bus.publish(SessionChanged(snapshot))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _throttled_refresh(self) -> None:
        if self.state not in (WatcherState.CONNECTING, WatcherState.CONNECTED):
            return
        logger.debug("[watcher] Refreshing pane list")
        task = asyncio.ensure_future(self._refresh_quietly())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh()
        except ControlModeError as exc:
            logger.warning(f"[watcher] Failed to refresh pane list: {exc}")

    async def _reap(self, process: Any) -> None:
        returncode = await process.wait()
        logger.debug(f"[watcher] Control client exited with status {returncode}")

    async def _read_stdout(self) -> None:
        process = self._process
        try:
            while True:
                try:
                    raw = await process.stdout.readline()
                except ValueError as exc:
                    logger.warning(f"[watcher] Skipping oversized control line: {exc}")
                    continue
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if not line.strip():
                    continue
                try:
                    self.handle_line(line)
                except Exception as exc:
                    logger.error(f"[watcher] Error processing control line {line!r}: {exc}")
        finally:
            if process is self._process:
                self.teardown()

    async def _read_stderr(self) -> None:
        process = self._process
        while True:
            try:
                raw = await process.stderr.readline()
            except ValueError as exc:
                logger.warning(f"[watcher] Skipping oversized stderr line: {exc}")
                continue
            if not raw:
                return
            message = raw.decode("utf-8", errors="replace").strip()
            if not message:
                continue
            logger.warning(f"[watcher] Control mode error: {message}")
            if any(marker in message for marker in FATAL_STDERR_MARKERS):
                self.teardown()
                return

    def _report(self, message: str, exc: Exception) -> None:
        logger.error(f"[watcher] {message}: {exc}")
        self.bus.publish(ErrorEvent.from_exception(message, exc))

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        handlers = {
            signal.SIGINT: self.shutdown,
            signal.SIGTERM: self.shutdown,
        }
        sigwinch = getattr(signal, "SIGWINCH", None)
        if sigwinch is not None:
            handlers[sigwinch] = lambda: self.request_refresh(force=True)
        for signum, handler in handlers.items():
            try:
                loop.add_signal_handler(signum, handler)
            except (NotImplementedError, RuntimeError):
                continue
            self._signals.append(signum)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals = []
