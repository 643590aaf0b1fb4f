"""Polling automation engine.

Captures every window of every non-human-controlled session on a short
interval and, when a supervised agent is running in the window, answers its
known prompts by replaying matcher responses.

Usage:
    automator = TmuxAutomator(client, bus, matchers, mode=MatcherMode.ACT)
    await automator.start()
    ...
    automator.stop()
"""

from __future__ import annotations

import asyncio
import signal
import time
from typing import Callable, Sequence

from loguru import logger

from tmux_composer.bus.events import ErrorEvent, SessionControl, WindowAutomation, WindowContent
from tmux_composer.bus.queue import EventBus
from tmux_composer.matching.actions import ActionDispatcher
from tmux_composer.matching.definitions import MatcherDefinition, MatcherMode, eligible_matchers
from tmux_composer.matching.matcher import clean_content, matches_pattern
from tmux_composer.runtime.checksums import ChecksumCache, content_checksum
from tmux_composer.runtime.process_tree import AgentWindowDetector, ProcessTree, WindowKey
from tmux_composer.tmux.client import TmuxClient, WindowRef, window_target

DEFAULT_POLL_INTERVAL_S = 0.5
DEFAULT_SETTLED_POLL_INTERVAL_S = 1.5
DEFAULT_NEW_PANE_WINDOW_S = 20.0
DEFAULT_AGENT_SCAN_INTERVAL_S = 0.5
CANONICAL_SIZE = (80, 24)

ProcessTreeFactory = Callable[[], ProcessTree]


class TmuxAutomator:
    """Async background poller that drives agent prompts in tmux windows."""

    def __init__(
        self,
        client: TmuxClient,
        bus: EventBus,
        matchers: Sequence[MatcherDefinition],
        mode: MatcherMode = MatcherMode.ACT,
        agent_binary: str = "claude",
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        settled_poll_interval_s: float = DEFAULT_SETTLED_POLL_INTERVAL_S,
        new_pane_window_s: float = DEFAULT_NEW_PANE_WINDOW_S,
        agent_scan_interval_s: float = DEFAULT_AGENT_SCAN_INTERVAL_S,
        action_pause_s: float = 0.5,
        canonical_size: tuple[int, int] = CANONICAL_SIZE,
        checksum_cache_size: int = 1000,
        process_tree: ProcessTreeFactory = ProcessTree.snapshot,
        clock: Callable[[], float] = time.monotonic,
        dispatcher: ActionDispatcher | None = None,
    ) -> None:
        self.client = client
        self.bus = bus
        self.mode = mode
        self.matchers = eligible_matchers(matchers, mode)
        self.poll_interval_s = poll_interval_s
        self.settled_poll_interval_s = settled_poll_interval_s
        self.new_pane_window_s = new_pane_window_s
        self.agent_scan_interval_s = agent_scan_interval_s
        self.canonical_size = canonical_size

        self.detector = AgentWindowDetector(agent_binary)
        self.dispatcher = dispatcher or ActionDispatcher(
            client,
            pause_s=action_pause_s,
            on_error=self._report,
        )
        self._process_tree = process_tree
        self._clock = clock

        self._task: asyncio.Task | None = None
        self._running = False
        self._signals: list[int] = []

        # Derived state, cleared whenever the tmux server goes away.
        self._socket_connected: bool | None = None
        self._checksums = ChecksumCache(checksum_cache_size)
        self._human_control: dict[str, bool] = {}
        self._agent_windows: set[WindowKey] = set()
        self._agent_seen: set[WindowKey] = set()
        self._executed: set[tuple[str, str, str]] = set()
        self._pane_first_seen: dict[str, float] = {}
        self._last_agent_scan: float | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background polling task."""
        self._running = True
        self._install_signal_handlers()
        self._task = asyncio.create_task(self._loop(), name="tmux-automator")
        logger.info(
            f"[automate] Started: agent={self.detector.binary!r} mode={self.mode} "
            f"matchers={len(self.matchers)}"
        )

    def stop(self) -> None:
        """Cancel the background task."""
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        self._remove_signal_handlers()

    async def wait(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def executed(self) -> frozenset[tuple[str, str, str]]:
        return frozenset(self._executed)

    def next_interval(self) -> float:
        """Fast cadence while any pane is recent, settled cadence afterwards."""
        now = self._clock()
        for first_seen in self._pane_first_seen.values():
            if now - first_seen < self.new_pane_window_s:
                return self.poll_interval_s
        return self.settled_poll_interval_s

    async def run_cycle(self) -> None:
        """One polling pass over every session and window."""
        if not await self.client.socket_exists():
            if self._socket_connected is not False:
                if self._socket_connected:
                    logger.warning("[automate] tmux server disconnected, waiting for reconnection")
                else:
                    logger.info(f"[automate] Waiting for tmux socket ({self.client.socket.describe()})")
                self._clear_state()
            self._socket_connected = False
            return

        if self._socket_connected is not True:
            logger.info("[automate] tmux socket detected")
            self._socket_connected = True

        await self._refresh_agent_windows()

        try:
            sessions = await self.client.list_sessions()
        except Exception as exc:
            self._report("Error listing sessions", exc)
            return

        for session in sessions:
            await self._process_session(session)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
                await asyncio.sleep(self.next_interval())
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.warning(f"[automate] Poll loop error: {exc}")
                await asyncio.sleep(self.settled_poll_interval_s)

    def _clear_state(self) -> None:
        self._checksums.clear()
        self._human_control.clear()
        self._agent_windows.clear()
        self._agent_seen.clear()
        self._executed.clear()
        self._pane_first_seen.clear()
        self._last_agent_scan = None

    async def _refresh_agent_windows(self) -> None:
        now = self._clock()
        if self._last_agent_scan is not None and now - self._last_agent_scan < self.agent_scan_interval_s:
            return
        self._last_agent_scan = now

        try:
            panes = await self.client.list_all_panes()
            tree = await asyncio.to_thread(self._process_tree)
        except Exception as exc:
            self._report("Failed to scan process tree", exc)
            return

        live = {pane.pane_id for pane in panes}
        for pane_id in list(self._pane_first_seen):
            if pane_id not in live:
                del self._pane_first_seen[pane_id]
        for pane in panes:
            self._pane_first_seen.setdefault(pane.pane_id, now)

        self._agent_windows = self.detector.detect(panes, tree)
        logger.debug(f"[automate] Scanned {len(tree)} processes across {len(panes)} panes")

    async def _process_session(self, session: str) -> None:
        try:
            human = await self.client.has_attached_client(session)
        except Exception as exc:
            self._report(f"Failed to check clients of {session}", exc)
            return

        was_human = self._human_control.get(session, False)
        if human != was_human:
            self._human_control[session] = human
            logger.info(f"[automate] {session} is now {'human' if human else 'automation'} controlled")
            self.bus.publish(SessionControl(session_name=session, is_human_controlled=human))
            if was_human and not human:
                await self._resize_session(session)

        if human:
            return

        try:
            windows = await self.client.list_windows(session)
        except Exception as exc:
            self._report(f"Failed to list windows of {session}", exc)
            return

        for window in windows:
            await self._process_window(session, window)

    async def _resize_session(self, session: str) -> None:
        width, height = self.canonical_size
        try:
            windows = await self.client.list_windows(session)
        except Exception as exc:
            self._report(f"Failed to list windows of {session}", exc)
            return
        for window in windows:
            try:
                await self.client.resize_window(window_target(session, window.index), width, height)
            except Exception as exc:
                self._report(f"Failed to resize {session}:{window.name}", exc)

    async def _process_window(self, session: str, window: WindowRef) -> None:
        key: WindowKey = (session, window.index)
        target = window_target(session, window.index)

        try:
            raw = await self.client.capture_pane(target)
        except Exception as exc:
            self._report(f"Error capturing {session}:{window.name}", exc)
            return

        is_new = key not in self._checksums
        changed = self._checksums.update(key, content_checksum(raw))
        if changed or is_new:
            self.bus.publish(WindowContent(session_name=session, window_name=window.name, content=raw))

        has_agent = key in self._agent_windows
        newly_present = has_agent and key not in self._agent_seen
        if has_agent:
            self._agent_seen.add(key)
        else:
            self._agent_seen.discard(key)

        if (changed and has_agent) or newly_present:
            await self._run_matchers(session, window, raw)

    async def _run_matchers(self, session: str, window: WindowRef, raw: str) -> None:
        lines = clean_content(raw).split("\n")
        target = window_target(session, window.index)
        logger.debug(f"[automate] Checking {target} for automation patterns")

        for matcher in self.matchers:
            if not any(matches_pattern(lines, trigger) for trigger in matcher.triggers()):
                continue

            executed_key = (session, window.index, matcher.name)
            if matcher.run_once and executed_key in self._executed:
                continue
            if matcher.run_once:
                self._executed.add(executed_key)

            await self.dispatcher.dispatch(target, matcher.response)
            self.bus.publish(
                WindowAutomation(session_name=session, window_name=window.name, matcher_name=matcher.name)
            )

    def _report(self, message: str, exc: Exception) -> None:
        logger.debug(f"[automate] {message}: {exc!r}")
        self.bus.publish(ErrorEvent.from_exception(message, exc))

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.stop)
            except (NotImplementedError, RuntimeError):
                continue
            self._signals.append(signum)

    def _remove_signal_handlers(self) -> None:
        if not self._signals:
            return
        loop = asyncio.get_running_loop()
        for signum in self._signals:
            loop.remove_signal_handler(signum)
        self._signals = []
