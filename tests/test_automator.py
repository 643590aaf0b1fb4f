from __future__ import annotations

import asyncio

from tmux_composer.bus.events import ErrorEvent, SessionControl, WindowAutomation, WindowContent
from tmux_composer.bus.queue import EventBus
from tmux_composer.matching.definitions import MatcherMode, load_matchers
from tmux_composer.runtime.automator import TmuxAutomator
from tmux_composer.runtime.process_tree import ProcessInfo, ProcessTree
from tmux_composer.tmux.client import PaneProcess, TmuxCommandError, WindowRef
from tmux_composer.tmux.socket import TmuxSocketOptions

ACT_PROMPT = "╭──────────╮\n│ >        │\n╰──────────╯\n  ? for shortcuts\n"


class FakeTmux:
    def __init__(self) -> None:
        self.socket = TmuxSocketOptions(socket_name="test")
        self.alive = True
        self.attached: dict[str, bool] = {"work": False}
        self.windows = {"work": [WindowRef(index="0", name="main")]}
        self.contents = {"work:0": ACT_PROMPT}
        self.command = "claude"
        self.capture_error: Exception | None = None
        self.sent: list[tuple[str, str, str]] = []
        self.resized: list[tuple[str, int, int]] = []

    async def socket_exists(self) -> bool:
        return self.alive

    async def list_all_panes(self) -> list[PaneProcess]:
        return [
            PaneProcess("$1", session, window.index, "0", f"%{session}{window.index}", 100, self.command)
            for session, windows in self.windows.items()
            for window in windows
        ]

    async def list_sessions(self) -> list[str]:
        return list(self.windows)

    async def has_attached_client(self, session_name: str) -> bool:
        return self.attached.get(session_name, False)

    async def list_windows(self, session_name: str) -> list[WindowRef]:
        return self.windows[session_name]

    async def capture_pane(self, target: str) -> str:
        if self.capture_error is not None:
            raise self.capture_error
        return self.contents[target]

    async def resize_window(self, target: str, width: int, height: int) -> None:
        self.resized.append((target, width, height))

    async def send_text(self, target: str, text: str) -> None:
        self.sent.append(("text", target, text))

    async def send_key(self, target: str, key: str) -> None:
        self.sent.append(("key", target, key))

    async def paste_buffer(self, target: str) -> None:
        self.sent.append(("paste", target, ""))


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _automator(tmux: FakeTmux, mode: MatcherMode = MatcherMode.ACT, clock: Clock | None = None):
    bus = EventBus(log_summaries=False)
    events: list = []
    bus.subscribe_all(events.append)
    automator = TmuxAutomator(
        tmux,
        bus,
        load_matchers(),
        mode=mode,
        action_pause_s=0,
        agent_scan_interval_s=0,
        process_tree=lambda: ProcessTree([ProcessInfo(pid=100, ppid=1, name="zsh")]),
        clock=clock or Clock(),
    )
    return automator, events


def _of(events: list, kind: type) -> list:
    return [event for event in events if isinstance(event, kind)]


def test_run_once_matcher_fires_once_per_window() -> None:
    tmux = FakeTmux()
    automator, events = _automator(tmux)

    async def run() -> None:
        await automator.run_cycle()
        tmux.contents["work:0"] = "thinking...\n" + ACT_PROMPT
        await automator.run_cycle()

    asyncio.run(run())

    automations = _of(events, WindowAutomation)
    assert [a.matcher_name for a in automations] == ["inject-initial-context-act"]
    assert automations[0].window_name == "main"
    assert tmux.sent == [("paste", "work:0", ""), ("key", "work:0", "Enter")]
    assert len(_of(events, WindowContent)) == 2
    assert automator.executed == {("work", "0", "inject-initial-context-act")}


def test_plan_mode_uses_plan_matchers() -> None:
    tmux = FakeTmux()
    automator, events = _automator(tmux, mode=MatcherMode.PLAN)
    asyncio.run(automator.run_cycle())
    assert [a.matcher_name for a in _of(events, WindowAutomation)] == ["ensure-plan-mode"]
    assert tmux.sent == [("key", "work:0", "BTab"), ("key", "work:0", "BTab")]


def test_no_agent_means_no_automation() -> None:
    tmux = FakeTmux()
    tmux.command = "zsh"
    automator, events = _automator(tmux)
    asyncio.run(automator.run_cycle())
    assert _of(events, WindowAutomation) == []
    assert len(_of(events, WindowContent)) == 1
    assert tmux.sent == []


def test_unchanged_content_is_not_reemitted() -> None:
    tmux = FakeTmux()
    automator, events = _automator(tmux)

    async def run() -> None:
        await automator.run_cycle()
        await automator.run_cycle()

    asyncio.run(run())
    assert len(_of(events, WindowContent)) == 1


def test_human_controlled_sessions_are_skipped_then_resized() -> None:
    tmux = FakeTmux()
    tmux.attached["work"] = True
    automator, events = _automator(tmux)

    async def run() -> None:
        await automator.run_cycle()
        assert _of(events, WindowContent) == []
        tmux.attached["work"] = False
        await automator.run_cycle()

    asyncio.run(run())

    controls = _of(events, SessionControl)
    assert [c.is_human_controlled for c in controls] == [True, False]
    assert tmux.resized == [("work:0", 80, 24)]
    assert len(_of(events, WindowContent)) == 1


def test_disconnect_clears_executed_matchers() -> None:
    tmux = FakeTmux()
    automator, events = _automator(tmux)

    async def run() -> None:
        await automator.run_cycle()
        tmux.alive = False
        await automator.run_cycle()
        assert automator.executed == frozenset()
        tmux.alive = True
        await automator.run_cycle()

    asyncio.run(run())
    assert len(_of(events, WindowAutomation)) == 2


def test_capture_failure_is_reported_and_cycle_continues() -> None:
    tmux = FakeTmux()
    tmux.windows["work"].append(WindowRef(index="1", name="second"))
    tmux.contents["work:1"] = "plain shell\n"
    automator, events = _automator(tmux)

    async def run() -> None:
        tmux.capture_error = TmuxCommandError(["capture-pane"], "can't find window")
        await automator.run_cycle()
        tmux.capture_error = None
        await automator.run_cycle()

    asyncio.run(run())

    errors = _of(events, ErrorEvent)
    assert [e.message for e in errors] == ["Error capturing work:main", "Error capturing work:second"]
    assert "can't find window" in errors[0].error
    assert len(_of(events, WindowContent)) == 2


def test_cadence_slows_down_once_panes_settle() -> None:
    tmux = FakeTmux()
    clock = Clock()
    automator, _ = _automator(tmux, clock=clock)
    asyncio.run(automator.run_cycle())

    assert automator.next_interval() == 0.5
    clock.now += 21
    assert automator.next_interval() == 1.5


def test_agent_appearing_on_unchanged_content_runs_matchers() -> None:
    tmux = FakeTmux()
    tmux.command = "zsh"
    automator, events = _automator(tmux)

    async def run() -> None:
        await automator.run_cycle()
        assert _of(events, WindowAutomation) == []
        tmux.command = "claude"
        await automator.run_cycle()

    asyncio.run(run())
    assert [a.matcher_name for a in _of(events, WindowAutomation)] == ["inject-initial-context-act"]
    assert len(_of(events, WindowContent)) == 1
