"""Detect a supervised agent running below a pane's shell."""

from __future__ import annotations

import os
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Iterable

import psutil
from loguru import logger

from tmux_composer.tmux.client import PaneProcess


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    ppid: int
    name: str
    cmdline: tuple[str, ...] = ()

    def runs(self, binary: str) -> bool:
        """True when this process is ``binary``, directly or via an interpreter."""
        if self.name == binary:
            return True
        # node/python launchers: `node /usr/local/bin/claude ...`
        return any(os.path.basename(arg) == binary for arg in self.cmdline[:2])


class ProcessTree:
    """Immutable parent/child view of the process table."""

    def __init__(self, processes: Iterable[ProcessInfo]) -> None:
        self._by_pid: dict[int, ProcessInfo] = {}
        self._children: dict[int, list[int]] = defaultdict(list)
        for proc in processes:
            self._by_pid[proc.pid] = proc
            self._children[proc.ppid].append(proc.pid)

    @classmethod
    def snapshot(cls) -> "ProcessTree":
        """Read the live process table."""
        processes: list[ProcessInfo] = []
        for proc in psutil.process_iter(["pid", "ppid", "name", "cmdline"]):
            info = proc.info
            processes.append(
                ProcessInfo(
                    pid=info["pid"],
                    ppid=info.get("ppid") or 0,
                    name=info.get("name") or "",
                    cmdline=tuple(info.get("cmdline") or ()),
                )
            )
        return cls(processes)

    def __len__(self) -> int:
        return len(self._by_pid)

    def get(self, pid: int) -> ProcessInfo | None:
        return self._by_pid.get(pid)

    def descendants(self, pid: int) -> list[ProcessInfo]:
        """All processes below ``pid``, breadth first."""
        found: list[ProcessInfo] = []
        seen = {pid}
        queue = deque(self._children.get(pid, ()))
        while queue:
            child = queue.popleft()
            if child in seen:
                continue
            seen.add(child)
            info = self._by_pid.get(child)
            if info is not None:
                found.append(info)
            queue.extend(self._children.get(child, ()))
        return found

    def find_descendant(self, pid: int, binary: str) -> ProcessInfo | None:
        """The process running ``binary`` at or below ``pid``, if any."""
        root = self._by_pid.get(pid)
        if root is not None and root.runs(binary):
            return root
        for proc in self.descendants(pid):
            if proc.runs(binary):
                return proc
        return None


WindowKey = tuple[str, str]


class AgentWindowDetector:
    """Decide which (session name, window index) pairs host the agent.

    A window counts when any of its panes either reports the agent as its
    foreground command or has the agent somewhere in its process subtree.
    """

    def __init__(self, binary: str) -> None:
        self.binary = binary

    def detect(self, panes: Iterable[PaneProcess], tree: ProcessTree) -> set[WindowKey]:
        windows: set[WindowKey] = set()
        for pane in panes:
            key = (pane.session_name, pane.window_index)
            if key in windows:
                continue
            if pane.command == self.binary or tree.find_descendant(pane.pid, self.binary):
                windows.add(key)
        logger.debug(f"[process] {self.binary} present in {len(windows)} window(s)")
        return windows
