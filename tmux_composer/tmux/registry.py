"""Pane/window registry derived from control-mode replies."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from tmux_composer.tmux.control import PaneLine


@dataclass
class PaneRecord:
    """Live attributes of one pane, keyed by its tmux pane id."""

    pane_id: str
    session_id: str
    window_index: str
    pane_index: str
    window_name: str
    command: str
    width: int
    height: int
    pane_active: bool = False
    window_active: bool = False
    first_seen: float = 0.0

    @property
    def display_key(self) -> str:
        return f"{self.session_id}:{self.window_index}.{self.pane_index}"

    def fingerprint(self) -> str:
        return "|".join(
            (
                self.pane_id,
                self.session_id,
                self.window_index,
                self.pane_index,
                self.window_name,
                self.command,
                f"{self.width}x{self.height}",
                "1" if self.pane_active else "0",
                "1" if self.window_active else "0",
            )
        )


@dataclass(frozen=True)
class WindowIdentity:
    session_id: str
    window_index: str


# ── Snapshots ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PaneSnapshot:
    pane_id: str
    pane_index: str
    command: str
    width: int
    height: int
    is_active: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "paneId": self.pane_id,
            "paneIndex": self.pane_index,
            "command": self.command,
            "width": self.width,
            "height": self.height,
            "isActive": self.is_active,
        }


@dataclass(frozen=True)
class WindowSnapshot:
    window_id: str
    window_index: str
    window_name: str
    is_active: bool
    panes: tuple[PaneSnapshot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "windowId": self.window_id,
            "windowIndex": self.window_index,
            "windowName": self.window_name,
            "isActive": self.is_active,
            "panes": [pane.to_dict() for pane in self.panes],
        }


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable projection of one session's windows and panes."""

    session_id: str
    session_name: str
    focused_window_id: str | None
    focused_pane_id: str | None
    windows: tuple[WindowSnapshot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "sessionName": self.session_name,
            "focusedWindowId": self.focused_window_id,
            "focusedPaneId": self.focused_pane_id,
            "windows": [window.to_dict() for window in self.windows],
        }


def _index_key(value: str) -> tuple[int, str]:
    try:
        return int(value), ""
    except ValueError:
        return 0, value


# ── Registry ──────────────────────────────────────────────────────────────────


@dataclass
class PaneRegistry:
    """Mutable pane state owned by a single watcher loop."""

    clock: Callable[[], float] = time.time
    panes: dict[str, PaneRecord] = field(default_factory=dict)
    windows: dict[str, WindowIdentity] = field(default_factory=dict)
    display_keys: dict[str, str] = field(default_factory=dict)

    def upsert(self, line: PaneLine) -> PaneRecord:
        """Create or update the pane described by a PANE reply line."""
        existing = self.panes.get(line.pane_id)
        first_seen = existing.first_seen if existing else self.clock()
        record = PaneRecord(
            pane_id=line.pane_id,
            session_id=line.session_id,
            window_index=line.window_index,
            pane_index=line.pane_index,
            window_name=line.window_name,
            command=line.command,
            width=line.width,
            height=line.height,
            pane_active=line.pane_active,
            window_active=line.window_active,
            first_seen=first_seen,
        )
        self.panes[line.pane_id] = record
        self.windows[line.window_id] = WindowIdentity(line.session_id, line.window_index)
        self.display_keys[line.pane_id] = record.display_key
        return record

    def panes_in_window(self, window_id: str) -> list[PaneRecord]:
        identity = self.windows.get(window_id)
        if identity is None:
            return []
        return [
            pane
            for pane in self.panes.values()
            if pane.session_id == identity.session_id and pane.window_index == identity.window_index
        ]

    def remove_window(self, window_id: str) -> bool:
        """Drop a closed window and its panes. False for unknown ids."""
        identity = self.windows.get(window_id)
        if identity is None:
            return False
        for pane in self.panes_in_window(window_id):
            self._drop_pane(pane.pane_id)
        del self.windows[window_id]
        return True

    def rename_window(self, window_id: str, name: str) -> bool:
        panes = self.panes_in_window(window_id)
        for pane in panes:
            pane.window_name = name
        return bool(panes)

    def resize_window(self, window_id: str, width: int, height: int) -> bool:
        """Apply a layout size to a window's panes. True when anything changed."""
        changed = False
        for pane in self.panes_in_window(window_id):
            if pane.width != width or pane.height != height:
                pane.width = width
                pane.height = height
                changed = True
        return changed

    def prune(self, keep: set[str]) -> list[str]:
        """Remove panes whose ids are not in ``keep``; return the removed ids."""
        removed = [pane_id for pane_id in self.panes if pane_id not in keep]
        for pane_id in removed:
            self._drop_pane(pane_id)
        live = {(pane.session_id, pane.window_index) for pane in self.panes.values()}
        for window_id, identity in list(self.windows.items()):
            if (identity.session_id, identity.window_index) not in live:
                del self.windows[window_id]
        return removed

    def clear(self) -> None:
        self.panes.clear()
        self.windows.clear()
        self.display_keys.clear()

    def _drop_pane(self, pane_id: str) -> None:
        self.panes.pop(pane_id, None)
        self.display_keys.pop(pane_id, None)

    def content_hash(self) -> str:
        """Stable digest of all pane attributes, independent of insertion order."""
        entries = sorted(pane.fingerprint() for pane in self.panes.values())
        return hashlib.sha1("\n".join(entries).encode("utf-8")).hexdigest()

    def window_id_for(self, session_id: str, window_index: str) -> str:
        for window_id, identity in self.windows.items():
            if identity.session_id == session_id and identity.window_index == window_index:
                return window_id
        return ""

    def snapshot(self, session_id: str, session_name: str) -> SessionSnapshot:
        """Project the registry for one session, windows and panes by index."""
        grouped: dict[str, list[PaneRecord]] = {}
        for pane in self.panes.values():
            if pane.session_id == session_id:
                grouped.setdefault(pane.window_index, []).append(pane)

        windows: list[WindowSnapshot] = []
        focused_window_id: str | None = None
        focused_pane_id: str | None = None

        for window_index in sorted(grouped, key=_index_key):
            panes = sorted(grouped[window_index], key=lambda p: _index_key(p.pane_index))
            window_id = self.window_id_for(session_id, window_index)
            is_active = any(pane.window_active for pane in panes)
            if is_active and focused_window_id is None:
                focused_window_id = window_id
                active = next((pane for pane in panes if pane.pane_active), None)
                focused_pane_id = active.pane_id if active else None
            windows.append(
                WindowSnapshot(
                    window_id=window_id,
                    window_index=window_index,
                    window_name=panes[0].window_name,
                    is_active=is_active,
                    panes=tuple(
                        PaneSnapshot(
                            pane_id=pane.pane_id,
                            pane_index=pane.pane_index,
                            command=pane.command,
                            width=pane.width,
                            height=pane.height,
                            is_active=pane.pane_active,
                        )
                        for pane in panes
                    ),
                )
            )

        return SessionSnapshot(
            session_id=session_id,
            session_name=session_name,
            focused_window_id=focused_window_id,
            focused_pane_id=focused_pane_id,
            windows=tuple(windows),
        )
