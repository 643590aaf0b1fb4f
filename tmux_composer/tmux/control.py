"""tmux control-mode (``tmux -C``) line grammar."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from tmux_composer.tmux.client import normalize_session_id

PANE_FORMAT = (
    "PANE #{pane_id} #{session_id}:#{window_index}.#{pane_index} "
    "#{window_name} #{pane_current_command} #{pane_width}x#{pane_height} "
    "#{window_id} #{pane_active} #{window_active}"
)

# tmux may echo ids with a doubled sigil (%%3, @@1) depending on version.
PANE_LINE_RE = re.compile(
    r"^PANE (%{1,2}\d+) ([^:]+):(\d+)\.(\d+) (.+?) ([^ ]+) (\d+)x(\d+) (@{1,2}\d+) ([01]) ([01])$"
)

LAYOUT_SIZE_RE = re.compile(r",(\d+)x(\d+),")


class LineKind(Enum):
    BEGIN = "begin"
    END = "end"
    ERROR = "error"
    NOTIFICATION = "notification"
    DATA = "data"


@dataclass(frozen=True)
class ControlLine:
    """One classified line of control-mode output."""

    kind: LineKind
    raw: str
    name: str = ""
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaneLine:
    pane_id: str
    session_id: str
    window_index: str
    pane_index: str
    window_name: str
    command: str
    width: int
    height: int
    window_id: str
    pane_active: bool
    window_active: bool


def classify_line(line: str) -> ControlLine:
    """Classify a control-mode line by its leading token."""
    if not line.startswith("%"):
        return ControlLine(LineKind.DATA, line)

    head, _, rest = line.partition(" ")
    name = head[1:]
    args = tuple(rest.split(" ")) if rest else ()
    if name == "begin":
        return ControlLine(LineKind.BEGIN, line, name, args)
    if name == "end":
        return ControlLine(LineKind.END, line, name, args)
    if name == "error":
        return ControlLine(LineKind.ERROR, line, name, args)
    return ControlLine(LineKind.NOTIFICATION, line, name, args)


def _single_sigil(value: str, sigil: str) -> str:
    return sigil + value.lstrip(sigil)


def parse_pane_line(line: str) -> PaneLine | None:
    """Parse a ``PANE`` reply line; None when it does not fit the grammar."""
    match = PANE_LINE_RE.match(line.rstrip("\r"))
    if not match:
        return None
    (
        pane_id,
        session_id,
        window_index,
        pane_index,
        window_name,
        command,
        width,
        height,
        window_id,
        pane_active,
        window_active,
    ) = match.groups()
    return PaneLine(
        pane_id=_single_sigil(pane_id, "%"),
        session_id=normalize_session_id(session_id),
        window_index=window_index,
        pane_index=pane_index,
        window_name=window_name,
        command=command,
        width=int(width),
        height=int(height),
        window_id=_single_sigil(window_id, "@"),
        pane_active=pane_active == "1",
        window_active=window_active == "1",
    )


def parse_layout_size(layout: str) -> tuple[int, int] | None:
    """Extract the top-level ``WxH`` from a tmux layout string."""
    match = LAYOUT_SIZE_RE.search(layout)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def build_list_panes_query(session_id: str) -> str:
    """Command text that asks for every pane of ``session_id`` as PANE lines."""
    return f"list-panes -s -t '{session_id}' -F \"{PANE_FORMAT}\"\n"
