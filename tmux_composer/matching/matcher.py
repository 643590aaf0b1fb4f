"""Tail-anchored prompt matching against captured pane content.

Captures of agent TUIs are framed by box-drawing borders and padded with
trailing whitespace and blank rows. Triggers are the last meaningful lines
of a known prompt, so matching works bottom-up:

- ``clean_content`` strips border glyphs and blank padding.
- ``matches_pattern`` aligns the trigger with the tail of the content.
"""

from __future__ import annotations

import re
from typing import Sequence

# ── Compiled patterns ─────────────────────────────────────────────────────────

# Corner, edge and junction glyphs drawn around Claude Code / Gemini dialogs.
BOX_CHARS_RE = re.compile(r"[╭╮╰╯│─┌┐└┘├┤┬┴┼━┃┏┓┗┛╔╗╚╝║═]")


def clean_content(content: str) -> str:
    """Normalize a raw capture for matching.

    Removes box-drawing glyphs, trims trailing whitespace on every line and
    drops leading/trailing empty lines. Interior blank lines are kept.
    """
    lines = [BOX_CHARS_RE.sub("", line).rstrip() for line in content.split("\n")]

    start = 0
    while start < len(lines) and lines[start] == "":
        start += 1
    end = len(lines)
    while end > start and lines[end - 1] == "":
        end -= 1

    return "\n".join(lines[start:end])


def line_satisfies(content_line: str, trigger_line: str) -> bool:
    """Return True when the trimmed trigger text occurs inside the content line."""
    return trigger_line.strip() in content_line


def matches_pattern(content_lines: Sequence[str], trigger_lines: Sequence[str]) -> bool:
    """Return True when ``trigger_lines`` sit at the tail of ``content_lines``.

    Both lists are walked from the end. Blank content lines never count.
    The last trigger line must be satisfied by the last non-blank content
    line; after that anchor, non-matching content lines are skipped until the
    next trigger line is found. Fails when content runs out first.
    """
    content_index = len(content_lines) - 1
    trigger_index = len(trigger_lines) - 1
    anchored = False

    while trigger_index >= 0:
        while content_index >= 0 and not content_lines[content_index].strip():
            content_index -= 1

        if content_index < 0:
            return False

        if line_satisfies(content_lines[content_index], trigger_lines[trigger_index]):
            anchored = True
            trigger_index -= 1
        elif not anchored:
            return False

        content_index -= 1

    return True


def content_matches(content: str, trigger_lines: Sequence[str]) -> bool:
    """Clean a raw capture and test it against one trigger."""
    return matches_pattern(clean_content(content).split("\n"), trigger_lines)
