"""Replay matcher responses into a tmux pane.

A response template mixes literal text with ``<KeyName>`` and
``{command-name}`` tokens::

    "{paste-buffer}<Enter>"   -> paste buffer, pause, Enter
    "<S-Tab><S-Tab>"          -> Shift+Tab, pause, Shift+Tab
    "yes<Enter>"              -> type "yes", Enter
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Protocol

from loguru import logger

DEFAULT_PAUSE_S = 0.5

PASTE_BUFFER = "paste-buffer"


class TokenKind(Enum):
    TEXT = "text"
    KEY = "key"
    COMMAND = "command"


@dataclass(frozen=True)
class ResponseToken:
    kind: TokenKind
    value: str


def tokenize_response(response: str) -> list[ResponseToken]:
    """Split a response template into text, key and command tokens.

    An opening ``<`` or ``{`` without its closing delimiter is literal text.
    """
    tokens: list[ResponseToken] = []
    text: list[str] = []
    i = 0

    def flush() -> None:
        if text:
            tokens.append(ResponseToken(TokenKind.TEXT, "".join(text)))
            text.clear()

    while i < len(response):
        char = response[i]
        if char in "<{":
            closing = ">" if char == "<" else "}"
            close_index = response.find(closing, i + 1)
            if close_index == -1:
                text.append(char)
                i += 1
                continue
            flush()
            kind = TokenKind.KEY if char == "<" else TokenKind.COMMAND
            tokens.append(ResponseToken(kind, response[i + 1:close_index]))
            i = close_index + 1
        else:
            text.append(char)
            i += 1

    flush()
    return tokens


# ── Key names ─────────────────────────────────────────────────────────────────

_KEY_ALIASES: dict[str, str] = {
    "enter": "Enter",
    "return": "Enter",
    "cr": "Enter",
    "esc": "Escape",
    "escape": "Escape",
    "tab": "Tab",
    "s-tab": "BTab",
    "btab": "BTab",
    "space": "Space",
    "bs": "BSpace",
    "bspace": "BSpace",
    "backspace": "BSpace",
    "up": "Up",
    "down": "Down",
    "left": "Left",
    "right": "Right",
    "home": "Home",
    "end": "End",
    "pageup": "PPage",
    "pgup": "PPage",
    "ppage": "PPage",
    "pagedown": "NPage",
    "pgdn": "NPage",
    "npage": "NPage",
    "del": "DC",
    "delete": "DC",
    "dc": "DC",
    "insert": "IC",
    "ic": "IC",
}

_FUNCTION_KEY_RE = re.compile(r"^[Ff]([1-9]|1[0-2])$")
_MODIFIED_KEY_RE = re.compile(r"^((?:[CcMmSs]-)+)(.+)$")


def convert_to_tmux_key(name: str) -> str | None:
    """Translate a template key name into tmux ``send-keys`` syntax.

    Returns None for names tmux would not understand.
    """
    key = name.strip()
    if not key:
        return None

    alias = _KEY_ALIASES.get(key.lower())
    if alias is not None:
        return alias

    if _FUNCTION_KEY_RE.match(key):
        return key.upper()

    modified = _MODIFIED_KEY_RE.match(key)
    if modified:
        prefix, base = modified.groups()
        if len(base) == 1:
            return prefix.upper() + base.lower()
        translated = convert_to_tmux_key(base)
        if translated is not None and not _MODIFIED_KEY_RE.match(translated):
            return prefix.upper() + translated

    return None


# ── Dispatcher ────────────────────────────────────────────────────────────────


class KeySender(Protocol):
    """Subset of the tmux client used to drive a pane."""

    async def send_text(self, target: str, text: str) -> None: ...

    async def send_key(self, target: str, key: str) -> None: ...

    async def paste_buffer(self, target: str) -> None: ...


ErrorCallback = Callable[[str, Exception], None]
Sleep = Callable[[float], Awaitable[None]]


class ActionDispatcher:
    """Replay response templates into panes with pauses between keys."""

    def __init__(
        self,
        sender: KeySender,
        pause_s: float = DEFAULT_PAUSE_S,
        on_error: ErrorCallback | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.sender = sender
        self.pause_s = pause_s
        self.on_error = on_error
        self._sleep = sleep

    async def dispatch(self, target: str, response: str) -> int:
        """Send every token of ``response`` to ``target``.

        A failed token is reported and the remaining tokens are still sent.
        Returns the number of tokens that failed.
        """
        tokens = tokenize_response(response)
        failures = 0

        for index, token in enumerate(tokens):
            has_more = index < len(tokens) - 1
            try:
                if token.kind is TokenKind.TEXT:
                    await self.sender.send_text(target, token.value)
                    continue

                if token.kind is TokenKind.KEY:
                    tmux_key = convert_to_tmux_key(token.value)
                    if tmux_key is None:
                        await self.sender.send_text(target, f"<{token.value}>")
                    else:
                        await self.sender.send_key(target, tmux_key)
                elif token.value == PASTE_BUFFER:
                    await self.sender.paste_buffer(target)
                else:
                    logger.debug(f"[actions] Ignoring unknown command {{{token.value}}}")
            except Exception as exc:
                failures += 1
                logger.warning(f"[actions] Failed to send {token.kind.value} {token.value!r} to {target}: {exc}")
                if self.on_error is not None:
                    self.on_error(f"Failed to send keys to {target}", exc)

            if has_more:
                await self._sleep(self.pause_s)

        return failures
