from __future__ import annotations

import asyncio

from tmux_composer.matching.actions import (
    ActionDispatcher,
    ResponseToken,
    TokenKind,
    convert_to_tmux_key,
    tokenize_response,
)


class RecordingSender:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.fail_on = fail_on or set()

    async def send_text(self, target: str, text: str) -> None:
        self._record("text", target, text)

    async def send_key(self, target: str, key: str) -> None:
        self._record("key", target, key)

    async def paste_buffer(self, target: str) -> None:
        self._record("paste", target, "")

    def _record(self, kind: str, target: str, value: str) -> None:
        self.calls.append((kind, target, value))
        if kind in self.fail_on:
            raise RuntimeError(f"{kind} failed")


def _dispatcher(sender: RecordingSender, timeline: list, errors: list | None = None) -> ActionDispatcher:
    async def fake_sleep(seconds: float) -> None:
        timeline.append(("pause", seconds))

    def on_error(message: str, exc: Exception) -> None:
        if errors is not None:
            errors.append(message)

    return ActionDispatcher(sender, pause_s=0.5, on_error=on_error, sleep=fake_sleep)


def test_tokenize_mixed_template() -> None:
    assert tokenize_response("yes<Enter>{paste-buffer}done") == [
        ResponseToken(TokenKind.TEXT, "yes"),
        ResponseToken(TokenKind.KEY, "Enter"),
        ResponseToken(TokenKind.COMMAND, "paste-buffer"),
        ResponseToken(TokenKind.TEXT, "done"),
    ]


def test_unterminated_delimiters_are_literal_text() -> None:
    assert tokenize_response("a < b") == [ResponseToken(TokenKind.TEXT, "a < b")]
    assert tokenize_response("<Enter>{oops") == [
        ResponseToken(TokenKind.KEY, "Enter"),
        ResponseToken(TokenKind.TEXT, "{oops"),
    ]


def test_convert_to_tmux_key() -> None:
    assert convert_to_tmux_key("Enter") == "Enter"
    assert convert_to_tmux_key("esc") == "Escape"
    assert convert_to_tmux_key("S-Tab") == "BTab"
    assert convert_to_tmux_key("f5") == "F5"
    assert convert_to_tmux_key("c-c") == "C-c"
    assert convert_to_tmux_key("M-Up") == "M-Up"
    assert convert_to_tmux_key("Bogus") is None


def test_paste_buffer_then_enter_with_pause() -> None:
    sender = RecordingSender()
    timeline: list = []

    async def run() -> int:
        dispatcher = _dispatcher(sender, timeline)
        original = sender._record

        def record(kind: str, target: str, value: str) -> None:
            timeline.append((kind, value))
            original(kind, target, value)

        sender._record = record
        return await dispatcher.dispatch("work:1", "{paste-buffer}<Enter>")

    failures = asyncio.run(run())

    assert failures == 0
    assert timeline == [("paste", ""), ("pause", 0.5), ("key", "Enter")]
    assert sender.calls == [("paste", "work:1", ""), ("key", "work:1", "Enter")]


def test_no_pause_after_last_token_or_text() -> None:
    sender = RecordingSender()
    timeline: list = []
    asyncio.run(_dispatcher(sender, timeline).dispatch("s:0", "y<Enter>"))
    assert timeline == []
    assert sender.calls == [("text", "s:0", "y"), ("key", "s:0", "Enter")]


def test_unknown_key_sent_as_text_and_unknown_command_dropped() -> None:
    sender = RecordingSender()
    asyncio.run(_dispatcher(sender, []).dispatch("s:0", "<Nope>{reload}"))
    assert sender.calls == [("text", "s:0", "<Nope>")]


def test_failed_token_is_reported_and_rest_still_sent() -> None:
    sender = RecordingSender(fail_on={"paste"})
    errors: list = []
    failures = asyncio.run(_dispatcher(sender, [], errors).dispatch("s:2", "{paste-buffer}<Enter>"))
    assert failures == 1
    assert errors == ["Failed to send keys to s:2"]
    assert sender.calls[-1] == ("key", "s:2", "Enter")
