from __future__ import annotations

from tmux_composer.matching.matcher import clean_content, content_matches, matches_pattern

TRUST_CAPTURE = (
    "╭──────────────────────────────────────────────╮\n"
    "│                                              │\n"
    "│ Do you trust the files in this folder?       │\n"
    "│                                              │\n"
    "│ /home/dev/project                            │\n"
    "│                                              │\n"
    "│ ❯ 1. Yes, proceed                            │\n"
    "│   2. No, exit                                │\n"
    "│                                              │\n"
    "╰──────────────────────────────────────────────╯\n"
    "   Enter to confirm · Esc to exit\n"
    "\n"
    "\n"
)

TRUST_TRIGGER = ["Do you trust the files in this folder?", " Enter to confirm · Esc to exit"]


def test_clean_content_strips_glyphs_and_padding() -> None:
    cleaned = clean_content("\n\n╭───╮\n│ hi   │\n╰───╯\n  \n")
    assert cleaned == " hi"


def test_clean_content_keeps_interior_blank_lines() -> None:
    assert clean_content("a\n\n\nb") == "a\n\n\nb"


def test_clean_content_is_idempotent() -> None:
    for raw in (TRUST_CAPTURE, "", "\n\n", "│ x │\n\n│ y", "  ? for shortcuts   \n"):
        once = clean_content(raw)
        assert clean_content(once) == once


def test_trust_dialog_scenario() -> None:
    content = (
        "│ Do you trust the files in this folder?\n"
        "│\n"
        "│ ❯ 1. Yes, proceed\n"
        "│   2. No, exit\n"
        "   Enter to confirm · Esc to exit"
    )
    trigger = ["Do you trust the files in this folder?", "Enter to confirm · Esc to exit"]
    assert matches_pattern(clean_content(content).split("\n"), trigger)


def test_full_trust_capture_matches() -> None:
    assert content_matches(TRUST_CAPTURE, TRUST_TRIGGER)


def test_content_ending_with_trigger_lines_matches() -> None:
    trigger = ["first line", "second line", "third line"]
    raw = "noise\n│ first line │\n│ second line │\n│ third line │\n\n   \n"
    assert matches_pattern(clean_content(raw).split("\n"), trigger)


def test_last_line_must_anchor_the_match() -> None:
    raw = "Do you trust the files in this folder?\n Enter to confirm · Esc to exit\n> typing something"
    assert not content_matches(raw, TRUST_TRIGGER)


def test_fails_when_content_runs_out() -> None:
    assert not matches_pattern(["Enter to confirm · Esc to exit"], TRUST_TRIGGER)
    assert not matches_pattern([], ["anything"])
    assert not matches_pattern(["", "  "], ["anything"])


def test_blank_content_lines_are_skipped() -> None:
    assert matches_pattern(["a", "", "", "b", "", ""], ["a", "b"])


def test_order_of_trigger_lines_matters() -> None:
    assert not matches_pattern(["b", "a"], ["a", "b", "a"])
    assert matches_pattern(["a", "b", "a"], ["a", "b", "a"])


def test_prompt_status_line_triggers() -> None:
    act = "╭────────╮\n│ >      │\n╰────────╯\n  ? for shortcuts\n"
    plan = "╭────────╮\n│ >      │\n╰────────╯\n  ⏸ plan mode on (shift+tab to cycle)\n"
    assert content_matches(act, [" ? for shortcuts"])
    assert content_matches(plan, [" ⏸ plan mode on (shift+tab to cycle)"])
    assert not content_matches(plan, [" ? for shortcuts"])
