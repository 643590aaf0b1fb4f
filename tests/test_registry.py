from __future__ import annotations

from tmux_composer.tmux.control import parse_pane_line
from tmux_composer.tmux.registry import PaneRegistry

LINES = [
    "PANE %3 $1:2.0 logs tail 80x24 @4 1 0",
    "PANE %1 $1:0.0 editor nvim 80x24 @1 0 1",
    "PANE %2 $1:0.1 editor zsh 80x24 @1 1 1",
    "PANE %9 $1:10.0 later zsh 80x24 @9 1 0",
]


def _registry(lines: list[str]) -> PaneRegistry:
    registry = PaneRegistry(clock=lambda: 100.0)
    for line in lines:
        pane = parse_pane_line(line)
        assert pane is not None
        registry.upsert(pane)
    return registry


def test_hash_is_independent_of_discovery_order() -> None:
    assert _registry(LINES).content_hash() == _registry(list(reversed(LINES))).content_hash()


def test_hash_changes_with_any_attribute() -> None:
    base = _registry(LINES).content_hash()
    variants = [
        "PANE %1 $1:0.0 editor nvim 81x24 @1 0 1",
        "PANE %1 $1:0.0 renamed nvim 80x24 @1 0 1",
        "PANE %1 $1:0.0 editor nvim 80x24 @1 1 1",
        "PANE %1 $1:0.0 editor nvim 80x24 @1 0 0",
    ]
    for variant in variants:
        registry = _registry(LINES)
        registry.upsert(parse_pane_line(variant))
        assert registry.content_hash() != base


def test_snapshot_orders_windows_and_panes_numerically() -> None:
    snapshot = _registry(LINES).snapshot("$1", "work")
    assert [w.window_index for w in snapshot.windows] == ["0", "2", "10"]
    assert [p.pane_id for p in snapshot.windows[0].panes] == ["%1", "%2"]
    assert snapshot.focused_window_id == "@1"
    assert snapshot.focused_pane_id == "%2"

    data = snapshot.to_dict()
    assert data["sessionId"] == "$1"
    assert data["sessionName"] == "work"
    assert data["windows"][0]["windowId"] == "@1"
    assert data["windows"][0]["panes"][1] == {
        "paneId": "%2",
        "paneIndex": "1",
        "command": "zsh",
        "width": 80,
        "height": 24,
        "isActive": True,
    }


def test_window_mutations() -> None:
    registry = _registry(LINES)
    assert registry.rename_window("@1", "code")
    assert {p.window_name for p in registry.panes_in_window("@1")} == {"code"}

    assert registry.resize_window("@1", 100, 30)
    assert not registry.resize_window("@1", 100, 30)

    assert registry.remove_window("@1")
    assert set(registry.panes) == {"%3", "%9"}
    assert "%1" not in registry.display_keys
    assert not registry.remove_window("@404")


def test_prune_keeps_first_seen_of_survivors() -> None:
    times = iter([1.0, 2.0, 3.0, 4.0, 50.0])
    registry = PaneRegistry(clock=lambda: next(times))
    for line in LINES:
        registry.upsert(parse_pane_line(line))
    registry.upsert(parse_pane_line(LINES[1]))

    removed = registry.prune({"%1", "%2"})

    assert sorted(removed) == ["%3", "%9"]
    assert registry.panes["%1"].first_seen == 2.0
    assert set(registry.windows) == {"@1"}
