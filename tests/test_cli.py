from __future__ import annotations

import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tmux_composer import __version__
from tmux_composer.cli.commands import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("TMUX_COMPOSER_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_matchers_lists_bundled_definitions() -> None:
    result = runner.invoke(app, ["matchers"])
    assert result.exit_code == 0
    assert "trust-folder" in result.output
    assert "ensure-plan-mode" in result.output


def test_matchers_rejects_invalid_file(tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("- name: x\n  trigger: []\n  response: ''\n  runOnce: true\n", encoding="utf-8")
    result = runner.invoke(app, ["matchers", "--matchers", str(bad)])
    assert result.exit_code == 1


def test_match_reports_firing_matcher(tmp_path: Path) -> None:
    capture = tmp_path / "capture.txt"
    capture.write_text(
        "│ Do you trust the files in this folder? │\n"
        "│ ❯ 1. Yes, proceed                      │\n"
        "   Enter to confirm · Esc to exit\n",
        encoding="utf-8",
    )
    result = runner.invoke(app, ["match", str(capture)])
    assert result.exit_code == 0
    assert "trust-folder" in result.output


def test_match_exits_nonzero_when_nothing_fires(tmp_path: Path) -> None:
    capture = tmp_path / "capture.txt"
    capture.write_text("$ ls\nREADME.md\n", encoding="utf-8")
    result = runner.invoke(app, ["match", str(capture), "--mode", "act"])
    assert result.exit_code == 1
