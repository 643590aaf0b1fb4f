"""Registry of supervised CLI agents."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AgentDef:
    """Supervised agent metadata."""

    key: str
    name: str
    command: str
    env_override: str

    def resolve_command(self) -> str:
        """Resolve the binary name from env override or default command."""
        value = os.getenv(self.env_override, "").strip()
        return value or self.command

    def resolve_binary(self) -> str:
        """Return the bare executable name used for process detection."""
        command = self.resolve_command()
        head = command.split()[0] if command.split() else self.command
        return os.path.basename(head)


AGENT_DEFS: dict[str, AgentDef] = {
    "claude": AgentDef(
        key="claude",
        name="Claude Code",
        command="claude",
        env_override="TMUX_COMPOSER_CLAUDE_CMD",
    ),
    "codex": AgentDef(
        key="codex",
        name="Codex CLI",
        command="codex",
        env_override="TMUX_COMPOSER_CODEX_CMD",
    ),
    "gemini": AgentDef(
        key="gemini",
        name="Gemini CLI",
        command="gemini",
        env_override="TMUX_COMPOSER_GEMINI_CMD",
    ),
}


def get_agent_def(key: str) -> AgentDef:
    """Look up the agent supervised under ``key`` (case-insensitive)."""
    normalized = (key or "").strip().lower()
    if normalized not in AGENT_DEFS:
        choices = ", ".join(sorted(AGENT_DEFS))
        raise ValueError(f"Unknown agent {key!r}. Supported agents: {choices}")
    return AGENT_DEFS[normalized]
