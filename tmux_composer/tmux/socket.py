"""tmux server socket selection."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TmuxSocketOptions:
    """Which tmux server to talk to.

    ``socket_name`` (``-L``) wins over ``socket_path`` (``-S``). With neither,
    the socket of the enclosing tmux (``$TMUX``) is used, else tmux's default.
    """

    socket_name: str | None = None
    socket_path: str | None = None

    def args(self) -> list[str]:
        if self.socket_name:
            return ["-L", self.socket_name]
        if self.socket_path:
            return ["-S", self.socket_path]

        tmux_env = os.environ.get("TMUX", "")
        socket_path = tmux_env.split(",")[0] if tmux_env else ""
        if socket_path:
            return ["-S", socket_path]
        return []

    def describe(self) -> str:
        args = self.args()
        return " ".join(args) if args else "default socket"
