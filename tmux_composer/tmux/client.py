"""One-shot tmux commands (no persistent control connection)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from loguru import logger

from tmux_composer.tmux.socket import TmuxSocketOptions

TMUX_BINARY = "tmux"
DEFAULT_TIMEOUT_S = 5.0

_FIELD_SEP = "\t"


class TmuxCommandError(RuntimeError):
    """A tmux invocation failed, timed out, or tmux is not installed."""

    def __init__(self, args: list[str], message: str, returncode: int | None = None) -> None:
        super().__init__(f"tmux {' '.join(args)}: {message}")
        self.args_list = args
        self.returncode = returncode
        self.stderr = message


@dataclass(frozen=True)
class WindowRef:
    """A window as listed by ``list-windows``."""

    index: str
    name: str


@dataclass(frozen=True)
class PaneProcess:
    """A pane with its leader process, as listed by ``list-panes -a``."""

    session_id: str
    session_name: str
    window_index: str
    pane_index: str
    pane_id: str
    pid: int
    command: str


def window_target(session_name: str, window_index: str) -> str:
    return f"{session_name}:{window_index}"


def normalize_session_id(value: str) -> str:
    value = value.strip()
    return value if value.startswith("$") else f"${value}"


class TmuxClient:
    """Async wrapper over the tmux CLI for a single server socket."""

    def __init__(
        self,
        socket: TmuxSocketOptions | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.socket = socket or TmuxSocketOptions()
        self.timeout_s = timeout_s

    def command(self, *args: str) -> list[str]:
        """Full argv for a tmux invocation on this socket."""
        return [TMUX_BINARY, *self.socket.args(), *args]

    async def run(self, *args: str) -> str:
        """Run one tmux command and return its stdout."""
        argv = self.command(*args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise TmuxCommandError(list(args), "tmux command not found") from exc
        except PermissionError as exc:
            raise TmuxCommandError(list(args), "permission denied when running tmux") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise TmuxCommandError(list(args), f"timed out after {self.timeout_s}s") from exc

        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip() or "failed"
            raise TmuxCommandError(list(args), message, proc.returncode)
        return stdout.decode("utf-8", errors="replace")

    # ── Queries ───────────────────────────────────────────────────────────

    async def socket_exists(self) -> bool:
        """Return True when a tmux server answers on this socket."""
        try:
            await self.run("list-sessions")
        except TmuxCommandError:
            return False
        return True

    async def display_message(self, fmt: str, target: str | None = None) -> str:
        args = ["display-message", "-p"]
        if target:
            args += ["-t", target]
        return (await self.run(*args, fmt)).strip()

    async def list_sessions(self) -> list[str]:
        output = await self.run("list-sessions", "-F", "#{session_name}")
        return [line for line in output.splitlines() if line.strip()]

    async def list_windows(self, session_name: str) -> list[WindowRef]:
        output = await self.run(
            "list-windows",
            "-t",
            session_name,
            "-F",
            _FIELD_SEP.join(("#{window_index}", "#{window_name}")),
        )
        windows: list[WindowRef] = []
        for line in output.splitlines():
            index, _, name = line.partition(_FIELD_SEP)
            if index.strip():
                windows.append(WindowRef(index=index.strip(), name=name))
        return windows

    async def list_all_panes(self) -> list[PaneProcess]:
        fields = (
            "#{session_id}",
            "#{session_name}",
            "#{window_index}",
            "#{pane_index}",
            "#{pane_id}",
            "#{pane_pid}",
            "#{pane_current_command}",
        )
        output = await self.run("list-panes", "-a", "-F", _FIELD_SEP.join(fields))
        panes: list[PaneProcess] = []
        for line in output.splitlines():
            parts = line.split(_FIELD_SEP)
            if len(parts) != len(fields):
                continue
            try:
                pid = int(parts[5])
            except ValueError:
                continue
            panes.append(
                PaneProcess(
                    session_id=normalize_session_id(parts[0]),
                    session_name=parts[1],
                    window_index=parts[2],
                    pane_index=parts[3],
                    pane_id=parts[4],
                    pid=pid,
                    command=parts[6],
                )
            )
        return panes

    async def capture_pane(self, target: str) -> str:
        """Rendered content of the active pane of ``target``."""
        return await self.run("capture-pane", "-p", "-t", target)

    async def has_attached_client(self, session_name: str) -> bool:
        """Return True when a human client is attached to the session."""
        output = await self.run("list-clients", "-t", session_name, "-F", "#{client_name}")
        return any(line.strip() for line in output.splitlines())

    # ── Input ─────────────────────────────────────────────────────────────

    async def send_text(self, target: str, text: str) -> None:
        await self.run("send-keys", "-t", target, "-l", text)

    async def send_key(self, target: str, key: str) -> None:
        await self.run("send-keys", "-t", target, key)

    async def paste_buffer(self, target: str) -> None:
        await self.run("paste-buffer", "-t", target)

    async def resize_window(self, target: str, width: int, height: int) -> None:
        logger.debug(f"[tmux] Resizing {target} to {width}x{height}")
        await self.run("resize-window", "-t", target, "-x", str(width), "-y", str(height))
