"""tmux access: socket selection, one-shot commands, control-mode grammar."""

from tmux_composer.tmux.client import PaneProcess, TmuxClient, TmuxCommandError, WindowRef
from tmux_composer.tmux.registry import PaneRecord, PaneRegistry, SessionSnapshot
from tmux_composer.tmux.socket import TmuxSocketOptions
from tmux_composer.tmux.throttle import Throttle

__all__ = [
    "PaneProcess",
    "PaneRecord",
    "PaneRegistry",
    "SessionSnapshot",
    "Throttle",
    "TmuxClient",
    "TmuxCommandError",
    "TmuxSocketOptions",
    "WindowRef",
]
