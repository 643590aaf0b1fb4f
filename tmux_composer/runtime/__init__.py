"""Long-running loops: the control-mode watcher and the polling automator."""

from tmux_composer.runtime.automator import TmuxAutomator
from tmux_composer.runtime.checksums import ChecksumCache, content_checksum
from tmux_composer.runtime.process_tree import AgentWindowDetector, ProcessInfo, ProcessTree
from tmux_composer.runtime.session_watcher import ControlModeError, TmuxSessionWatcher, WatcherState

__all__ = [
    "AgentWindowDetector",
    "ChecksumCache",
    "ControlModeError",
    "ProcessInfo",
    "ProcessTree",
    "TmuxAutomator",
    "TmuxSessionWatcher",
    "WatcherState",
    "content_checksum",
]
