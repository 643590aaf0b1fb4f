"""Emitted events and the in-process event bus."""

from tmux_composer.bus.events import (
    ErrorEvent,
    SessionChanged,
    SessionControl,
    TmuxEvent,
    WindowAutomation,
    WindowContent,
)
from tmux_composer.bus.queue import EventBus, JsonLinesSink

__all__ = [
    "ErrorEvent",
    "EventBus",
    "JsonLinesSink",
    "SessionChanged",
    "SessionControl",
    "TmuxEvent",
    "WindowAutomation",
    "WindowContent",
]
