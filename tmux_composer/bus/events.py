"""Event types emitted by the watcher and the automation engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from tmux_composer.tmux.registry import SessionSnapshot


@dataclass(frozen=True)
class SessionChanged:
    """Session topology changed (windows, panes, sizes, focus)."""

    name: ClassVar[str] = "session-changed"

    snapshot: SessionSnapshot

    def to_dict(self) -> dict[str, Any]:
        return self.snapshot.to_dict()


@dataclass(frozen=True)
class WindowContent:
    """Captured content of a window changed."""

    name: ClassVar[str] = "window-content"

    session_name: str
    window_name: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionName": self.session_name,
            "windowName": self.window_name,
            "content": self.content,
        }


@dataclass(frozen=True)
class WindowAutomation:
    """A matcher fired and its response was replayed."""

    name: ClassVar[str] = "window-automation"

    session_name: str
    window_name: str
    matcher_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionName": self.session_name,
            "windowName": self.window_name,
            "matcherName": self.matcher_name,
        }


@dataclass(frozen=True)
class SessionControl:
    name: ClassVar[str] = "session-control"

    session_name: str
    is_human_controlled: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionName": self.session_name,
            "isHumanControlled": self.is_human_controlled,
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Recovered, non-fatal failure."""

    name: ClassVar[str] = "error"

    message: str
    error: str = ""

    @classmethod
    def from_exception(cls, message: str, exc: BaseException) -> "ErrorEvent":
        return cls(message=message, error=str(exc) or type(exc).__name__)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "error": self.error}


Event = SessionChanged | WindowContent | WindowAutomation | SessionControl | ErrorEvent


def new_emitter_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class TmuxEvent:
    """Wire envelope: ``{event, data, timestamp, sessionId}``."""

    event: str
    data: dict[str, Any]
    session_id: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    @classmethod
    def wrap(cls, payload: Event, session_id: str) -> "TmuxEvent":
        return cls(event=payload.name, data=payload.to_dict(), session_id=session_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "data": self.data,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
        }
