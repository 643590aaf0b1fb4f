"""In-process event bus and the JSON-lines sink."""

from __future__ import annotations

import json
import sys
from collections import defaultdict
from typing import Callable, TextIO

from loguru import logger

from tmux_composer.bus.events import (
    ErrorEvent,
    Event,
    TmuxEvent,
    WindowAutomation,
    WindowContent,
    new_emitter_id,
)

EventHandler = Callable[[Event], None]

ALL_EVENTS = "*"


class EventBus:
    """Simple pub/sub for emitted events.

    Each handler is called once per published event. A failing handler is
    logged and does not stop the others.
    """

    def __init__(self, emitter_id: str | None = None, log_summaries: bool = True) -> None:
        self.emitter_id = emitter_id or new_emitter_id()
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        if log_summaries:
            self._setup_logging()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._handlers[event_name].append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        self._handlers[ALL_EVENTS].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, payload: Event) -> None:
        handlers = list(self._handlers.get(payload.name, [])) + list(self._handlers.get(ALL_EVENTS, []))
        for handler in handlers:
            try:
                handler(payload)
            except Exception as exc:
                logger.error(f"[bus] Handler for {payload.name} failed: {exc}")

    def envelope(self, payload: Event) -> TmuxEvent:
        return TmuxEvent.wrap(payload, self.emitter_id)

    def _setup_logging(self) -> None:
        def on_content(event: WindowContent) -> None:
            logger.debug(f"[bus] window-content {event.session_name}:{event.window_name}")

        def on_automation(event: WindowAutomation) -> None:
            logger.info(f"[bus] Automated {event.matcher_name} for {event.session_name}:{event.window_name}")

        def on_error(event: ErrorEvent) -> None:
            logger.warning(f"[bus] {event.message}: {event.error}")

        self.subscribe(WindowContent.name, on_content)
        self.subscribe(WindowAutomation.name, on_automation)
        self.subscribe(ErrorEvent.name, on_error)


class JsonLinesSink:
    """Write every event as one JSON envelope per line."""

    def __init__(self, bus: EventBus, stream: TextIO | None = None) -> None:
        self.bus = bus
        self.stream = stream

    def __call__(self, payload: Event) -> None:
        stream = self.stream or sys.stdout
        stream.write(json.dumps(self.bus.envelope(payload).to_dict(), ensure_ascii=False) + "\n")
        stream.flush()

    def attach(self) -> "JsonLinesSink":
        self.bus.subscribe_all(self)
        return self
