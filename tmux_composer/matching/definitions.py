"""Matcher definitions: named trigger/response automation rules."""

from __future__ import annotations

from enum import Enum
from importlib import resources
from pathlib import Path
from typing import Any, Iterable

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

BUNDLED_MATCHERS = "matchers.yaml"


class MatcherConfigError(ValueError):
    """Raised when matcher definitions fail validation at load time."""


class MatcherMode(str, Enum):
    """Session mode a matcher is eligible in."""

    ACT = "act"
    PLAN = "plan"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


class MatcherDefinition(BaseModel):
    """One automation rule.

    ``trigger`` lists the last meaningful lines of a prompt, top to bottom.
    ``response`` is a template of literal text, ``<Key>`` and ``{command}``
    tokens replayed into the pane when the trigger matches.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str = Field(min_length=1)
    trigger: tuple[str, ...]
    wrapped_trigger: tuple[str, ...] | None = Field(default=None, alias="wrappedTrigger")
    response: str
    run_once: bool = Field(alias="runOnce")
    mode: MatcherMode = MatcherMode.ALL

    @field_validator("trigger", "wrapped_trigger")
    @classmethod
    def _non_blank_lines(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if value is None:
            return value
        if not value:
            raise ValueError("trigger must contain at least one line")
        for line in value:
            if not line.strip():
                raise ValueError("trigger lines must not be blank")
        return value

    def is_eligible(self, mode: MatcherMode) -> bool:
        """Return True when this matcher applies to sessions in ``mode``."""
        return self.mode is MatcherMode.ALL or mode is MatcherMode.ALL or self.mode is mode

    def triggers(self) -> list[tuple[str, ...]]:
        """Primary trigger first, then the wrapped variant if any."""
        if self.wrapped_trigger:
            return [self.trigger, self.wrapped_trigger]
        return [self.trigger]


_MATCHER_LIST = TypeAdapter(list[MatcherDefinition])


def _format_validation_error(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"])
        lines.append(f"  - {path}: {item['msg']}")
    return "Invalid matcher configuration:\n" + "\n".join(lines)


def parse_matchers(data: Any) -> list[MatcherDefinition]:
    """Validate raw matcher data (already decoded from YAML/JSON)."""
    try:
        matchers = _MATCHER_LIST.validate_python(data)
    except ValidationError as exc:
        raise MatcherConfigError(_format_validation_error(exc)) from exc

    seen: set[str] = set()
    for matcher in matchers:
        if matcher.name in seen:
            raise MatcherConfigError(
                f"Invalid matcher configuration:\n  - name: duplicate matcher name '{matcher.name}'"
            )
        seen.add(matcher.name)
    return matchers


def load_matchers(path: str | Path | None = None) -> list[MatcherDefinition]:
    """Load matcher definitions from ``path`` or the bundled defaults."""
    if path:
        source = Path(path).expanduser()
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise MatcherConfigError(f"Cannot read matchers file {source}: {exc}") from exc
    else:
        source = Path(BUNDLED_MATCHERS)
        text = resources.files("tmux_composer.matching").joinpath(BUNDLED_MATCHERS).read_text(
            encoding="utf-8"
        )

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MatcherConfigError(f"Cannot parse matchers file {source}: {exc}") from exc

    matchers = parse_matchers(data if data is not None else [])
    logger.debug(f"[matchers] Loaded {len(matchers)} matcher(s) from {source}")
    return matchers


def eligible_matchers(
    matchers: Iterable[MatcherDefinition],
    mode: MatcherMode,
) -> list[MatcherDefinition]:
    """Select the matchers that apply to ``mode``, preserving order."""
    return [matcher for matcher in matchers if matcher.is_eligible(mode)]
