"""Prompt matching and response replay."""

from tmux_composer.matching.actions import (
    ActionDispatcher,
    ResponseToken,
    TokenKind,
    convert_to_tmux_key,
    tokenize_response,
)
from tmux_composer.matching.definitions import (
    MatcherConfigError,
    MatcherDefinition,
    MatcherMode,
    eligible_matchers,
    load_matchers,
    parse_matchers,
)
from tmux_composer.matching.matcher import clean_content, content_matches, matches_pattern

__all__ = [
    "ActionDispatcher",
    "MatcherConfigError",
    "MatcherDefinition",
    "MatcherMode",
    "ResponseToken",
    "TokenKind",
    "clean_content",
    "content_matches",
    "convert_to_tmux_key",
    "eligible_matchers",
    "load_matchers",
    "matches_pattern",
    "parse_matchers",
    "tokenize_response",
]
