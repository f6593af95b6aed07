"""Directive type names and shorthand classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, TypeAlias

from voxreply.errors import InvalidFragment
from voxreply.renderer import MessageKey

DIRECTIVE_RENDER_TEMPLATE = "Display.RenderTemplate"
DIRECTIVE_HINT = "Hint"
DIRECTIVE_AUDIO_PLAY = "AudioPlayer.Play"
DIRECTIVE_VIDEO_LAUNCH = "VideoApp.Launch"
DIALOG_DIRECTIVE_RE = re.compile(r"^Dialog\.")

DescriptorKind: TypeAlias = Literal["hint", "play", "canonical"]
Directive: TypeAlias = dict[str, Any]


@dataclass(frozen=True)
class DirectiveDescriptor:
    """A directive value tagged with how it must be normalized."""

    kind: DescriptorKind
    value: Mapping[str, Any]

    @property
    def type(self) -> str | None:
        """Canonical directive type this descriptor will produce."""
        if self.kind == "hint":
            return DIRECTIVE_HINT
        directive_type = self.value.get("type")
        if self.kind == "play" and not directive_type:
            return DIRECTIVE_AUDIO_PLAY
        return directive_type if isinstance(directive_type, str) else None


def _is_hint_shorthand(value: Mapping[str, Any]) -> bool:
    hint = value.get("hint")
    if isinstance(hint, str):
        return bool(hint)
    return MessageKey.from_value(hint) is not None


def _is_play_shorthand(value: Mapping[str, Any]) -> bool:
    return bool(value.get("playBehavior")) and bool(value.get("token") or value.get("url"))


def classify_directive(value: Any) -> DirectiveDescriptor:
    """Classify a directive value as hint shorthand, play shorthand or canonical."""
    if not isinstance(value, Mapping):
        raise InvalidFragment(f"Directive must be a mapping, got {type(value).__name__}")
    if _is_hint_shorthand(value):
        return DirectiveDescriptor(kind="hint", value=value)
    if _is_play_shorthand(value):
        return DirectiveDescriptor(kind="play", value=value)
    return DirectiveDescriptor(kind="canonical", value=value)


def directive_type(directive: Mapping[str, Any]) -> str:
    value = directive.get("type")
    return value if isinstance(value, str) else ""


def is_dialog_directive(directive: Mapping[str, Any], pattern: re.Pattern[str] = DIALOG_DIRECTIVE_RE) -> bool:
    return bool(pattern.search(directive_type(directive)))
