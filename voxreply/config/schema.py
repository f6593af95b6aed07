"""Configuration schema using Pydantic."""

from __future__ import annotations

import os
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_ENV_REF_RE = re.compile(r"^\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?$")


def _resolve_env(value: str) -> str:
    """Resolve ``$VAR`` / ``${VAR}`` references; unset variables keep the original text."""
    if not value:
        return value
    m = _ENV_REF_RE.match(value)
    if not m:
        return value
    return os.environ.get(m.group(1), value)


class Base(BaseModel):
    """Base model accepting both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReplyConfig(Base):
    """How replies are normalized and serialized."""

    statement_separator: str = "\n"
    speech_kind: Literal["SSML", "PlainText"] = "SSML"
    envelope_version: str = "1.0"
    # directive type -> device interface that must be present for it to be kept
    capability_gates: dict[str, str] = Field(default_factory=lambda: {
        "Display.RenderTemplate": "Display",
        "Hint": "Display",
    })
    display_interface: str = "Display"
    dialog_directive_pattern: str = r"^Dialog\."


class LoggingConfig(Base):
    """Structured logging output."""

    json_output: bool = True
    level: str = "INFO"


class TurnConfig(Base):
    """Fallback behavior of the turn composer."""

    fallback_message: str = "Sorry, something went wrong. Please try again later."
    fallback_terminates: bool = True

    @property
    def resolved_fallback_message(self) -> str:
        return _resolve_env(self.fallback_message)


class Config(Base):
    """Root configuration for voxreply."""

    reply: ReplyConfig = Field(default_factory=ReplyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    turn: TurnConfig = Field(default_factory=TurnConfig)
