"""Turn directive shorthands into canonical platform directives."""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

from voxreply.config.schema import ReplyConfig
from voxreply.directives.types import (
    DIRECTIVE_AUDIO_PLAY,
    DIRECTIVE_HINT,
    Directive,
    DirectiveDescriptor,
    classify_directive,
)
from voxreply.errors import InvalidFragment
from voxreply.event import ConversationEvent
from voxreply.logging import get_logger
from voxreply.renderer import MessageKey

logger = get_logger(__name__)

_STREAM_KEYS = ("token", "url", "offsetInMilliseconds", "expectedPreviousToken")


class DirectiveNormalizer:
    """
    Normalize directive values against the capabilities of an event.

    Normalization depends only on the event's capability flags and the
    directive value, except for hint text given as a ``MessageKey``,
    which is resolved through the event's renderer.
    """

    def __init__(self, config: ReplyConfig | None = None) -> None:
        config = config or ReplyConfig()
        self.capability_gates: dict[str, str] = dict(config.capability_gates)
        self.display_interface = config.display_interface

    def is_allowed(
        self,
        event: ConversationEvent,
        directive_type: str | None,
        *,
        support_display_interface: bool = False,
    ) -> bool:
        """Return True if the device behind *event* can handle *directive_type*."""
        interface = self.capability_gates.get(directive_type or "")
        if interface is None:
            return True
        if support_display_interface and interface == self.display_interface:
            return True
        return event.has_interface(interface)

    async def normalize(
        self,
        event: ConversationEvent,
        value: Any,
        *,
        support_display_interface: bool = False,
    ) -> Directive | None:
        """Return the canonical directive for *value*, or None when it is filtered out."""
        descriptor = classify_directive(value)
        if not self.is_allowed(event, descriptor.type, support_display_interface=support_display_interface):
            logger.debug(
                "directive_dropped_missing_capability",
                directive_type=descriptor.type,
                interface=self.capability_gates.get(descriptor.type or ""),
            )
            return None
        if descriptor.kind == "hint":
            return await self._hint(event, descriptor)
        if descriptor.kind == "play":
            return self._play(descriptor)
        return copy.deepcopy(dict(descriptor.value))

    async def normalize_all(
        self,
        event: ConversationEvent,
        values: Iterable[Any],
        *,
        support_display_interface: bool = False,
    ) -> list[Directive]:
        out: list[Directive] = []
        for value in values:
            directive = await self.normalize(
                event, value, support_display_interface=support_display_interface,
            )
            if directive is not None:
                out.append(directive)
        return out

    @staticmethod
    async def _hint(event: ConversationEvent, descriptor: DirectiveDescriptor) -> Directive:
        text = descriptor.value["hint"]
        key = MessageKey.from_value(text)
        if key is not None:
            if event.renderer is None:
                raise InvalidFragment(f"Hint {key.path!r} needs a renderer but the event has none")
            text = await event.renderer.render_path(key.path, event)
            if not isinstance(text, str) or not text:
                raise InvalidFragment(f"Hint {key.path!r} did not render to text")
        return {
            "type": DIRECTIVE_HINT,
            "hint": {
                "type": "PlainText",
                "text": text,
            },
        }

    @staticmethod
    def _play(descriptor: DirectiveDescriptor) -> Directive:
        value: Mapping[str, Any] = descriptor.value
        stream = {k: value[k] for k in _STREAM_KEYS if value.get(k) is not None}
        audio_item: dict[str, Any] = {"stream": stream}
        if value.get("metadata"):
            audio_item["metadata"] = copy.deepcopy(value["metadata"])
        return {
            "type": value.get("type") or DIRECTIVE_AUDIO_PLAY,
            "playBehavior": value["playBehavior"],
            "audioItem": audio_item,
        }
