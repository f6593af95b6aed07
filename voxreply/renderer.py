"""Renderer collaborator used to resolve message keys into text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Protocol

if TYPE_CHECKING:
    from voxreply.event import ConversationEvent


@dataclass(frozen=True)
class MessageKey:
    """A directive option given as a lookup key instead of literal text."""

    path: str

    @classmethod
    def from_value(cls, value: Any) -> MessageKey | None:
        """Recognize ``MessageKey`` instances and ``{"path": "..."}`` mappings."""
        if isinstance(value, MessageKey):
            return value
        if isinstance(value, Mapping) and set(value.keys()) == {"path"} and isinstance(value["path"], str):
            return cls(path=value["path"])
        return None


class Renderer(Protocol):
    async def render_path(self, path: str, event: ConversationEvent) -> Any: ...


class MessageNotFound(KeyError):
    """No message is registered under the requested path."""


class DictRenderer:
    """
    Resolve dotted paths against a nested mapping of messages.

    When the top level is keyed by locale (``{"en-US": {...}}``), lookups
    use the subtree for the event's locale.
    """

    def __init__(self, messages: Mapping[str, Any]) -> None:
        self.messages = messages

    async def render_path(self, path: str, event: ConversationEvent) -> Any:
        node: Any = self.messages
        localized = self.messages.get(event.locale) if event.locale else None
        if isinstance(localized, Mapping):
            node = localized
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                raise MessageNotFound(path)
            node = node[part]
        return node
