"""Read-only snapshot of the conversation event a reply is built for."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from voxreply.renderer import Renderer


def _get_path(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


@dataclass
class Session:
    """
    Session data carried by the platform request.

    ``attributes`` is owned by the session store; replies only read it
    when serializing.
    """

    session_id: str = ""
    new: bool = False
    attributes: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None

    @classmethod
    def from_envelope(cls, data: Mapping[str, Any] | None) -> Session:
        if not data:
            return cls()
        attributes = data.get("attributes")
        return cls(
            session_id=str(data.get("sessionId") or ""),
            new=bool(data.get("new", False)),
            attributes=dict(attributes) if isinstance(attributes, Mapping) else {},
            user_id=_get_path(data, "user", "userId"),
        )


class ConversationEvent:
    """
    Immutable view over a raw platform request envelope.

    The envelope is deep-copied on construction so later changes by the
    caller are not observed by replies bound to this event.
    """

    def __init__(
        self,
        envelope: Mapping[str, Any],
        *,
        renderer: Renderer | None = None,
        session: Session | None = None,
    ) -> None:
        self._raw: dict[str, Any] = copy.deepcopy(dict(envelope))
        self.renderer = renderer
        self.session = session or Session.from_envelope(self._raw.get("session"))

    @property
    def raw(self) -> dict[str, Any]:
        """A copy of the original envelope."""
        return copy.deepcopy(self._raw)

    @property
    def request_id(self) -> str | None:
        return _get_path(self._raw, "request", "requestId")

    @property
    def request_type(self) -> str | None:
        return _get_path(self._raw, "request", "type")

    @property
    def intent_name(self) -> str | None:
        return _get_path(self._raw, "request", "intent", "name")

    @property
    def locale(self) -> str | None:
        return _get_path(self._raw, "request", "locale")

    @property
    def supported_interfaces(self) -> frozenset[str]:
        interfaces = _get_path(self._raw, "context", "System", "device", "supportedInterfaces")
        if not isinstance(interfaces, Mapping):
            return frozenset()
        return frozenset(interfaces.keys())

    def has_interface(self, name: str) -> bool:
        return name in self.supported_interfaces

    @property
    def supports_display(self) -> bool:
        return self.has_interface("Display")

    def __repr__(self) -> str:
        return f"ConversationEvent(request_type={self.request_type!r}, request_id={self.request_id!r})"
