"""Typed reply fragments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, TypeAlias

from voxreply.errors import AmbiguousStatementMode, InvalidFragment

StatementMode: TypeAlias = Literal["ask", "tell", "say"]
STATEMENT_MODES: tuple[StatementMode, ...] = ("ask", "tell", "say")
# modes that hand the turn back to the user
YIELDING_MODES = frozenset({"ask", "tell"})


def is_present(value: Any) -> bool:
    """True unless *value* is None or an empty string or container."""
    if value is None:
        return False
    if isinstance(value, (str, Mapping, list, tuple)):
        return len(value) > 0
    return True


def _optional_text(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidFragment(f"Fragment field {key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class ReplyFragment:
    """
    One contribution to a turn's reply.

    ``mode`` is the explicit statement discriminant; ``statement`` is set
    exactly when ``mode`` is. Empty strings are treated as absent.
    """

    mode: StatementMode | None = None
    statement: str | None = None
    plain: str | None = None
    reprompt: str | None = None
    plain_reprompt: str | None = None
    card: Any = None
    directives: tuple[Any, ...] = ()
    terminate: bool = False
    support_display_interface: bool = False

    def __post_init__(self) -> None:
        if (self.mode is None) != (self.statement is None):
            raise InvalidFragment("A fragment statement requires a statement mode and vice versa")
        if self.mode is not None and self.mode not in STATEMENT_MODES:
            raise InvalidFragment(f"Unknown statement mode {self.mode!r}")
        if self.statement == "":
            raise InvalidFragment("A statement must not be empty")
        if self.plain is not None and self.statement is None:
            raise InvalidFragment("A plain rendition needs a statement to accompany")

    @classmethod
    def ask(cls, statement: str, **kwargs: Any) -> ReplyFragment:
        return cls(mode="ask", statement=statement, **kwargs)

    @classmethod
    def tell(cls, statement: str, **kwargs: Any) -> ReplyFragment:
        return cls(mode="tell", statement=statement, **kwargs)

    @classmethod
    def say(cls, statement: str, **kwargs: Any) -> ReplyFragment:
        return cls(mode="say", statement=statement, **kwargs)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ReplyFragment:
        """Build a fragment from the loose mapping form used by handlers and views."""
        if not isinstance(data, Mapping):
            raise InvalidFragment(f"Fragment must be a mapping, got {type(data).__name__}")

        present = [mode for mode in STATEMENT_MODES if _optional_text(data, mode) is not None]
        if len(present) > 1:
            raise AmbiguousStatementMode(present)
        mode = present[0] if present else None

        directives = data.get("directives")
        if directives is None:
            directives = ()
        elif isinstance(directives, (list, tuple)):
            directives = tuple(directives)
        else:
            directives = (directives,)

        card = data.get("card")
        return cls(
            mode=mode,
            statement=_optional_text(data, mode) if mode else None,
            plain=_optional_text(data, "plain"),
            reprompt=_optional_text(data, "reprompt"),
            plain_reprompt=_optional_text(data, "plainReprompt"),
            card=card if is_present(card) else None,
            directives=directives,
            terminate=bool(data.get("terminate", False)),
            support_display_interface=bool(data.get("supportDisplayInterface", False)),
        )

    @property
    def yields(self) -> bool:
        return self.mode in YIELDING_MODES

    @property
    def is_ask(self) -> bool:
        return self.mode == "ask"
