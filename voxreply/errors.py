"""Error taxonomy for reply composition.

Every error raised while building a turn's reply derives from
:class:`ReplyError`. Errors are raised synchronously from the call that
caused them and are never partially applied to the reply.
"""

from __future__ import annotations

from typing import Iterable


class ReplyError(Exception):
    """Base class for reply composition failures."""

    code = "reply_error"


class InvalidFragmentSource(ReplyError):
    """A reply was created without a bound conversation event."""

    code = "invalid_fragment_source"


class InvalidFragment(ReplyError):
    """A fragment could not be interpreted."""

    code = "invalid_fragment"


class AmbiguousStatementMode(InvalidFragment):
    """More than one of ``ask``/``tell``/``say`` was set on one fragment."""

    code = "ambiguous_statement_mode"

    def __init__(self, modes: Iterable[str]) -> None:
        self.modes = tuple(modes)
        super().__init__(
            f"A fragment may set only one of ask/tell/say, got: {', '.join(self.modes)}"
        )


class StateViolation(ReplyError):
    """A statement was appended to a reply that is already yielding."""

    code = "state_violation"


class UnsupportedPredicateKind(ReplyError):
    """``has_directive`` received a predicate it cannot match with."""

    code = "unsupported_predicate_kind"


class DirectiveValidationError(ReplyError):
    """The accumulated directive list breaks a platform invariant."""

    code = "directive_validation"

    def __init__(self, message: str, types: Iterable[str] = ()) -> None:
        self.types = tuple(types)
        super().__init__(message)


class TooManyTemplateDirectives(DirectiveValidationError):
    code = "too_many_template_directives"


class TooManyHintDirectives(DirectiveValidationError):
    code = "too_many_hint_directives"


class ConflictingMediaDirectives(DirectiveValidationError):
    code = "conflicting_media_directives"
