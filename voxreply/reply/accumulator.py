"""Accumulate a turn's fragments into one consistent reply."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, TypeAlias, Union

from voxreply.config.schema import ReplyConfig
from voxreply.directives.normalizer import DirectiveNormalizer
from voxreply.directives.types import Directive, directive_type
from voxreply.directives.validator import validate_directives
from voxreply.errors import InvalidFragment, InvalidFragmentSource, StateViolation, UnsupportedPredicateKind
from voxreply.event import ConversationEvent, Session
from voxreply.logging import get_logger
from voxreply.reply.fragment import ReplyFragment
from voxreply.reply.markup import strip_markup

logger = get_logger(__name__)

DirectivePredicate: TypeAlias = Union[str, "re.Pattern[str]", Callable[[Directive], Any]]
AppendItem: TypeAlias = Union[ReplyFragment, Mapping[str, Any], "Reply", list, tuple, None]


@dataclass(frozen=True)
class ReplyState:
    """
    Everything accumulated for one turn.

    States are frozen and replaced wholesale, so a failed append can
    restore the previous state object as-is.
    """

    statements: tuple[str, ...] = ()
    plain_statements: tuple[str, ...] = ()
    reprompt: str | None = None
    plain_reprompt: str | None = None
    card: Any = None
    yield_requested: bool = False
    terminate: bool = True
    directives: tuple[Directive, ...] = ()
    display_override: bool = False


def _directive_matcher(predicate: DirectivePredicate) -> Callable[[Directive], bool]:
    if isinstance(predicate, re.Pattern):
        return lambda d: bool(predicate.search(directive_type(d)))
    if isinstance(predicate, str):
        return lambda d: directive_type(d) == predicate
    if callable(predicate):
        return lambda d: bool(predicate(d))
    raise UnsupportedPredicateKind(
        f"Do not know how to use a {type(predicate).__name__} to find a directive"
    )


class Reply:
    """
    Mutable reply for a single conversation turn.

    Fragments are fed in with :meth:`append`; each append normalizes the
    fragment's directives against the bound event, validates the whole
    directive list and recomputes termination. An append either applies
    completely or not at all.
    """

    def __init__(
        self,
        event: ConversationEvent,
        *,
        config: ReplyConfig | None = None,
        normalizer: DirectiveNormalizer | None = None,
    ) -> None:
        if not isinstance(event, ConversationEvent):
            raise InvalidFragmentSource("First argument of Reply must be a ConversationEvent")
        self.event = event
        self.session: Session = event.session
        self.config = config or ReplyConfig()
        self.normalizer = normalizer or DirectiveNormalizer(self.config)
        self._dialog_re = re.compile(self.config.dialog_directive_pattern)
        self.state = ReplyState()

    @classmethod
    async def create(
        cls,
        event: ConversationEvent,
        *items: AppendItem,
        config: ReplyConfig | None = None,
        normalizer: DirectiveNormalizer | None = None,
    ) -> Reply:
        """Create a reply and append *items* in order."""
        reply = cls(event, config=config, normalizer=normalizer)
        for item in items:
            await reply.append(item)
        return reply

    async def append(self, item: AppendItem) -> Reply:
        """Append a fragment, a mapping, another reply, or a sequence of those."""
        if item is None:
            return self
        snapshot = self.state
        try:
            await self._append(item)
        except BaseException:
            self.state = snapshot
            raise
        return self

    async def append_reply(self, other: Reply) -> Reply:
        """Fold a sub-dialog's complete reply into this one."""
        snapshot = self.state
        try:
            await self._merge_reply(other)
        except BaseException:
            self.state = snapshot
            raise
        return self

    def yield_(self) -> Reply:
        """Mark the reply as ready to hand the turn back without a question."""
        self.state = replace(self.state, yield_requested=True)
        return self

    def has_directive(self, predicate: DirectivePredicate) -> bool:
        """Match by exact type name, compiled pattern over the type, or a callable test."""
        matches = _directive_matcher(predicate)
        return any(matches(d) for d in self.state.directives)

    def is_yielding(self) -> bool:
        return self.state.yield_requested or self.has_directive(self._dialog_re)

    @property
    def statements(self) -> tuple[str, ...]:
        return self.state.statements

    @property
    def plain_statements(self) -> tuple[str, ...]:
        return self.state.plain_statements

    @property
    def reprompt(self) -> str | None:
        return self.state.reprompt

    @property
    def plain_reprompt(self) -> str | None:
        return self.state.plain_reprompt

    @property
    def card(self) -> Any:
        return self.state.card

    @property
    def terminate(self) -> bool:
        return self.state.terminate

    @property
    def directives(self) -> tuple[Directive, ...]:
        return self.state.directives

    def to_payload(self) -> dict[str, Any]:
        from voxreply.reply.serializer import serialize

        return serialize(self)

    async def _append(self, item: AppendItem) -> None:
        if item is None:
            return
        if isinstance(item, Reply):
            await self._merge_reply(item)
        elif isinstance(item, ReplyFragment):
            await self._apply_fragment(item)
        elif isinstance(item, Mapping):
            await self._apply_fragment(ReplyFragment.from_mapping(item))
        elif isinstance(item, (list, tuple)):
            for sub in item:
                await self._append(sub)
        else:
            raise InvalidFragment(f"Cannot append a {type(item).__name__} to a reply")

    def _has_dialog_directive(self, directives: tuple[Directive, ...]) -> bool:
        return any(self._dialog_re.search(directive_type(d)) for d in directives)

    async def _merged_directives(self, values: Any, *, support_display_interface: bool) -> tuple[Directive, ...]:
        added = await self.normalizer.normalize_all(
            self.event, values, support_display_interface=support_display_interface,
        )
        directives = (*self.state.directives, *added)
        validate_directives(directives)
        return directives

    async def _apply_fragment(self, fragment: ReplyFragment) -> None:
        state = self.state
        if fragment.statement is not None and self.is_yielding():
            raise StateViolation("Can't append to already yielding response")

        override = fragment.support_display_interface
        directives = await self._merged_directives(fragment.directives, support_display_interface=override)

        changes: dict[str, Any] = {}
        if fragment.statement is not None:
            changes["statements"] = (*state.statements, fragment.statement)
            changes["plain_statements"] = (
                *state.plain_statements, fragment.plain or strip_markup(fragment.statement),
            )
        if fragment.reprompt is not None:
            changes["reprompt"] = fragment.reprompt
            changes["plain_reprompt"] = fragment.plain_reprompt or strip_markup(fragment.reprompt)
        elif fragment.plain_reprompt is not None:
            changes["plain_reprompt"] = fragment.plain_reprompt
        if fragment.card is not None:
            changes["card"] = copy.deepcopy(fragment.card)

        nxt = replace(
            state,
            **changes,
            yield_requested=state.yield_requested or fragment.yields,
            directives=directives,
            display_override=state.display_override or override,
            terminate=(
                not (fragment.is_ask or self._has_dialog_directive(directives))
                and (fragment.terminate or state.terminate)
            ),
        )
        self.state = nxt

        logger.debug(
            "reply_append",
            mode=fragment.mode,
            statement_count=len(nxt.statements),
            directive_count=len(directives),
            yield_requested=nxt.yield_requested,
            terminate=nxt.terminate,
        )

    async def _merge_reply(self, other: Reply) -> None:
        state = self.state
        theirs = other.state
        directives = await self._merged_directives(
            theirs.directives, support_display_interface=theirs.display_override,
        )

        changes: dict[str, Any] = {}
        if theirs.reprompt:
            changes["reprompt"] = theirs.reprompt
        if theirs.plain_reprompt:
            changes["plain_reprompt"] = theirs.plain_reprompt
        if theirs.card is not None:
            changes["card"] = copy.deepcopy(theirs.card)

        nxt = replace(
            state,
            **changes,
            statements=(*state.statements, *theirs.statements),
            plain_statements=(*state.plain_statements, *theirs.plain_statements),
            yield_requested=state.yield_requested or theirs.yield_requested,
            directives=directives,
            display_override=state.display_override or theirs.display_override,
            terminate=not self._has_dialog_directive(directives) and (theirs.terminate or state.terminate),
        )
        self.state = nxt

        logger.debug(
            "reply_merge",
            merged_statements=len(theirs.statements),
            statement_count=len(nxt.statements),
            directive_count=len(directives),
            terminate=nxt.terminate,
        )
