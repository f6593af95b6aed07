"""Drive reply composition for one turn and convert failures into a fallback reply."""

from __future__ import annotations

from typing import Any, Iterable

from voxreply.config.schema import Config
from voxreply.directives.normalizer import DirectiveNormalizer
from voxreply.errors import ReplyError
from voxreply.event import ConversationEvent
from voxreply.logging import bind_turn_context, get_logger
from voxreply.reply.accumulator import AppendItem, Reply
from voxreply.reply.fragment import ReplyFragment

logger = get_logger(__name__)


class TurnComposer:
    """Build the outbound payload for a turn from the fragments its handlers produced."""

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or Config()
        self.normalizer = DirectiveNormalizer(self.config.reply)

    def new_reply(self, event: ConversationEvent) -> Reply:
        return Reply(event, config=self.config.reply, normalizer=self.normalizer)

    async def compose(self, event: ConversationEvent, fragments: Iterable[AppendItem]) -> dict[str, Any]:
        """Append *fragments* in order and serialize; reply errors yield the fallback payload."""
        bind_turn_context(event)
        try:
            payload = await self.compose_strict(event, fragments)
        except ReplyError as e:
            logger.exception(
                "Error composing reply",
                error_type=type(e).__name__,
                error_code=e.code,
                request_type=event.request_type,
            )
            return await self.fallback_payload(event)
        return payload

    async def compose_strict(self, event: ConversationEvent, fragments: Iterable[AppendItem]) -> dict[str, Any]:
        """Like :meth:`compose` but lets reply errors propagate."""
        reply = self.new_reply(event)
        for fragment in fragments:
            await reply.append(fragment)
        payload = reply.to_payload()
        logger.info(
            "Reply composed",
            statement_count=len(reply.statements),
            directive_count=len(reply.directives),
            should_end_session=payload["response"].get("shouldEndSession"),
        )
        return payload

    async def fallback_payload(self, event: ConversationEvent) -> dict[str, Any]:
        """A reply that tells the user something went wrong without exposing details."""
        turn_cfg = self.config.turn
        message = turn_cfg.resolved_fallback_message
        if turn_cfg.fallback_terminates:
            fragment = ReplyFragment.tell(message)
        else:
            fragment = ReplyFragment.ask(message, reprompt=message)
        reply = self.new_reply(event)
        await reply.append(fragment)
        return reply.to_payload()
