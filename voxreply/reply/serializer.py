"""Render a reply into the outbound platform payload."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from voxreply.reply.lifecycle import resolve_should_end_session
from voxreply.reply.markup import to_ssml

if TYPE_CHECKING:
    from voxreply.reply.accumulator import Reply

SSML = "SSML"
PLAIN_TEXT = "PlainText"


def wrap_speech(statement: str | None, kind: str = SSML) -> dict[str, str] | None:
    if not statement:
        return None
    return {"speech": statement, "type": kind}


def create_speech_object(speech: dict[str, str] | None) -> dict[str, str] | None:
    """Build the platform ``outputSpeech`` object for wrapped speech."""
    if not speech:
        return None
    if speech.get("type") == SSML:
        return {"type": SSML, "ssml": speech["speech"]}
    return {"type": speech.get("type") or PLAIN_TEXT, "text": speech["speech"]}


def serialize(reply: Reply) -> dict[str, Any]:
    """Produce the versioned response envelope for *reply*."""
    config = reply.config
    state = reply.state
    if config.speech_kind == PLAIN_TEXT:
        say = wrap_speech(config.statement_separator.join(state.plain_statements), PLAIN_TEXT)
        reprompt = wrap_speech(state.plain_reprompt, PLAIN_TEXT)
    else:
        say = wrap_speech(to_ssml(config.statement_separator.join(state.statements)))
        reprompt = wrap_speech(to_ssml(state.reprompt))

    response: dict[str, Any] = {}
    output_speech = create_speech_object(say)
    if output_speech is not None:
        response["outputSpeech"] = output_speech
    if state.card is not None:
        response["card"] = copy.deepcopy(state.card)

    should_end_session = resolve_should_end_session(reply)
    if should_end_session is not None:
        response["shouldEndSession"] = should_end_session

    if reprompt is not None:
        response["reprompt"] = {"outputSpeech": create_speech_object(reprompt)}

    if state.directives:
        response["directives"] = [copy.deepcopy(d) for d in state.directives]

    session = reply.session
    attributes = dict(session.attributes) if session is not None and session.attributes else {}
    return {
        "version": config.envelope_version,
        "response": response,
        "sessionAttributes": attributes,
    }
