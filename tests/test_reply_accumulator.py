import re
from dataclasses import FrozenInstanceError

import pytest

from voxreply.config.schema import ReplyConfig
from voxreply.errors import (
    ConflictingMediaDirectives,
    InvalidFragment,
    InvalidFragmentSource,
    StateViolation,
    TooManyHintDirectives,
    TooManyTemplateDirectives,
    UnsupportedPredicateKind,
)
from voxreply.event import ConversationEvent
from voxreply.reply import Reply, ReplyFragment

TEMPLATE = {"type": "Display.RenderTemplate", "template": {"type": "BodyTemplate1", "token": "t1"}}
AUDIO = {
    "type": "AudioPlayer.Play",
    "playBehavior": "REPLACE_ALL",
    "audioItem": {"stream": {"token": "a1", "url": "https://example.com/a.mp3", "offsetInMilliseconds": 0}},
}
VIDEO = {"type": "VideoApp.Launch", "videoItem": {"source": "https://example.com/v.mp4"}}


def _event(display: bool = True, attributes: dict | None = None) -> ConversationEvent:
    interfaces: dict = {"AudioPlayer": {}}
    if display:
        interfaces["Display"] = {"templateVersion": "1.0", "markupVersion": "1.0"}
    return ConversationEvent({
        "version": "1.0",
        "session": {"new": False, "sessionId": "session-1", "attributes": attributes or {}},
        "context": {"System": {"device": {"supportedInterfaces": interfaces}}},
        "request": {"type": "IntentRequest", "requestId": "req-1", "locale": "en-US"},
    })


def test_reply_requires_conversation_event() -> None:
    with pytest.raises(InvalidFragmentSource):
        Reply({"request": {"type": "LaunchRequest"}})


@pytest.mark.asyncio
async def test_append_none_or_empty_sequence_changes_nothing() -> None:
    reply = Reply(_event())
    before = reply.state

    assert await reply.append(None) is reply
    await reply.append([])

    assert reply.state == before
    assert reply.terminate is True
    assert reply.is_yielding() is False


@pytest.mark.asyncio
async def test_statements_keep_append_order_and_plain_parity() -> None:
    reply = Reply(_event())
    fragments = [
        {"say": "<s>Hello</s> <break time='1s'/>world"},
        {"reprompt": "Still there?"},
        {"say": "Second", "plain": "Second, plainly"},
        {"directives": {"hint": "say next"}},
        ReplyFragment.ask("<speak>Ready?</speak>"),
    ]
    for fragment in fragments:
        await reply.append(fragment)
        assert len(reply.statements) == len(reply.plain_statements)

    assert reply.statements == ("<s>Hello</s> <break time='1s'/>world", "Second", "<speak>Ready?</speak>")
    assert reply.plain_statements == ("Hello world", "Second, plainly", "Ready?")


@pytest.mark.asyncio
async def test_sequence_is_applied_element_wise() -> None:
    reply = Reply(_event())
    await reply.append([{"say": "one"}, [{"say": "two"}, None], {"tell": "three"}])

    assert reply.statements == ("one", "two", "three")
    assert reply.is_yielding() is True


@pytest.mark.asyncio
async def test_say_does_not_yield_but_tell_and_ask_do() -> None:
    reply = Reply(_event())
    await reply.append({"say": "hello"})
    assert reply.is_yielding() is False

    await reply.append({"tell": "bye"})
    assert reply.is_yielding() is True

    other = Reply(_event())
    await other.append({"ask": "more?"})
    assert other.is_yielding() is True


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["ask", "tell", "say"])
async def test_statement_after_yield_is_state_violation(mode: str) -> None:
    reply = Reply(_event())
    await reply.append({"tell": "done"})
    before = reply.state

    with pytest.raises(StateViolation):
        await reply.append({mode: "again"})

    assert reply.state == before
    assert reply.is_yielding() is True


@pytest.mark.asyncio
async def test_non_statement_fragment_is_allowed_after_yield() -> None:
    reply = Reply(_event())
    await reply.append({"ask": "more?"})
    await reply.append({"reprompt": "more, please?", "card": {"type": "Simple", "title": "More"}})

    assert reply.reprompt == "more, please?"
    assert reply.card == {"type": "Simple", "title": "More"}


@pytest.mark.asyncio
async def test_explicit_yield_blocks_further_statements() -> None:
    reply = Reply(_event())
    await reply.append({"say": "hello"})

    assert reply.yield_() is reply
    assert reply.is_yielding() is True
    with pytest.raises(StateViolation):
        await reply.append({"say": "more"})


@pytest.mark.asyncio
async def test_dialog_directive_makes_reply_yield_and_keeps_session_open() -> None:
    reply = Reply(_event())
    await reply.append({"say": "Which city?", "directives": {"type": "Dialog.ElicitSlot", "slotToElicit": "city"}})

    assert reply.state.yield_requested is False
    assert reply.is_yielding() is True
    assert reply.terminate is False
    with pytest.raises(StateViolation):
        await reply.append({"say": "more"})


@pytest.mark.asyncio
async def test_tell_keeps_default_termination() -> None:
    reply = Reply(_event())
    await reply.append({"tell": "bye"})
    assert reply.terminate is True


@pytest.mark.asyncio
async def test_ask_keeps_session_open_regardless_of_directives_and_flag() -> None:
    reply = Reply(_event())
    await reply.append({"ask": "more?", "terminate": True, "directives": [TEMPLATE, {"hint": "say yes"}]})
    assert reply.terminate is False


@pytest.mark.asyncio
async def test_termination_is_recomputed_after_ask() -> None:
    reply = Reply(_event())
    await reply.append({"ask": "more?"})
    await reply.append({"reprompt": "anything else?"})
    assert reply.terminate is False

    await reply.append({"terminate": True})
    assert reply.terminate is True


@pytest.mark.asyncio
async def test_reprompt_and_card_last_non_empty_value_wins() -> None:
    reply = Reply(_event())
    await reply.append({"say": "a", "reprompt": "first", "card": {"type": "Simple", "title": "A"}})
    await reply.append({"say": "b", "reprompt": "", "card": {}})

    assert reply.reprompt == "first"
    assert reply.plain_reprompt == "first"
    assert reply.card == {"type": "Simple", "title": "A"}

    await reply.append({"reprompt": "<speak>second <break time='1s'/></speak>"})
    assert reply.reprompt == "<speak>second <break time='1s'/></speak>"
    assert reply.plain_reprompt == "second"

    await reply.append({"plainReprompt": "second, plainly"})
    assert reply.reprompt == "<speak>second <break time='1s'/></speak>"
    assert reply.plain_reprompt == "second, plainly"


@pytest.mark.asyncio
async def test_two_templates_in_one_append_fail() -> None:
    reply = Reply(_event())
    with pytest.raises(TooManyTemplateDirectives):
        await reply.append({"directives": [TEMPLATE, TEMPLATE]})
    assert reply.directives == ()


@pytest.mark.asyncio
async def test_two_templates_across_appends_fail_atomically() -> None:
    reply = Reply(_event())
    await reply.append({"say": "first", "directives": TEMPLATE})
    before = reply.state

    with pytest.raises(TooManyTemplateDirectives):
        await reply.append({"say": "second", "reprompt": "r", "directives": TEMPLATE})

    assert reply.state == before
    assert reply.statements == ("first",)
    assert reply.reprompt is None


@pytest.mark.asyncio
async def test_failed_sequence_append_restores_whole_sequence() -> None:
    reply = Reply(_event())
    await reply.append({"directives": TEMPLATE})

    with pytest.raises(TooManyTemplateDirectives):
        await reply.append([{"say": "one"}, {"say": "two", "directives": TEMPLATE}])

    assert reply.statements == ()
    assert len(reply.directives) == 1


@pytest.mark.asyncio
async def test_template_with_other_directive_succeeds() -> None:
    reply = Reply(_event())
    await reply.append({"directives": [TEMPLATE, {"hint": "try saying help"}]})
    assert [d["type"] for d in reply.directives] == ["Display.RenderTemplate", "Hint"]


@pytest.mark.asyncio
async def test_two_hints_fail() -> None:
    reply = Reply(_event())
    await reply.append({"directives": {"hint": "one"}})
    with pytest.raises(TooManyHintDirectives):
        await reply.append({"directives": {"hint": "two"}})


@pytest.mark.asyncio
@pytest.mark.parametrize("first,second", [(AUDIO, VIDEO), (VIDEO, AUDIO)])
async def test_audio_and_video_conflict_in_either_order(first: dict, second: dict) -> None:
    reply = Reply(_event())
    await reply.append({"directives": first})
    with pytest.raises(ConflictingMediaDirectives):
        await reply.append({"directives": second})
    assert len(reply.directives) == 1


@pytest.mark.asyncio
async def test_display_directives_dropped_without_display_support() -> None:
    reply = Reply(_event(display=False))
    await reply.append({"say": "hi", "directives": [TEMPLATE, {"hint": "say help"}, AUDIO]})

    assert [d["type"] for d in reply.directives] == ["AudioPlayer.Play"]


@pytest.mark.asyncio
async def test_display_override_keeps_display_directives() -> None:
    reply = Reply(_event(display=False))
    await reply.append({"directives": [TEMPLATE], "supportDisplayInterface": True})

    assert [d["type"] for d in reply.directives] == ["Display.RenderTemplate"]


@pytest.mark.asyncio
async def test_has_directive_accepts_string_pattern_and_callable() -> None:
    reply = Reply(_event())
    await reply.append({"directives": [TEMPLATE, {"type": "Dialog.Delegate"}]})

    assert reply.has_directive("Display.RenderTemplate") is True
    assert reply.has_directive("Display") is False
    assert reply.has_directive(re.compile(r"^Dialog\.")) is True
    assert reply.has_directive(re.compile(r"^VideoApp\.")) is False
    assert reply.has_directive(lambda d: d.get("template", {}).get("token") == "t1") is True


@pytest.mark.asyncio
async def test_has_directive_rejects_unknown_predicate_kind() -> None:
    reply = Reply(_event())
    await reply.append({"directives": TEMPLATE})
    with pytest.raises(UnsupportedPredicateKind):
        reply.has_directive(42)
    with pytest.raises(UnsupportedPredicateKind):
        Reply(_event()).has_directive(None)


@pytest.mark.asyncio
async def test_append_rejects_unknown_item_type() -> None:
    reply = Reply(_event())
    with pytest.raises(InvalidFragment):
        await reply.append("just text")


@pytest.mark.asyncio
async def test_append_reply_merges_sub_dialog() -> None:
    event = _event()
    sub = await Reply.create(event, {"say": "from sub", "reprompt": "sub reprompt", "card": {"type": "Simple"}})
    parent = await Reply.create(event, {"say": "from parent", "reprompt": "parent reprompt"})

    await parent.append(sub)

    assert parent.statements == ("from parent", "from sub")
    assert parent.plain_statements == ("from parent", "from sub")
    assert parent.reprompt == "sub reprompt"
    assert parent.card == {"type": "Simple"}
    assert parent.terminate is True
    assert parent.is_yielding() is False


@pytest.mark.asyncio
async def test_append_reply_keeps_current_reprompt_when_sub_has_none() -> None:
    event = _event()
    parent = await Reply.create(event, {"say": "a", "reprompt": "keep me"})
    sub = await Reply.create(event, {"say": "b"})

    await parent.append_reply(sub)

    assert parent.reprompt == "keep me"


@pytest.mark.asyncio
async def test_append_reply_ors_yield_and_dialog_keeps_session_open() -> None:
    event = _event()
    sub = await Reply.create(event, {"say": "slot?", "directives": {"type": "Dialog.ElicitSlot"}})
    parent = await Reply.create(event, {"say": "hi"})

    await parent.append_reply(sub)

    assert parent.is_yielding() is True
    assert parent.terminate is False

    asked = await Reply.create(event, {"ask": "question?"})
    target = Reply(event)
    await target.append_reply(asked)
    assert target.state.yield_requested is True


@pytest.mark.asyncio
async def test_append_reply_validates_combined_directives() -> None:
    event = _event()
    parent = await Reply.create(event, {"say": "playing", "directives": AUDIO})
    sub = await Reply.create(event, {"say": "video", "directives": VIDEO})
    before = parent.state

    with pytest.raises(ConflictingMediaDirectives):
        await parent.append(sub)

    assert parent.state == before


@pytest.mark.asyncio
async def test_append_reply_preserves_sub_display_override() -> None:
    event = _event(display=False)
    sub = await Reply.create(event, {"directives": TEMPLATE, "supportDisplayInterface": True})
    parent = Reply(event)

    await parent.append_reply(sub)

    assert parent.has_directive("Display.RenderTemplate") is True


@pytest.mark.asyncio
async def test_yielding_never_reverts_within_turn() -> None:
    reply = Reply(_event())
    await reply.append({"say": "start"})
    await reply.append({"tell": "stop"})
    for fragment in ({"reprompt": "x"}, {"terminate": True}, {"card": {"type": "Simple"}}, {"directives": AUDIO}):
        await reply.append(fragment)
        assert reply.is_yielding() is True


@pytest.mark.asyncio
async def test_append_reply_keeps_plain_only_reprompt() -> None:
    event = _event()
    config = ReplyConfig(speech_kind="PlainText")
    sub = await Reply.create(event, {"plainReprompt": "Say a number"}, config=config)
    parent = await Reply.create(event, {"say": "Hi"}, config=config)

    await parent.append_reply(sub)

    assert parent.reprompt is None
    assert parent.plain_reprompt == "Say a number"
    assert parent.to_payload()["response"]["reprompt"] == {
        "outputSpeech": {"type": "PlainText", "text": "Say a number"},
    }


class _FailingRenderer:
    async def render_path(self, path, event):
        raise RuntimeError("message store unavailable")


@pytest.mark.asyncio
async def test_renderer_failure_leaves_reply_unchanged() -> None:
    envelope = _event().raw
    reply = Reply(ConversationEvent(envelope, renderer=_FailingRenderer()))
    await reply.append({"say": "Welcome"})
    before = reply.state

    with pytest.raises(RuntimeError, match="message store unavailable"):
        await reply.append({
            "ask": "Which one?",
            "reprompt": "Pick one",
            "directives": {"hint": {"path": "Hint.Pick"}},
        })

    assert reply.state == before
    assert reply.statements == ("Welcome",)
    assert reply.reprompt is None
    assert reply.is_yielding() is False


@pytest.mark.asyncio
async def test_card_is_copied_on_append() -> None:
    card = {"type": "Simple", "title": "Score"}
    reply = await Reply.create(_event(), {"say": "Done", "card": card})

    card["title"] = "Changed"

    assert reply.card == {"type": "Simple", "title": "Score"}


@pytest.mark.asyncio
async def test_reply_state_cannot_be_changed_in_place() -> None:
    reply = await Reply.create(_event(), {"say": "Menu", "directives": TEMPLATE})

    with pytest.raises(FrozenInstanceError):
        reply.state.terminate = False
    with pytest.raises(AttributeError):
        reply.state.directives.append(TEMPLATE)

    assert [d["type"] for d in reply.directives] == ["Display.RenderTemplate"]
