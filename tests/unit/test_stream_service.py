import json

import pytest

from models.api_models import Citation, Message
from models.chat_models import ChatTurn, StreamDelta, TurnAction, TurnUpdate
from services.stream_service import StreamService
from utils.constants import ChatMode
from utils.errors import ProviderMisconfigured, ProviderRequestFailed
from tests.fixtures.responses import MULTI_QUIZ_RESPONSE, fenced
from tests.helpers import collect_updates, parse_sse


def make_turn(prompt="Who was Nephi?", mode=ChatMode.CHAT, history=None):
    return ChatTurn(prompt=prompt, mode=mode, history=history or [], bot_message_id="100-bot")


USER_MESSAGE = Message(id="100", sender="user", text="Who was Nephi?")


async def run(settings, turn, factory, resolver=None):
    return await collect_updates(StreamService.run_turn(
        settings, turn, USER_MESSAGE, image_resolver=resolver, session_factory=factory
    ))


@pytest.mark.anyio
async def test_turn_emits_snapshots_and_done(google_settings, fake_session_factory, image_resolver):
    fake_session_factory.set_deltas("Nephi ", "was a ", "prophet.")
    updates = await run(google_settings, make_turn(), fake_session_factory, image_resolver)

    assert updates[0].action == TurnAction.STATUS and updates[0].stage == "generating"
    snapshots = [u.message.text for u in updates if u.action == TurnAction.UPDATE]
    assert snapshots == ["Nephi", "Nephi was a", "Nephi was a prophet."]

    done = updates[-1]
    assert done.action == TurnAction.DONE
    assert done.message.id == "100-bot"
    assert done.message.text == "Nephi was a prophet."
    assert [m.id for m in done.history] == ["100", "100-bot"]
    assert fake_session_factory.session.sent == ["Who was Nephi?"]
    image_resolver.assert_not_awaited()


@pytest.mark.anyio
async def test_thinking_is_split_on_every_snapshot(google_settings, fake_session_factory):
    fake_session_factory.set_deltas("<think>Con", "sidering</th", "ink>Answer")
    updates = await run(google_settings, make_turn(mode=ChatMode.THINKING), fake_session_factory)

    snapshots = [u.message for u in updates if u.action == TurnAction.UPDATE]
    assert snapshots[0].thinking == "Con"
    assert snapshots[-1].thinking == "Considering"
    assert snapshots[-1].text == "Answer"
    assert updates[-1].message.thinking == "Considering"


@pytest.mark.anyio
async def test_latest_citations_reach_final_message(google_settings, fake_session_factory):
    fake_session_factory.set_deltas(
        StreamDelta(text="A", citations=[Citation(uri="u1")]),
        StreamDelta(text="B", citations=[Citation(uri="u2"), Citation(uri="u3")]),
        StreamDelta(text="C"),
    )
    updates = await run(google_settings, make_turn(), fake_session_factory)

    assert [c.uri for c in updates[-1].message.citations] == ["u2", "u3"]


@pytest.mark.anyio
async def test_image_tag_is_resolved_after_stream(google_settings, fake_session_factory, image_resolver):
    fake_session_factory.set_deltas("The temple: ", "WIKIMEDIA_SEARCH[File:Salt_Lake_Temple.jpg]")
    updates = await run(google_settings, make_turn(), fake_session_factory, image_resolver)

    stages = [u.stage for u in updates if u.action == TurnAction.STATUS]
    assert stages == ["generating", "searching_image"]

    texts = [u.message.text for u in updates if u.action == TurnAction.UPDATE]
    assert texts[-2] == "The temple: Searching for the image..."
    assert texts[-1] == "The temple: ![Salt Lake Temple](https://upload.wikimedia.org/salt_lake_temple.jpg)"
    assert updates[-1].message.text == texts[-1]


@pytest.mark.anyio
async def test_failed_image_lookup_does_not_fail_turn(google_settings, fake_session_factory, mocker):
    resolver = mocker.AsyncMock(side_effect=RuntimeError("lookup failed"))
    fake_session_factory.set_deltas("WIKIMEDIA_SEARCH[File:Nowhere.jpg]")
    updates = await run(google_settings, make_turn(), fake_session_factory, resolver)

    assert all(u.action != TurnAction.ERROR for u in updates)
    assert updates[-1].message.text == 'I was unable to find an image for "Nowhere".'


@pytest.mark.anyio
async def test_structured_mode_attaches_payload(google_settings, fake_session_factory):
    fake_session_factory.set_deltas(fenced(MULTI_QUIZ_RESPONSE))
    updates = await run(google_settings, make_turn(mode=ChatMode.MULTI_QUIZ), fake_session_factory)

    final = updates[-1].message
    assert final.text == ""
    assert len(final.multi_quiz.questions) == 5
    assert final.study_plan is None


@pytest.mark.anyio
async def test_structured_mode_invalid_json_becomes_apology(google_settings, fake_session_factory):
    fake_session_factory.set_deltas("Here is a lovely plan")
    updates = await run(google_settings, make_turn(mode=ChatMode.STUDY_PLAN), fake_session_factory)

    final = updates[-1].message
    assert final.text == "Sorry, I couldn't create a study plan. Please try again."
    assert final.study_plan is None


@pytest.mark.anyio
async def test_mid_stream_failure_discards_text(lmstudio_settings, fake_session_factory):
    error = ProviderRequestFailed("lmstudio", 500, "model crashed")
    fake_session_factory.set_deltas("Partial ", "answer", error=error, fail_after=2)
    updates = await run(lmstudio_settings, make_turn(), fake_session_factory)

    actions = [u.action for u in updates]
    assert actions[-2:] == [TurnAction.ERROR, TurnAction.DONE]
    assert updates[-2].error["status"] == 500

    final = updates[-1].message
    assert final.text == "Sorry, I encountered an error. (Failed to fetch from lmstudio: 500 model crashed)"
    assert "Partial" not in final.text
    assert [m.id for m in updates[-1].history] == ["100", "100-bot"]


@pytest.mark.anyio
async def test_unexpected_error_is_reported(google_settings, fake_session_factory):
    fake_session_factory.set_deltas("x", error=RuntimeError("boom"), fail_after=0)
    updates = await run(google_settings, make_turn(), fake_session_factory)

    assert updates[-2].error == {"type": "unexpected_error", "message": "boom"}
    assert updates[-1].message.text == "Sorry, I encountered an error. (boom)"


@pytest.mark.anyio
async def test_misconfiguration_reports_error_before_generating(openrouter_settings, fake_session_factory):
    fake_session_factory.raise_on_create(ProviderMisconfigured("OpenRouter API Key is missing."))
    updates = await run(openrouter_settings, make_turn(), fake_session_factory)

    assert [u.action for u in updates] == [TurnAction.ERROR, TurnAction.DONE]
    assert updates[0].error == {"type": "provider_misconfigured", "message": "OpenRouter API Key is missing."}
    assert updates[1].message.text == "Sorry, I encountered an error. (OpenRouter API Key is missing.)"


@pytest.mark.anyio
async def test_history_is_passed_to_factory(google_settings, fake_session_factory, conversation):
    fake_session_factory.set_deltas("ok")
    await run(google_settings, make_turn(history=conversation), fake_session_factory)

    call = fake_session_factory.calls[0]
    assert call["mode"] == ChatMode.CHAT
    assert call["history"] == conversation


def test_send_sse_event_format():
    assert StreamService.send_sse_event("status", {"stage": "generating"}) == (
        'event: status\ndata: {"stage":"generating"}\n\n'
    )


def test_to_sse_renders_every_action():
    message = Message(id="1-bot", sender="bot", text="Hi", thinking="hmm")
    rendered = "".join([
        StreamService.to_sse(TurnUpdate(action=TurnAction.STATUS, stage="generating")),
        StreamService.to_sse(TurnUpdate(action=TurnAction.UPDATE, message=message)),
        StreamService.to_sse(TurnUpdate(action=TurnAction.ERROR, error={"type": "transport_error", "message": "x"})),
        StreamService.to_sse(TurnUpdate(action=TurnAction.DONE, message=message, history=[message])),
    ])
    events = parse_sse(rendered)

    assert [e[0] for e in events] == ["status", "message", "error", "done"]
    assert events[1][1] == {"id": "1-bot", "text": "Hi", "thinking": "hmm", "citations": None}
    assert events[3][1]["message"]["text"] == "Hi"
    assert json.dumps(events[3][1]["history"])


def test_new_message_ids_pair():
    user_id, bot_id = StreamService.new_message_ids()
    assert bot_id == f"{user_id}-bot"
