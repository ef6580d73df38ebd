import json

import pytest

from models.api_models import Message, MultiQuiz, StudyPlan
from services.response_parser import ResponseParser
from utils.constants import ChatMode
from utils.errors import StructuredParseFailure
from tests.fixtures.responses import MULTI_QUIZ_RESPONSE, STUDY_PLAN_RESPONSE, fenced


def test_split_without_opener_has_no_thinking():
    split = ResponseParser.split_thinking("  Just an answer.  ")
    assert split.visible == "Just an answer."
    assert split.thinking is None


def test_split_with_open_block_streams_reasoning():
    split = ResponseParser.split_thinking("<think>Considering Alma 32")
    assert split.visible == ""
    assert split.thinking == "Considering Alma 32"
    assert not split.thinking_complete


def test_split_with_closed_block():
    split = ResponseParser.split_thinking("Intro <think> reasoning </think> Faith is a seed.")
    assert split.visible == "Intro  Faith is a seed."
    assert split.thinking == "reasoning"
    assert split.thinking_complete


def test_split_handles_delimiter_across_deltas():
    """The whole accumulated text is re-split after every delta."""
    accumulated = ""
    snapshots = []
    for piece in ["<th", "ink>plan", "ning</th", "ink>Answer"]:
        accumulated += piece
        snapshots.append(ResponseParser.split_thinking(accumulated))

    assert snapshots[0].visible == "<th"
    assert snapshots[1].thinking == "plan"
    assert snapshots[2].thinking == "planning</th"
    assert snapshots[3].visible == "Answer"
    assert snapshots[3].thinking == "planning"


@pytest.mark.parametrize("identifier,caption", [
    ("File:Salt_Lake_Temple.jpg", "Salt Lake Temple"),
    ("Kirtland_Temple.png", "Kirtland Temple"),
    ("commons/File:Angel_Moroni.svg", "Angel Moroni"),
])
def test_image_caption(identifier, caption):
    assert ResponseParser.image_caption(identifier) == caption


def test_find_image_tag():
    match = ResponseParser.find_image_tag("Here it is: WIKIMEDIA_SEARCH[File:Salt_Lake_Temple.jpg] enjoy")
    assert match.group(1) == "File:Salt_Lake_Temple.jpg"
    assert ResponseParser.find_image_tag("No image here") is None


@pytest.mark.anyio
async def test_resolve_image_tag_success(image_resolver):
    text = "Look: WIKIMEDIA_SEARCH[File:Salt_Lake_Temple.jpg]"
    match = ResponseParser.find_image_tag(text)

    assert ResponseParser.image_loading_text(text, match) == "Look: Searching for the image..."
    resolved = await ResponseParser.resolve_image_tag(text, match, image_resolver)

    assert resolved == "Look: ![Salt Lake Temple](https://upload.wikimedia.org/salt_lake_temple.jpg)"
    image_resolver.assert_awaited_once_with("File:Salt_Lake_Temple.jpg")


@pytest.mark.anyio
async def test_resolve_image_tag_failure_becomes_apology(mocker):
    resolver = mocker.AsyncMock(side_effect=RuntimeError("not found"))
    text = "WIKIMEDIA_SEARCH[File:Missing_Picture.jpg]"
    match = ResponseParser.find_image_tag(text)

    resolved = await ResponseParser.resolve_image_tag(text, match, resolver)
    assert resolved == 'I was unable to find an image for "Missing Picture".'


@pytest.mark.parametrize("mode,payload,payload_type", [
    (ChatMode.STUDY_PLAN, STUDY_PLAN_RESPONSE, StudyPlan),
    (ChatMode.MULTI_QUIZ, MULTI_QUIZ_RESPONSE, MultiQuiz),
])
def test_parse_structured_accepts_plain_and_fenced_json(mode, payload, payload_type):
    for text in (json.dumps(payload), fenced(payload)):
        parsed = ResponseParser.parse_structured(text, mode)
        assert isinstance(parsed, payload_type)
        assert parsed.model_dump(exclude_none=True) == payload


def test_apply_structured_attaches_payload():
    message = Message(id="b", sender="bot", text="raw json")
    result = ResponseParser.apply_structured(message, fenced(STUDY_PLAN_RESPONSE), ChatMode.STUDY_PLAN)
    assert result.text == ""
    assert result.study_plan.title == "Faith in Jesus Christ"
    assert result.multi_quiz is None


@pytest.mark.parametrize("mode,text,apology", [
    (ChatMode.STUDY_PLAN, "Here is your plan!", "Sorry, I couldn't create a study plan. Please try again."),
    (ChatMode.MULTI_QUIZ, '{"title": "Short", "questions": []}', "Sorry, I couldn't create a quiz. Please try again."),
])
def test_apply_structured_failure_sets_apology_without_payload(mode, text, apology):
    message = Message(id="b", sender="bot", text=text)
    result = ResponseParser.apply_structured(message, text, mode)
    assert result.text == apology
    assert result.study_plan is None
    assert result.multi_quiz is None


def test_quiz_with_wrong_option_count_is_rejected():
    broken = json.loads(json.dumps(MULTI_QUIZ_RESPONSE))
    broken["questions"][0]["options"] = ["A", "B", "C"]
    with pytest.raises(StructuredParseFailure):
        ResponseParser.parse_structured(json.dumps(broken), ChatMode.MULTI_QUIZ)


def test_non_structured_mode_cannot_be_parsed():
    with pytest.raises(StructuredParseFailure):
        ResponseParser.parse_structured("{}", ChatMode.CHAT)
