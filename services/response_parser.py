"""
Incremental response parser.
Splits hidden reasoning from visible text, resolves image command tags and
parses structured-mode JSON payloads.
"""
import json
import re
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from config import Config
from models.api_models import Message, MultiQuiz, StudyPlan
from models.chat_models import ThinkingSplit
from utils.constants import (
    ChatMode,
    IMAGE_FAILURE_TEMPLATE,
    IMAGE_LOADING_TEXT,
    Patterns,
    STRUCTURED_FAILURE_TEMPLATE,
    STRUCTURED_MODE_LABELS,
    THINKING_CLOSE,
    THINKING_OPEN,
)
from utils.errors import ImageResolutionFailure, StructuredParseFailure
from utils.logger import app_logger

ImageResolver = Callable[[str], Awaitable[str]]

STRUCTURED_PAYLOADS = {
    ChatMode.STUDY_PLAN: ("study_plan", StudyPlan),
    ChatMode.MULTI_QUIZ: ("multi_quiz", MultiQuiz),
}


class ResponseParser:
    """Turns accumulated response text into display-ready message state."""

    @staticmethod
    def split_thinking(text: str) -> ThinkingSplit:
        """
        Split accumulated text into visible text and hidden reasoning.

        Applied to the whole accumulated text after every delta, since the
        delimiters may arrive split across deltas. Until the closing delimiter
        arrives everything after the opener is still-growing reasoning.
        """
        open_idx = text.find(THINKING_OPEN)
        if open_idx == -1:
            return ThinkingSplit(visible=text.strip())

        before = text[:open_idx]
        rest = text[open_idx + len(THINKING_OPEN):]

        close_idx = rest.find(THINKING_CLOSE)
        if close_idx == -1:
            return ThinkingSplit(visible=before.strip(), thinking=rest.strip())

        thinking = rest[:close_idx]
        after = rest[close_idx + len(THINKING_CLOSE):]
        return ThinkingSplit(
            visible=(before + after).strip(),
            thinking=thinking.strip(),
            thinking_complete=True
        )

    @staticmethod
    def find_image_tag(text: str, tag: str = Config.IMAGE_TAG) -> Optional[re.Match]:
        """Find the first `TAG[identifier]` command in text."""
        return re.search(rf'{re.escape(tag)}\[(.*?)\]', text)

    @staticmethod
    def image_caption(identifier: str) -> str:
        """Human readable caption: no path-like prefix, spaces for underscores, no extension."""
        caption = re.sub(Patterns.PATH_PREFIX, '', identifier.strip())
        caption = caption.replace('_', ' ')
        caption = re.sub(Patterns.FILE_EXTENSION, '', caption)
        return caption.strip()

    @staticmethod
    def image_loading_text(text: str, match: re.Match) -> str:
        return text.replace(match.group(0), IMAGE_LOADING_TEXT, 1)

    @staticmethod
    async def resolve_image_tag(text: str, match: re.Match, resolver: ImageResolver) -> str:
        """
        Replace an image command tag with markdown image markup.
        A failed lookup becomes an apology sentence; it never fails the turn.
        """
        identifier = match.group(1)
        caption = ResponseParser.image_caption(identifier)

        try:
            url = await resolver(identifier)
            if not url:
                raise ImageResolutionFailure(f"No image URL returned for {identifier}")
            app_logger.info(f"Resolved image tag {identifier} -> {url}")
            replacement = f"![{caption}]({url})"
        except Exception as e:
            app_logger.warning(f"Image lookup failed for {identifier}: {e}")
            replacement = IMAGE_FAILURE_TEMPLATE.format(caption=caption)

        return text.replace(match.group(0), replacement, 1)

    @staticmethod
    def strip_code_fence(text: str) -> str:
        """Remove a markdown code fence wrapper the backend may have added."""
        match = re.match(Patterns.CODE_FENCE, text, re.DOTALL)
        if match:
            return match.group(1).strip()
        return text.strip()

    @staticmethod
    def parse_structured(text: str, mode: ChatMode) -> StudyPlan | MultiQuiz:
        """
        Parse the final text of a structured mode into its payload type.

        Raises:
            StructuredParseFailure: when the text is not valid JSON of the expected shape
        """
        if mode not in STRUCTURED_PAYLOADS:
            raise StructuredParseFailure(f"{mode.value} is not a structured mode")

        _, payload_type = STRUCTURED_PAYLOADS[mode]
        cleaned = ResponseParser.strip_code_fence(text)

        try:
            data = json.loads(cleaned)
            return payload_type.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise StructuredParseFailure(f"Invalid {mode.value} payload: {e}") from e

    @staticmethod
    def apply_structured(message: Message, text: str, mode: ChatMode) -> Message:
        """
        Attach the structured payload to the message, or replace its text with
        the mode's apology when parsing fails. The payload is never partial.
        """
        field_name, _ = STRUCTURED_PAYLOADS[mode]
        try:
            payload = ResponseParser.parse_structured(text, mode)
        except StructuredParseFailure as e:
            app_logger.warning(str(e))
            return message.model_copy(update={
                "text": STRUCTURED_FAILURE_TEMPLATE.format(label=STRUCTURED_MODE_LABELS[mode]),
                "study_plan": None,
                "multi_quiz": None,
            })

        return message.model_copy(update={"text": "", field_name: payload})
