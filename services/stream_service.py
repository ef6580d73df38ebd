"""
Streaming service containing the turn orchestration logic.
Drives a chat session, re-parses the accumulated text after every delta and
formats the resulting steps as Server-Sent Events.
"""
import json
import time
from typing import AsyncIterator, Callable

from models.api_models import Message, ProviderSettings
from models.chat_models import ChatTurn, StreamAccumulator, TurnAction, TurnUpdate
from services.chat_service import ChatService, ChatSession
from services.response_parser import ImageResolver, ResponseParser
from services.wikimedia import WikimediaService
from utils.constants import ERROR_MESSAGE_TEMPLATE
from utils.errors import ScholarError
from utils.logger import app_logger

SessionFactory = Callable[..., ChatSession]


class StreamService:
    """Service for running a conversation turn."""

    @staticmethod
    def send_sse_event(event_type: str, data: dict) -> str:
        """Format data as Server-Sent Events (SSE) format."""
        return f"event: {event_type}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"

    @staticmethod
    def new_message_ids() -> tuple[str, str]:
        """Ids for a new user message and its bot reply."""
        stamp = str(int(time.time() * 1000))
        return stamp, f"{stamp}-bot"

    @staticmethod
    def error_message(message: Message, error: Exception) -> Message:
        """Replace whatever accumulated with the error description."""
        return message.model_copy(update={
            "text": ERROR_MESSAGE_TEMPLATE.format(error=str(error)),
            "thinking": None,
            "citations": None,
            "study_plan": None,
            "multi_quiz": None,
        })

    @staticmethod
    async def run_turn(
        settings: ProviderSettings,
        turn: ChatTurn,
        user_message: Message,
        image_resolver: ImageResolver | None = None,
        session_factory: SessionFactory | None = None
    ) -> AsyncIterator[TurnUpdate]:
        """
        Run one user turn and yield display-ready steps.

        Args:
            settings: Provider settings for this request
            turn: Prompt (as sent to the model), mode and prior history
            user_message: The user's message as it is stored in history
            image_resolver: Out-of-band image lookup for image command tags
            session_factory: Builds the provider session

        Yields:
            TurnUpdate steps: status, message snapshots, an optional error, and done
        """
        image_resolver = image_resolver or WikimediaService.get_image_url
        session_factory = session_factory or ChatService.create_chat_session
        bot_message = Message(id=turn.bot_message_id or f"{user_message.id}-bot", sender="bot")
        final_history = [*turn.history, user_message]

        try:
            session = session_factory(settings, turn.mode, turn.history)
        except ScholarError as e:
            app_logger.error(f"Could not initialize the chat: {e}")
            bot_message = StreamService.error_message(bot_message, e)
            yield TurnUpdate(action=TurnAction.ERROR, error=e.to_dict())
            yield TurnUpdate(action=TurnAction.DONE, message=bot_message, history=[*final_history, bot_message])
            return

        yield TurnUpdate(action=TurnAction.STATUS, stage="generating")

        accumulator = StreamAccumulator(mode=turn.mode)
        try:
            async for delta in session.send_message_stream(turn.prompt):
                accumulator.add(delta)
                split = ResponseParser.split_thinking(accumulator.raw_text)
                bot_message = bot_message.model_copy(update={
                    "text": split.visible,
                    "thinking": split.thinking,
                    "citations": accumulator.citations,
                })
                yield TurnUpdate(action=TurnAction.UPDATE, message=bot_message)
        except ScholarError as e:
            app_logger.error(f"Error sending message: {e}")
            bot_message = StreamService.error_message(bot_message, e)
            yield TurnUpdate(action=TurnAction.ERROR, error=e.to_dict())
            yield TurnUpdate(action=TurnAction.DONE, message=bot_message, history=[*final_history, bot_message])
            return
        except Exception as e:
            app_logger.error(f"Unexpected streaming error: {e}")
            bot_message = StreamService.error_message(bot_message, e)
            yield TurnUpdate(action=TurnAction.ERROR, error={"type": "unexpected_error", "message": str(e)})
            yield TurnUpdate(action=TurnAction.DONE, message=bot_message, history=[*final_history, bot_message])
            return

        app_logger.info(
            f"Stream completed: {accumulator.delta_count} deltas, {len(accumulator.raw_text)} characters"
        )

        split = ResponseParser.split_thinking(accumulator.raw_text)
        text = split.visible
        bot_message = bot_message.model_copy(update={
            "text": text,
            "thinking": split.thinking,
            "citations": accumulator.citations,
        })

        match = ResponseParser.find_image_tag(text)
        if match:
            yield TurnUpdate(action=TurnAction.STATUS, stage="searching_image")
            bot_message = bot_message.model_copy(update={"text": ResponseParser.image_loading_text(text, match)})
            yield TurnUpdate(action=TurnAction.UPDATE, message=bot_message)

            text = await ResponseParser.resolve_image_tag(text, match, image_resolver)
            bot_message = bot_message.model_copy(update={"text": text})
            yield TurnUpdate(action=TurnAction.UPDATE, message=bot_message)

        if ChatService.is_structured(turn.mode):
            bot_message = ResponseParser.apply_structured(bot_message, text, turn.mode)

        yield TurnUpdate(action=TurnAction.DONE, message=bot_message, history=[*final_history, bot_message])

    @staticmethod
    def to_sse(update: TurnUpdate) -> str:
        """Render a turn step as an SSE event."""
        if update.action == TurnAction.STATUS:
            return StreamService.send_sse_event("status", {"stage": update.stage})

        if update.action == TurnAction.UPDATE:
            return StreamService.send_sse_event(
                "message",
                update.message.model_dump(include={"id", "text", "thinking", "citations"})
            )

        if update.action == TurnAction.ERROR:
            return StreamService.send_sse_event("error", update.error)

        return StreamService.send_sse_event("done", {
            "message": update.message.model_dump(exclude_none=True),
            "history": [msg.model_dump(exclude_none=True) for msg in update.history or []],
        })
