"""
Route handlers for streaming chat operations.
Handles the /chat/stream and /chat/retry endpoints with real-time status updates.
"""
from typing import AsyncIterator
from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from models.api_models import ChatRequest, Message, ProviderSettings, RetryRequest
from models.chat_models import ChatTurn
from services.chat_service import ChatService
from services.stream_service import StreamService
from routes.chat import build_turn
from utils.logger import app_logger

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no"
}


def stream_turn(settings: ProviderSettings, turn: ChatTurn, user_message: Message) -> StreamingResponse:
    """Wrap one turn as an SSE response."""

    async def event_generator() -> AsyncIterator[str]:
        yield StreamService.send_sse_event("status", {"stage": "initializing"})
        try:
            async for update in StreamService.run_turn(settings, turn, user_message):
                yield StreamService.to_sse(update)
        except Exception as e:
            app_logger.error(f"Streaming chat error: {str(e)}")
            yield StreamService.send_sse_event("error", {"type": "unexpected_error", "message": str(e)})

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest):
    """
    Streaming chat endpoint. Emits a message snapshot after every delta.
    """
    turn, user_message = build_turn(request)
    app_logger.info(f"Streaming chat: provider={request.settings.provider.value}, mode={request.mode.value}")
    return stream_turn(request.settings, turn, user_message)


@router.post("/chat/retry")
async def chat_retry(request: RetryRequest):
    """
    Resubmit the user turn behind a bot message.
    History is truncated to just before that user message, which is sent again verbatim.
    """
    try:
        truncated, user_message = ChatService.prepare_retry(request.history, request.bot_message_id)
    except ValueError as e:
        app_logger.warning(f"Retry rejected: {e}")
        message = str(e)

        async def error_generator() -> AsyncIterator[str]:
            yield StreamService.send_sse_event("error", {"type": "retry_failed", "message": message})

        return StreamingResponse(error_generator(), media_type="text/event-stream", headers=SSE_HEADERS)

    _, bot_id = StreamService.new_message_ids()
    turn = ChatTurn(
        prompt=user_message.text,
        mode=request.mode,
        history=truncated[:-1],
        bot_message_id=bot_id
    )
    app_logger.info(f"Retrying user message {user_message.id}")
    return stream_turn(request.settings, turn, user_message)
