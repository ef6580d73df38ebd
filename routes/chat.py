"""
Route handlers for standard chat operations.
Handles the /chat endpoint (non-streaming).
"""
from fastapi import APIRouter
from models.api_models import ChatRequest, Message
from models.chat_models import ChatTurn, TurnAction
from services.chat_service import ChatService
from services.stream_service import StreamService
from utils.logger import app_logger

router = APIRouter()


def build_turn(request: ChatRequest) -> tuple[ChatTurn, Message]:
    """Build the turn and the user's history message for a chat request.

    The stored user message keeps the prompt as typed; the reading context
    only decorates the text sent to the model.
    """
    user_id, bot_id = StreamService.new_message_ids()
    user_message = Message(id=user_id, sender="user", text=request.prompt)
    turn = ChatTurn(
        prompt=ChatService.build_prompt(request.prompt, request.reading_context),
        mode=request.mode,
        history=request.history,
        bot_message_id=bot_id
    )
    return turn, user_message


@router.post("/chat")
async def chat(request: ChatRequest):
    """
    Chat endpoint with conversation history. Runs the whole turn and returns the final message.
    """
    turn, user_message = build_turn(request)
    app_logger.info(f"Chat request: provider={request.settings.provider.value}, mode={request.mode.value}")

    final_message = None
    error = None
    async for update in StreamService.run_turn(request.settings, turn, user_message):
        if update.action == TurnAction.ERROR:
            error = update.error
        elif update.action == TurnAction.DONE:
            final_message = update.message

    response_data = {
        "message": final_message.model_dump(exclude_none=True),
        "model": ChatService.resolve_model(request.settings, request.mode),
        "provider": request.settings.provider.value,
        "mode": request.mode.value,
    }
    if error:
        response_data["error"] = error

    return response_data
