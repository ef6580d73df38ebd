"""
Route handler for the live voice session.
Binary frames from the client are 16 kHz PCM16 microphone audio; every frame
sent back is a JSON event.
"""
import json
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from config import Config
from services.voice_session import VoiceSession
from utils.errors import VoiceSessionError
from utils.logger import app_logger

router = APIRouter()


@router.websocket("/voice")
async def voice(websocket: WebSocket, api_key: Optional[str] = None):
    """
    Bridge one client to one live session.
    A text frame {"type": "stop"} ends the session; so does disconnecting.
    """
    await websocket.accept()

    async def send_event(event: dict) -> None:
        if websocket.application_state == WebSocketState.CONNECTED and \
                websocket.client_state == WebSocketState.CONNECTED:
            await websocket.send_json(event)

    try:
        session = VoiceSession(api_key or Config.GOOGLE_API_KEY, send_event)
        await session.start()
    except VoiceSessionError as e:
        app_logger.error(f"Voice session could not start: {e}")
        await websocket.send_json({"type": "error", "message": str(e)})
        await websocket.close()
        return

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break

            if frame.get("bytes") is not None:
                await session.send_audio(frame["bytes"])
                continue

            text = frame.get("text")
            if not text:
                continue
            try:
                command = json.loads(text)
            except json.JSONDecodeError:
                app_logger.warning(f"Ignoring malformed voice command: {text[:100]}")
                continue
            if command.get("type") == "stop":
                break
    except WebSocketDisconnect:
        app_logger.info("Voice client disconnected")
    except VoiceSessionError as e:
        app_logger.error(f"Voice session ended: {e}")
    finally:
        await session.stop()

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
