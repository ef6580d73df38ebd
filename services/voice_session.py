"""
Voice session adapter for the native live API.
Forwards 16 kHz microphone PCM to the model and turns inbound server messages
into transcript, audio scheduling and control events.
"""
import asyncio
import contextlib
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from google import genai
from google.genai import types

from config import Config
from utils.audio import decode_audio_frame, encode_audio_frame, pcm16_duration
from utils.constants import SYSTEM_INSTRUCTION
from utils.errors import VoiceSessionError
from utils.logger import app_logger

EventSink = Callable[[dict], Awaitable[None]]


class VoiceState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"


@dataclass(frozen=True)
class ScheduledSource:
    """One output audio frame placed on the playback timeline."""
    source_id: int
    start_at: float
    duration: float

    @property
    def end_at(self) -> float:
        return self.start_at + self.duration


class PlaybackScheduler:
    """
    Gapless output scheduling against a monotonically advancing cursor.

    State is the set of scheduled sources and the next start time, mutated only
    by schedule(), release() and interrupt(). Not thread-safe; every call must
    come from the event loop thread.
    """

    def __init__(self, clock: Callable[[], float]):
        self.clock = clock
        self.next_start_time = 0.0
        self.sources: dict[int, ScheduledSource] = {}
        self._next_id = 0

    def schedule(self, duration: float) -> ScheduledSource:
        """Place a frame at max(cursor, now) and advance the cursor past it."""
        start_at = max(self.next_start_time, self.clock())
        self._next_id += 1
        source = ScheduledSource(source_id=self._next_id, start_at=start_at, duration=duration)
        self.sources[source.source_id] = source
        self.next_start_time = start_at + duration
        return source

    def release(self, source_id: int) -> None:
        """Playback of a source ended."""
        self.sources.pop(source_id, None)

    def interrupt(self) -> list[ScheduledSource]:
        """Drop every scheduled source and reset the cursor. Returns the sources to stop."""
        stopped = list(self.sources.values())
        self.sources.clear()
        self.next_start_time = 0.0
        return stopped


class VoiceSession:
    """
    One bidirectional low-latency session with the native provider.

    State machine: idle -> connecting -> active -> idle. Any error tears the
    session down to idle. Only one session may be active at a time; callers
    must stop() before starting again.
    """

    def __init__(
        self,
        api_key: str,
        on_event: EventSink,
        client: Optional[genai.Client] = None,
        system_instruction: str = SYSTEM_INSTRUCTION,
        clock: Optional[Callable[[], float]] = None
    ):
        if not api_key and client is None:
            raise VoiceSessionError("Google API Key is not set.")

        self.client = client or genai.Client(api_key=api_key)
        self.on_event = on_event
        self.system_instruction = system_instruction
        self.state = VoiceState.IDLE
        self.scheduler = PlaybackScheduler(clock or self._session_clock)
        self.current_user_message_id: Optional[str] = None
        self.current_bot_message_id: Optional[str] = None

        self._started_at = 0.0
        self._exit_stack: Optional[contextlib.AsyncExitStack] = None
        self._live = None
        self._receive_task: Optional[asyncio.Task] = None
        self._timers: dict[int, asyncio.TimerHandle] = {}

    def _session_clock(self) -> float:
        """Seconds since the session started, the timeline shared with the client."""
        return time.monotonic() - self._started_at

    def build_live_config(self) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            system_instruction=self.system_instruction,
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=Config.LIVE_VOICE)
                )
            ),
        )

    async def _set_state(self, state: VoiceState) -> None:
        self.state = state
        app_logger.info(f"Voice session {state.value}")
        await self.on_event({"type": "state", "state": state.value})

    async def start(self) -> None:
        """Open the live connection and begin receiving server messages."""
        if self.state != VoiceState.IDLE:
            raise VoiceSessionError("A voice session is already running. Stop it before starting a new one.")

        self._started_at = time.monotonic()
        self.scheduler.next_start_time = 0.0
        await self._set_state(VoiceState.CONNECTING)

        self._exit_stack = contextlib.AsyncExitStack()
        try:
            self._live = await self._exit_stack.enter_async_context(
                self.client.aio.live.connect(model=Config.LIVE_MODEL, config=self.build_live_config())
            )
        except Exception as e:
            app_logger.error(f"Live session failed: {e}")
            await self.stop()
            raise VoiceSessionError(f"Could not start voice chat: {e}") from e

        await self._set_state(VoiceState.ACTIVE)
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def send_audio(self, pcm: bytes) -> None:
        """
        Forward one captured 16 kHz PCM16 frame as soon as it arrives.

        Raises:
            VoiceSessionError: when the live connection rejects the frame; the
                session has already reported the error and torn down
        """
        if self.state != VoiceState.ACTIVE or self._live is None:
            return
        try:
            await self._live.send_realtime_input(
                audio=types.Blob(data=pcm, mime_type=f"audio/pcm;rate={Config.INPUT_SAMPLE_RATE}")
            )
        except Exception as e:
            app_logger.error(f"Voice send error: {e}")
            await self.on_event({"type": "error", "message": "Voice chat error."})
            await self.stop()
            raise VoiceSessionError(f"Voice chat error: {e}") from e

    async def _receive_loop(self) -> None:
        try:
            while self.state == VoiceState.ACTIVE:
                async for message in self._live.receive():
                    await self.handle_server_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            app_logger.error(f"Voice error: {e}")
            await self.on_event({"type": "error", "message": "Voice chat error."})
            await self.stop(from_receiver=True)

    async def handle_server_message(self, message: Any) -> None:
        """Dispatch one inbound live message: transcripts, audio, then control signals."""
        content = getattr(message, "server_content", None)
        if content is None:
            return

        input_transcription = getattr(content, "input_transcription", None)
        if input_transcription is not None and input_transcription.text:
            await self._on_input_transcript(input_transcription.text)

        output_transcription = getattr(content, "output_transcription", None)
        if output_transcription is not None and output_transcription.text:
            await self._on_output_transcript(output_transcription.text)

        model_turn = getattr(content, "model_turn", None)
        parts = getattr(model_turn, "parts", None) or []
        inline_data = getattr(parts[0], "inline_data", None) if parts else None
        if inline_data is not None and inline_data.data:
            await self.play_audio(inline_data.data)

        if getattr(content, "turn_complete", False):
            self.current_user_message_id = None
            self.current_bot_message_id = None
            await self.on_event({"type": "turn_complete"})

        if getattr(content, "interrupted", False):
            await self.interrupt()

    async def _on_input_transcript(self, text: str) -> None:
        new_message = self.current_user_message_id is None
        if new_message:
            self.current_user_message_id = f"user-{int(time.time() * 1000)}"
        await self.on_event({
            "type": "input_transcript",
            "message_id": self.current_user_message_id,
            "text": text,
            "new_message": new_message,
        })

    async def _on_output_transcript(self, text: str) -> None:
        new_message = self.current_bot_message_id is None
        if new_message:
            self.current_user_message_id = None
            self.current_bot_message_id = f"bot-{int(time.time() * 1000)}"
        await self.on_event({
            "type": "output_transcript",
            "message_id": self.current_bot_message_id,
            "text": text,
            "new_message": new_message,
        })

    async def play_audio(self, data: str | bytes) -> ScheduledSource:
        """Decode an output frame and schedule it right after the previous one."""
        pcm = decode_audio_frame(data)
        source = self.scheduler.schedule(pcm16_duration(pcm, Config.OUTPUT_SAMPLE_RATE))

        delay = max(0.0, source.end_at - self.scheduler.clock())
        loop = asyncio.get_running_loop()
        self._timers[source.source_id] = loop.call_later(delay, self._on_source_ended, source.source_id)

        await self.on_event({
            "type": "audio",
            "source_id": source.source_id,
            "start_at": source.start_at,
            "duration": source.duration,
            "sample_rate": Config.OUTPUT_SAMPLE_RATE,
            "data": encode_audio_frame(pcm),
        })
        return source

    def _on_source_ended(self, source_id: int) -> None:
        self._timers.pop(source_id, None)
        self.scheduler.release(source_id)

    async def interrupt(self) -> None:
        """Stop and discard everything scheduled; the next frame starts from now."""
        stopped = self._clear_playback()
        for source in stopped:
            await self.on_event({"type": "stop_audio", "source_id": source.source_id})
        await self.on_event({"type": "interrupted"})

    def _clear_playback(self) -> list[ScheduledSource]:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        return self.scheduler.interrupt()

    async def stop(self, from_receiver: bool = False) -> None:
        """Tear the session down. Safe to call repeatedly."""
        if self.state == VoiceState.IDLE and self._exit_stack is None:
            return

        if self._receive_task is not None and not from_receiver:
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
        self._receive_task = None

        if self._exit_stack is not None:
            exit_stack, self._exit_stack = self._exit_stack, None
            try:
                await exit_stack.aclose()
            except Exception as e:
                app_logger.warning(f"Error closing live session: {e}")
        self._live = None

        for source in self._clear_playback():
            await self.on_event({"type": "stop_audio", "source_id": source.source_id})
        self.current_user_message_id = None
        self.current_bot_message_id = None
        await self._set_state(VoiceState.IDLE)
