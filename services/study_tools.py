"""
One-shot native helpers used beside the chat: scripture cross-references,
journal insights, proactive follow-up suggestions and text-to-speech.
"""
import json
from typing import Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from config import Config
from models.api_models import CrossReferenceResult, JournalInsights, Message, ProviderSettings
from services.response_parser import ResponseParser
from utils.audio import encode_audio_frame
from utils.constants import (
    ChatMode,
    CROSS_REFERENCE_SCHEMA,
    CROSS_REFERENCE_SYSTEM_INSTRUCTION,
    JOURNAL_INSIGHTS_SCHEMA,
    JOURNAL_SUMMARY_SYSTEM_INSTRUCTION,
    NO_SUGGESTION,
    PROACTIVE_SUGGESTION_SYSTEM_INSTRUCTION,
)
from utils.errors import ProviderMisconfigured, ProviderRequestFailed, StructuredParseFailure, TransportError
from utils.logger import app_logger


class StudyToolsService:
    """Service for single-request native generations."""

    @staticmethod
    def get_client(settings: ProviderSettings, client: Optional[genai.Client] = None) -> genai.Client:
        if client is not None:
            return client
        if not settings.google_api_key:
            raise ProviderMisconfigured("Google API Key is missing.")
        return genai.Client(api_key=settings.google_api_key)

    @staticmethod
    async def _generate(client: genai.Client, model: str, contents, config: types.GenerateContentConfig):
        try:
            return await client.aio.models.generate_content(model=model, contents=contents, config=config)
        except genai_errors.APIError as e:
            app_logger.error(f"Google API error {e.code}: {e.message}")
            raise ProviderRequestFailed("google", e.code, e.message or "") from e
        except httpx.HTTPError as e:
            app_logger.error(f"Google transport error: {e}")
            raise TransportError("google", f"Network error: {e}") from e

    @staticmethod
    def _parse_json(text: str, payload_type, label: str):
        try:
            return payload_type.model_validate(json.loads(ResponseParser.strip_code_fence(text or "")))
        except (json.JSONDecodeError, ValidationError) as e:
            raise StructuredParseFailure(f"Invalid {label} payload: {e}") from e

    @staticmethod
    async def get_cross_references(
        settings: ProviderSettings,
        scripture: str,
        client: Optional[genai.Client] = None
    ) -> CrossReferenceResult:
        """Find and explain scriptures related to a verse."""
        client = StudyToolsService.get_client(settings, client)
        app_logger.info(f"Fetching cross-references for {scripture}")

        response = await StudyToolsService._generate(
            client,
            Config.PRO_MODEL,
            f"Find cross-references for {scripture}",
            types.GenerateContentConfig(
                system_instruction=CROSS_REFERENCE_SYSTEM_INSTRUCTION,
                response_mime_type="application/json",
                response_schema=CROSS_REFERENCE_SCHEMA,
            )
        )
        return StudyToolsService._parse_json(response.text, CrossReferenceResult, "cross-reference")

    @staticmethod
    async def get_journal_insights(
        settings: ProviderSettings,
        text: str,
        client: Optional[genai.Client] = None
    ) -> JournalInsights:
        """Summarize a transcribed journal entry into principles and a suggested scripture."""
        client = StudyToolsService.get_client(settings, client)
        app_logger.info(f"Generating journal insights for {len(text)} characters")

        response = await StudyToolsService._generate(
            client,
            Config.PRO_MODEL,
            text,
            types.GenerateContentConfig(
                system_instruction=JOURNAL_SUMMARY_SYSTEM_INSTRUCTION,
                response_mime_type="application/json",
                response_schema=JOURNAL_INSIGHTS_SCHEMA,
            )
        )
        return StudyToolsService._parse_json(response.text, JournalInsights, "journal insights")

    @staticmethod
    def suggestion_history(history: list[Message]) -> list[types.Content]:
        """
        The last few non-suggestion messages, ending on a user turn.
        Empty when there is nothing worth suggesting on.
        """
        relevant = [msg for msg in history if not msg.is_suggestion]
        contents = [
            types.Content(
                role="user" if msg.sender == "user" else "model",
                parts=[types.Part(text=msg.text)]
            )
            for msg in relevant[-Config.SUGGESTION_HISTORY_MESSAGES:]
        ]

        if contents and contents[-1].role == "model":
            contents.pop()
        if not contents or contents[-1].role != "user":
            return []
        return contents

    @staticmethod
    async def get_proactive_suggestion(
        settings: ProviderSettings,
        history: list[Message],
        mode: ChatMode = ChatMode.CHAT,
        client: Optional[genai.Client] = None
    ) -> Optional[str]:
        """
        Ask for one short follow-up suggestion. Never fails the caller:
        any problem, or the model declining, yields None.
        """
        if mode != ChatMode.CHAT or not (client or settings.google_api_key):
            return None

        contents = StudyToolsService.suggestion_history(history)
        if not contents:
            return None

        try:
            client = StudyToolsService.get_client(settings, client)
            response = await client.aio.models.generate_content(
                model=Config.SUGGESTION_MODEL,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=PROACTIVE_SUGGESTION_SYSTEM_INSTRUCTION,
                    temperature=Config.SUGGESTION_TEMPERATURE,
                )
            )
        except Exception as e:
            app_logger.warning(f"Error fetching proactive suggestion: {e}")
            return None

        suggestion = (response.text or "").strip()
        if not suggestion or NO_SUGGESTION in suggestion:
            return None
        return suggestion

    @staticmethod
    async def generate_speech(
        settings: ProviderSettings,
        text: str,
        client: Optional[genai.Client] = None
    ) -> str:
        """
        Synthesize speech for a bot message.

        Returns:
            Base64 PCM16 audio at the output sample rate

        Raises:
            ProviderRequestFailed: when the response carries no audio
        """
        client = StudyToolsService.get_client(settings, client)
        response = await StudyToolsService._generate(
            client,
            Config.TTS_MODEL,
            [types.Content(parts=[types.Part(text=text)])],
            types.GenerateContentConfig(
                response_modalities=[types.Modality.AUDIO],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=Config.TTS_VOICE)
                    )
                ),
            )
        )

        audio = None
        candidates = response.candidates or []
        if candidates and candidates[0].content and candidates[0].content.parts:
            inline_data = candidates[0].content.parts[0].inline_data
            audio = inline_data.data if inline_data else None

        if not audio:
            raise ProviderRequestFailed("google", 502, "No audio data received from API.")

        if isinstance(audio, str):
            return audio
        return encode_audio_frame(audio)
