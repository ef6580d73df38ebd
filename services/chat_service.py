"""
Chat service containing the provider-agnostic chat session adapter.
Handles system instruction and model routing, history normalization and session creation.
"""
from typing import AsyncIterator, Optional, Protocol

from google import genai
from google.genai import types

from config import Config
from models.api_models import Message, ProviderSettings
from models.chat_models import StreamDelta
from services.providers import stream_native, stream_openai_compatible
from utils.constants import (
    ApiProvider,
    ChatMode,
    ConnectionTarget,
    INITIAL_MESSAGE_ID,
    MODE_RESPONSE_SCHEMAS,
    MODE_SYSTEM_INSTRUCTIONS,
    PRO_MODEL_MODES,
    READING_CONTEXT_TEMPLATE,
    STRUCTURED_MODES,
    THINKING_INSTRUCTION_SUFFIX,
)
from utils.errors import ProviderMisconfigured
from utils.logger import app_logger


class ChatSession(Protocol):
    """Common shape of every provider session."""
    provider: ApiProvider
    model: str

    def send_message_stream(self, text: str) -> AsyncIterator[StreamDelta]: ...


class GoogleChatSession:
    """Native provider session. The server keeps history inside the chat object."""

    def __init__(self, client: genai.Client, model: str, mode: ChatMode, history: list[types.Content]):
        self.provider = ApiProvider.GOOGLE
        self.client = client
        self.model = model
        self.mode = mode
        self.config = ChatService.build_native_config(mode)
        self.chat = client.aio.chats.create(model=model, config=self.config, history=history)

    async def send_message_stream(self, text: str) -> AsyncIterator[StreamDelta]:
        app_logger.info(f"Sending turn to google ({self.model}, mode={self.mode.value})")
        async for delta in stream_native(self.chat, text):
            yield delta


class OpenAICompatibleChatSession:
    """Session for LM Studio, OpenRouter and the MCP gateway. History is resent on every turn."""

    def __init__(
        self,
        provider: ApiProvider,
        base_url: str,
        api_key: str,
        model: str,
        system_instruction: str,
        history: list[dict]
    ):
        self.provider = provider
        self.base_url = base_url
        self.api_key = api_key
        self.model = model
        self.system_instruction = system_instruction
        self.history = history

    def build_payload(self) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "system", "content": self.system_instruction}, *self.history],
        }

    async def send_message_stream(self, text: str) -> AsyncIterator[StreamDelta]:
        self.history.append({"role": "user", "content": text})
        payload = self.build_payload()
        app_logger.info(
            f"Sending turn to {self.provider.value} at {self.base_url} "
            f"({self.model}, {len(self.history)} messages)"
        )

        full_response = ""
        async for delta in stream_openai_compatible(self.provider.value, self.base_url, self.api_key, payload):
            full_response += delta.text
            yield delta

        self.history.append({"role": "assistant", "content": full_response})


class ChatService:
    """Service for building provider sessions for a conversation mode."""

    @staticmethod
    def get_system_instruction(mode: ChatMode, provider: ApiProvider = ApiProvider.GOOGLE) -> str:
        """Resolve the system instruction for a mode."""
        instruction = MODE_SYSTEM_INSTRUCTIONS[mode]
        if mode == ChatMode.THINKING and provider != ApiProvider.GOOGLE:
            instruction += THINKING_INSTRUCTION_SUFFIX
        return instruction

    @staticmethod
    def resolve_model(settings: ProviderSettings, mode: ChatMode) -> str:
        """
        Resolve the effective model id.

        Every mode except plain chat forces the higher-capability native model.
        OpenAI-compatible backends serve whatever model the user picked.
        """
        if settings.provider == ApiProvider.GOOGLE and mode in PRO_MODEL_MODES:
            return Config.PRO_MODEL
        return settings.model

    @staticmethod
    def is_structured(mode: ChatMode) -> bool:
        return mode in STRUCTURED_MODES

    @staticmethod
    def build_native_config(mode: ChatMode) -> types.GenerateContentConfig:
        """Build the native generation config: schema for structured modes, search tools otherwise."""
        config = {
            "system_instruction": ChatService.get_system_instruction(mode),
            "temperature": Config.TEMPERATURE,
        }

        if ChatService.is_structured(mode):
            config["response_mime_type"] = "application/json"
            config["response_schema"] = MODE_RESPONSE_SCHEMAS[mode]
        else:
            config["tools"] = [
                types.Tool(google_search=types.GoogleSearch()),
                types.Tool(google_maps=types.GoogleMaps()),
            ]

        if mode == ChatMode.THINKING:
            config["thinking_config"] = types.ThinkingConfig(
                thinking_budget=Config.THINKING_BUDGET,
                include_thoughts=True
            )

        return types.GenerateContentConfig(**config)

    @staticmethod
    def sanitize_history(history: list[Message]) -> list[Message]:
        """Drop suggestions, the welcome message and empty turns."""
        return [
            msg for msg in history
            if not msg.is_suggestion and msg.id != INITIAL_MESSAGE_ID and msg.text
        ]

    @staticmethod
    def to_native_history(history: list[Message]) -> list[types.Content]:
        """Map history to native contents. The native API requires the first turn to be the user's."""
        sanitized = ChatService.sanitize_history(history)

        first_user = next((i for i, msg in enumerate(sanitized) if msg.sender == "user"), len(sanitized))
        if first_user:
            app_logger.debug(f"Dropping {first_user} leading bot message(s) from native history")

        return [
            types.Content(
                role="user" if msg.sender == "user" else "model",
                parts=[types.Part(text=msg.text)]
            )
            for msg in sanitized[first_user:]
        ]

    @staticmethod
    def to_openai_history(history: list[Message]) -> list[dict]:
        """Map history to OpenAI chat messages."""
        return [
            {"role": "user" if msg.sender == "user" else "assistant", "content": msg.text}
            for msg in ChatService.sanitize_history(history)
        ]

    @staticmethod
    def base_url_field(provider: ApiProvider, connection_target: ConnectionTarget) -> str:
        """Name of the ProviderSettings field holding the base URL actually used."""
        if provider == ApiProvider.LMSTUDIO:
            return "mcp_base_url" if connection_target == ConnectionTarget.MCP else "lmstudio_base_url"
        if provider == ApiProvider.OPENROUTER:
            return "openrouter_base_url"
        if provider == ApiProvider.MCP:
            return "mcp_base_url"
        raise ProviderMisconfigured(f"{provider.value} is not an OpenAI-compatible provider.")

    @staticmethod
    def resolve_endpoint(settings: ProviderSettings) -> tuple[str, str]:
        """
        Resolve (base_url, api_key) for an OpenAI-compatible provider.

        Raises:
            ProviderMisconfigured: when a required value is empty
        """
        provider = settings.provider
        base_url = getattr(settings, ChatService.base_url_field(provider, settings.lmstudio_connection_target))

        if provider == ApiProvider.LMSTUDIO:
            api_key = Config.LMSTUDIO_API_KEY
        elif provider == ApiProvider.OPENROUTER:
            api_key = settings.openrouter_api_key
            if not api_key:
                raise ProviderMisconfigured("OpenRouter API Key is missing.")
        else:
            api_key = settings.mcp_api_key or Config.LMSTUDIO_API_KEY

        if not base_url:
            raise ProviderMisconfigured(f"Base URL for {provider.value} is not set.")

        return base_url, api_key

    @staticmethod
    def validate_settings(settings: ProviderSettings) -> None:
        """Fail fast before any network I/O when the active provider is not usable."""
        if settings.provider == ApiProvider.GOOGLE:
            if not settings.google_api_key:
                raise ProviderMisconfigured("Google API Key is missing.")
            return

        if not settings.model:
            raise ProviderMisconfigured(f"Model for {settings.provider.value} is not selected.")
        ChatService.resolve_endpoint(settings)

    @staticmethod
    def create_chat_session(
        settings: ProviderSettings,
        mode: ChatMode,
        history: list[Message],
        client: Optional[genai.Client] = None
    ) -> ChatSession:
        """
        Build the provider session for a conversation mode.

        Args:
            settings: Provider settings for this request
            mode: Active chat mode
            history: Prior conversation, newest last
            client: Optional native client, created from the settings' key when omitted

        Returns:
            A session exposing send_message_stream(text)
        """
        ChatService.validate_settings(settings)
        model = ChatService.resolve_model(settings, mode)

        if settings.provider == ApiProvider.GOOGLE:
            client = client or genai.Client(api_key=settings.google_api_key)
            return GoogleChatSession(client, model, mode, ChatService.to_native_history(history))

        base_url, api_key = ChatService.resolve_endpoint(settings)
        return OpenAICompatibleChatSession(
            provider=settings.provider,
            base_url=base_url,
            api_key=api_key,
            model=model,
            system_instruction=ChatService.get_system_instruction(mode, settings.provider),
            history=ChatService.to_openai_history(history)
        )

    @staticmethod
    def build_prompt(prompt: str, reading_context: Optional[str] = None) -> str:
        """Prefix the prompt with the passage the user is reading, if any."""
        if reading_context and reading_context.strip():
            return READING_CONTEXT_TEMPLATE.format(context=reading_context.strip(), prompt=prompt)
        return prompt

    @staticmethod
    def prepare_retry(history: list[Message], bot_message_id: str) -> tuple[list[Message], Message]:
        """
        Find the user turn behind a bot message for a manual retry.

        Returns:
            Tuple of (history truncated to just after that user message, the user message)

        Raises:
            ValueError: when the bot message is unknown or no user message precedes it
        """
        index = next((i for i, msg in enumerate(history) if msg.id == bot_message_id), -1)
        if index < 1:
            raise ValueError("Could not find the message to retry.")

        for i in range(index - 1, -1, -1):
            if history[i].sender == "user":
                return history[:i + 1], history[i]

        raise ValueError("Could not find the original prompt to retry.")
