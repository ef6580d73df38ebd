"""
Configuration module for the Scripture Scholar Bridge application.
Handles environment variables and application settings.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Application configuration class."""

    # API Keys
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", os.getenv("API_KEY", ""))
    OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")
    MCP_API_KEY: str = os.getenv("MCP_API_KEY", "")
    LMSTUDIO_API_KEY: str = "lm-studio"

    # Provider defaults
    DEFAULT_PROVIDER: str = os.getenv("DEFAULT_PROVIDER", "google")
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gemini-flash-lite-latest")
    LMSTUDIO_BASE_URL: str = os.getenv("LMSTUDIO_BASE_URL", "http://localhost:1234/v1")
    OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    MCP_BASE_URL: str = os.getenv("MCP_BASE_URL", "http://localhost:8080/v1")
    LMSTUDIO_CONNECTION_TARGET: str = os.getenv("LMSTUDIO_CONNECTION_TARGET", "standard")

    # Native provider models
    PRO_MODEL: str = "gemini-2.5-pro"
    SUGGESTION_MODEL: str = "gemini-2.5-flash"
    TTS_MODEL: str = "gemini-2.5-flash-preview-tts"
    LIVE_MODEL: str = "gemini-2.5-flash-native-audio-preview-09-2025"

    # Generation settings
    TEMPERATURE: float = 0.5
    SUGGESTION_TEMPERATURE: float = 0.7
    THINKING_BUDGET: int = 32768
    TTS_VOICE: str = "Kore"
    LIVE_VOICE: str = "Zephyr"

    # Voice audio contract
    INPUT_SAMPLE_RATE: int = 16000
    OUTPUT_SAMPLE_RATE: int = 24000
    INPUT_BUFFER_SAMPLES: int = 4096

    # Image lookup
    WIKIMEDIA_API_URL: str = "https://commons.wikimedia.org/w/api.php"
    IMAGE_TAG: str = "WIKIMEDIA_SEARCH"

    # Application Settings
    APP_TITLE: str = "Scripture Scholar Bridge"
    SUGGESTION_HISTORY_MESSAGES: int = 4

    # Timeouts (in seconds)
    LLM_CONNECT_TIMEOUT: float = 10.0
    LLM_READ_TIMEOUT: float = 300.0
    LOOKUP_TIMEOUT: float = 15.0

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and log warnings for missing API keys."""
        from utils.logger import app_logger

        if not cls.GOOGLE_API_KEY:
            app_logger.warning("GOOGLE_API_KEY not found in .env file")
            app_logger.warning("The google provider, voice chat and study tools need it unless clients send their own key")

        if cls.DEFAULT_PROVIDER == "openrouter" and not cls.OPENROUTER_API_KEY:
            app_logger.warning("DEFAULT_PROVIDER is openrouter but OPENROUTER_API_KEY is not set")


Config.validate()
