import pytest
from unittest.mock import AsyncMock


@pytest.fixture
def anyio_backend():
    """The services are built on asyncio; run anyio-marked tests on it."""
    return "asyncio"


@pytest.fixture
def google_settings():
    """Native provider settings with a test key."""
    from models.api_models import ProviderSettings
    return ProviderSettings(provider="google", google_api_key="test-google-key", model="gemini-flash-lite-latest")


@pytest.fixture
def lmstudio_settings():
    """Local LM Studio settings."""
    from models.api_models import ProviderSettings
    return ProviderSettings(
        provider="lmstudio",
        lmstudio_base_url="http://localhost:1234/v1",
        mcp_base_url="http://localhost:8080/v1",
        model="qwen3-8b"
    )


@pytest.fixture
def openrouter_settings():
    from models.api_models import ProviderSettings
    return ProviderSettings(
        provider="openrouter",
        openrouter_api_key="test-or-key",
        openrouter_base_url="https://openrouter.ai/api/v1",
        model="meta-llama/llama-3.1-8b-instruct:free"
    )


@pytest.fixture
def conversation():
    """A short conversation that opens with the welcome message and carries a suggestion."""
    from models.api_models import Message
    return [
        Message(id="initial-message", sender="bot", text="Welcome!"),
        Message(id="1", sender="user", text="Who was Nephi?"),
        Message(id="1-bot", sender="bot", text="Nephi was a prophet."),
        Message(id="s1", sender="bot", text="Would you like to study 1 Nephi 3?", is_suggestion=True),
        Message(id="2", sender="user", text="Tell me about his brothers."),
        Message(id="2-bot", sender="bot", text=""),
    ]


@pytest.fixture
def fake_session_factory():
    from tests.fixtures.mock_clients import FakeSessionFactory
    return FakeSessionFactory()


@pytest.fixture
def image_resolver():
    """Image resolver that always finds the file."""
    return AsyncMock(return_value="https://upload.wikimedia.org/salt_lake_temple.jpg")


@pytest.fixture
def configured_app(monkeypatch):
    """App with every router and no real provider credentials."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError
    from fastapi.testclient import TestClient
    from config import Config
    from main import validation_exception_handler
    from routes import chat, chat_stream, models_route, study_tools, voice

    monkeypatch.setattr(Config, "GOOGLE_API_KEY", "")
    monkeypatch.setattr(Config, "OPENROUTER_API_KEY", "")

    app = FastAPI()
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(chat.router)
    app.include_router(chat_stream.router)
    app.include_router(models_route.router)
    app.include_router(study_tools.router)
    app.include_router(voice.router)

    with TestClient(app) as client:
        yield client
