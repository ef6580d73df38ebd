from unittest.mock import AsyncMock

import httpx

from models.api_models import CrossReferenceResult, JournalInsights
from services.study_tools import StudyToolsService
from utils.errors import ProviderMisconfigured, ProviderRequestFailed
from tests.fixtures.mock_clients import FakeLiveSession, fake_generate_client, fake_live_client, server_message
from tests.fixtures.responses import CROSS_REFERENCE_RESPONSE, JOURNAL_INSIGHTS_RESPONSE
from tests.helpers import receive_until

GOOGLE = {"provider": "google", "google_api_key": "test-google-key"}


def test_cross_references_endpoint(configured_app, mocker):
    mocker.patch.object(
        StudyToolsService, "get_cross_references",
        AsyncMock(return_value=CrossReferenceResult(**CROSS_REFERENCE_RESPONSE))
    )
    response = configured_app.post("/cross-references", json={"scripture": "John 3:16", "settings": GOOGLE})

    assert response.status_code == 200
    assert response.json() == CROSS_REFERENCE_RESPONSE


def test_cross_references_without_key_is_bad_request(configured_app):
    response = configured_app.post("/cross-references", json={"scripture": "John 3:16"})
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "provider_misconfigured"


def test_cross_references_network_failure_is_bad_gateway(configured_app, mocker):
    mocker.patch(
        "services.study_tools.genai.Client",
        return_value=fake_generate_client(error=httpx.ConnectError("offline"))
    )
    response = configured_app.post("/cross-references", json={"scripture": "John 3:16", "settings": GOOGLE})

    assert response.status_code == 502
    assert response.json()["error"]["type"] == "transport_error"


def test_journal_insights_endpoint(configured_app, mocker):
    mocker.patch.object(
        StudyToolsService, "get_journal_insights",
        AsyncMock(return_value=JournalInsights(**JOURNAL_INSIGHTS_RESPONSE))
    )
    response = configured_app.post("/journal/insights", json={"text": "I felt peace today.", "settings": GOOGLE})
    assert response.json()["suggestedScripture"] == "Mosiah 2:17"


def test_suggestion_endpoint(configured_app, mocker):
    mocker.patch.object(StudyToolsService, "get_proactive_suggestion", AsyncMock(return_value="Read Alma 32?"))
    response = configured_app.post("/suggestion", json={"history": [], "settings": GOOGLE})
    assert response.json() == {"suggestion": "Read Alma 32?"}


def test_suggestion_endpoint_without_key_returns_null(configured_app):
    history = [{"id": "1", "sender": "user", "text": "Hi"}]
    response = configured_app.post("/suggestion", json={"history": history})
    assert response.json() == {"suggestion": None}


def test_speech_endpoint(configured_app, mocker):
    mocker.patch.object(StudyToolsService, "generate_speech", AsyncMock(return_value="AAEC"))
    response = configured_app.post("/speech", json={"text": "Hello", "settings": GOOGLE})
    assert response.json() == {"audio": "AAEC"}


def test_speech_endpoint_provider_failure(configured_app, mocker):
    mocker.patch.object(
        StudyToolsService, "generate_speech",
        AsyncMock(side_effect=ProviderRequestFailed("google", 502, "No audio data received from API."))
    )
    response = configured_app.post("/speech", json={"text": "Hello", "settings": GOOGLE})
    assert response.status_code == 502


def test_speech_endpoint_rejects_empty_text(configured_app):
    response = configured_app.post("/speech", json={"text": ""})
    assert response.status_code == 422


def test_voice_websocket_without_key_reports_error(configured_app):
    with configured_app.websocket_connect("/voice") as websocket:
        event = websocket.receive_json()
    assert event["type"] == "error"
    assert "API Key" in event["message"]


def test_voice_websocket_bridges_audio_and_events(configured_app, mocker):
    live = FakeLiveSession(initial_messages=[server_message(output_text="Peace be with you.")])
    mocker.patch("services.voice_session.genai.Client", return_value=fake_live_client(live))

    with configured_app.websocket_connect("/voice?api_key=test-google-key") as websocket:
        received = receive_until(websocket, "output_transcript")
        assert {"type": "state", "state": "active"} in received
        assert received[-1]["text"] == "Peace be with you."

        websocket.send_bytes(b"\x00\x00" * 4096)
        websocket.send_json({"type": "stop"})
        received = receive_until(websocket, "state")
        assert received[-1]["state"] == "idle"

    assert len(live.sent_audio) == 1
    assert live.sent_audio[0].data == b"\x00\x00" * 4096
    assert live.closed


def test_voice_websocket_reports_dropped_connection(configured_app, mocker):
    live = FakeLiveSession(send_error=ConnectionError("connection dropped"))
    mocker.patch("services.voice_session.genai.Client", return_value=fake_live_client(live))

    with configured_app.websocket_connect("/voice?api_key=test-google-key") as websocket:
        receive_until(websocket, "state")
        receive_until(websocket, "state")
        websocket.send_bytes(b"\x00\x00" * 16)

        assert receive_until(websocket, "error")[-1] == {"type": "error", "message": "Voice chat error."}
        assert receive_until(websocket, "state")[-1]["state"] == "idle"

    assert live.closed


def test_misconfigured_error_maps_to_400():
    from routes.study_tools import error_response

    assert error_response(ProviderMisconfigured("missing")).status_code == 400
    assert error_response(ProviderRequestFailed("google", 500)).status_code == 502
