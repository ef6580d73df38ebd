"""
Error taxonomy for provider, parsing and voice failures.
"""


class ScholarError(Exception):
    """Base class for all application errors."""

    error_type = "scholar_error"

    def to_dict(self) -> dict:
        return {"type": self.error_type, "message": str(self)}


class ProviderMisconfigured(ScholarError):
    """Required credential, base URL or model is missing for the selected provider."""

    error_type = "provider_misconfigured"


class ProviderRequestFailed(ScholarError):
    """The provider answered with a non-success HTTP status."""

    error_type = "provider_request_failed"

    def __init__(self, provider: str, status: int, body: str = ""):
        self.provider = provider
        self.status = status
        self.body = body
        super().__init__(f"Failed to fetch from {provider}: {status} {body}".strip())

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status"] = self.status
        data["body"] = self.body
        return data


class TransportError(ScholarError):
    """Low-level network failure while talking to a provider."""

    error_type = "transport_error"

    def __init__(self, provider: str, message: str, base_url: str | None = None):
        self.provider = provider
        self.base_url = base_url
        if base_url:
            message = (
                f"{message} (provider: {provider}, base URL: {base_url}). "
                "Check that the server is running and reachable, and that it allows "
                "cross-origin requests (CORS) if it is called from a browser."
            )
        else:
            message = f"{message} (provider: {provider})"
        super().__init__(message)


class StructuredParseFailure(ScholarError):
    """Accumulated text is not a valid structured payload for the active mode."""

    error_type = "structured_parse_failure"


class ImageResolutionFailure(ScholarError):
    """An image command tag could not be resolved to a URL."""

    error_type = "image_resolution_failure"


class VoiceSessionError(ScholarError):
    """A voice session failed and was torn down."""

    error_type = "voice_session_error"
