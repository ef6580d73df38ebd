"""
HTTP client utilities with connection pooling.
Provides reusable httpx clients for LLM streaming and lookups.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages shared httpx clients with connection pooling."""

    _llm_client: httpx.AsyncClient | None = None
    _lookup_client: httpx.AsyncClient | None = None

    @classmethod
    def get_llm_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for OpenAI-compatible chat streams.

        Features:
        - Connection pooling (reuses TCP connections)
        - Long read timeout so slow local models can keep streaming

        Returns:
            Configured httpx.AsyncClient for LLM requests
        """
        if cls._llm_client is None:
            limits = httpx.Limits(
                max_connections=20,
                max_keepalive_connections=5,
                keepalive_expiry=30.0
            )

            cls._llm_client = httpx.AsyncClient(
                timeout=httpx.Timeout(Config.LLM_READ_TIMEOUT, connect=Config.LLM_CONNECT_TIMEOUT),
                limits=limits,
                http2=True
            )

        return cls._llm_client

    @classmethod
    def get_lookup_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for short lookups
        (Wikimedia image resolution, model listing).

        Returns:
            Configured httpx.AsyncClient for lookups
        """
        if cls._lookup_client is None:
            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=60.0
            )

            cls._lookup_client = httpx.AsyncClient(
                timeout=Config.LOOKUP_TIMEOUT,
                follow_redirects=True,
                limits=limits,
                http2=True
            )

        return cls._lookup_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close all managed clients and clean up connections.
        """
        if cls._llm_client is not None:
            await cls._llm_client.aclose()
            cls._llm_client = None

        if cls._lookup_client is not None:
            await cls._lookup_client.aclose()
            cls._lookup_client = None
