"""
Provider transports and stream normalization.
Turns native Gemini chunks and OpenAI-compatible SSE lines into StreamDelta objects.
"""
import json
from typing import Any, AsyncIterator, Optional

import httpx
from google.genai import errors as genai_errors

from models.api_models import Citation, ModelInfo
from models.chat_models import StreamDelta
from utils.constants import THINKING_OPEN, THINKING_CLOSE
from utils.errors import ProviderRequestFailed, TransportError
from utils.http_client import HTTPClientManager
from utils.logger import app_logger

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


def citations_from_grounding(grounding_metadata: Any) -> Optional[list[Citation]]:
    """Convert native grounding metadata into citations. None when the chunk carries none."""
    if grounding_metadata is None:
        return None

    chunks = getattr(grounding_metadata, "grounding_chunks", None)
    if not chunks:
        return None

    citations = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        maps = getattr(chunk, "maps", None)
        if web is not None:
            citations.append(Citation(kind="web", uri=getattr(web, "uri", None), title=getattr(web, "title", None)))
        elif maps is not None:
            citations.append(Citation(kind="maps", uri=getattr(maps, "uri", None), title=getattr(maps, "title", None)))

    return citations or None


class NativeChunkNormalizer:
    """Maps native response chunks to StreamDelta.

    Thought parts are wrapped in the hidden-reasoning delimiters so that the
    response parser treats native reasoning like inline <think> output.
    """

    def __init__(self):
        self.in_thought = False

    def normalize(self, chunk: Any) -> StreamDelta:
        candidates = getattr(chunk, "candidates", None) or []
        if not candidates:
            return StreamDelta(text=getattr(chunk, "text", None) or "")

        candidate = candidates[0]
        pieces = []
        content = getattr(candidate, "content", None)
        for part in (getattr(content, "parts", None) or []):
            text = getattr(part, "text", None)
            if not text:
                continue
            is_thought = bool(getattr(part, "thought", False))
            if is_thought and not self.in_thought:
                pieces.append(THINKING_OPEN)
                self.in_thought = True
            elif not is_thought and self.in_thought:
                pieces.append(THINKING_CLOSE)
                self.in_thought = False
            pieces.append(text)

        citations = citations_from_grounding(getattr(candidate, "grounding_metadata", None))
        return StreamDelta(text="".join(pieces), citations=citations)

    def finish(self) -> Optional[StreamDelta]:
        """Close a thought block the stream ended inside of."""
        if self.in_thought:
            self.in_thought = False
            return StreamDelta(text=THINKING_CLOSE)
        return None


async def stream_native(chat: Any, text: str) -> AsyncIterator[StreamDelta]:
    """
    Send one user turn on a native chat session and yield normalized deltas.

    Args:
        chat: google.genai async chat session (keeps server-side history)
        text: User message

    Yields:
        StreamDelta for every chunk carrying text or citations
    """
    normalizer = NativeChunkNormalizer()
    try:
        stream = await chat.send_message_stream(text)
        async for chunk in stream:
            delta = normalizer.normalize(chunk)
            if delta.text or delta.citations:
                yield delta
    except genai_errors.APIError as e:
        app_logger.error(f"Google API error {e.code}: {e.message}")
        raise ProviderRequestFailed("google", e.code, e.message or "") from e
    except httpx.HTTPError as e:
        app_logger.error(f"Google transport error: {e}")
        raise TransportError("google", f"Network error: {e}") from e

    tail = normalizer.finish()
    if tail is not None:
        yield tail


def parse_sse_line(line: str, provider: str = "openai-compatible") -> Optional[str]:
    """
    Extract the content delta from one SSE line of an OpenAI-compatible stream.

    Returns:
        Content text, "" for lines without content, or None for the [DONE] sentinel

    Raises:
        ProviderRequestFailed: when the server reports an error inside the stream
    """
    line = line.strip()
    if not line.startswith(SSE_DATA_PREFIX):
        return ""

    payload = line[len(SSE_DATA_PREFIX):].strip()
    if payload == SSE_DONE:
        return None

    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError:
        app_logger.warning(f"Skipping malformed stream chunk: {payload[:100]}")
        return ""

    if not isinstance(chunk, dict):
        app_logger.warning(f"Skipping non-object stream chunk: {payload[:100]}")
        return ""

    # OpenRouter reports failures after the 200 headers as an error object
    error = chunk.get("error")
    if error:
        details = error if isinstance(error, dict) else {"message": str(error)}
        status = details.get("code")
        raise ProviderRequestFailed(
            provider,
            status if isinstance(status, int) else 502,
            str(details.get("message") or "")
        )

    choices = chunk.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


async def stream_openai_compatible(
    provider: str,
    base_url: str,
    api_key: str,
    payload: dict,
    client: httpx.AsyncClient | None = None
) -> AsyncIterator[StreamDelta]:
    """
    POST a streaming chat completion and yield normalized deltas.

    Args:
        provider: Provider name for error context
        base_url: Server base URL (without /chat/completions)
        api_key: Bearer token
        payload: Request body; "stream" is forced on
        client: Optional httpx client, defaults to the shared LLM client

    Yields:
        StreamDelta for every non-empty content delta
    """
    client = client or HTTPClientManager.get_llm_client()
    url = f"{base_url.rstrip('/')}/chat/completions"
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    body = {**payload, "stream": True}

    try:
        async with client.stream("POST", url, json=body, headers=headers) as response:
            if response.status_code >= 400:
                error_body = (await response.aread()).decode("utf-8", errors="replace")
                app_logger.error(f"{provider} API error {response.status_code}: {error_body[:500]}")
                raise ProviderRequestFailed(provider, response.status_code, error_body)

            async for line in response.aiter_lines():
                content = parse_sse_line(line, provider)
                if content is None:
                    return
                if content:
                    yield StreamDelta(text=content)
    except httpx.HTTPError as e:
        app_logger.error(f"{provider} transport error for {base_url}: {e}")
        raise TransportError(provider, f"Failed to fetch: {e}", base_url=base_url) from e


async def list_models(
    provider: str,
    base_url: str,
    api_key: str,
    client: httpx.AsyncClient | None = None
) -> list[ModelInfo]:
    """List models served by an OpenAI-compatible backend."""
    client = client or HTTPClientManager.get_lookup_client()
    url = f"{base_url.rstrip('/')}/models"

    try:
        response = await client.get(url, headers={"Authorization": f"Bearer {api_key}"})
    except httpx.HTTPError as e:
        raise TransportError(provider, f"Failed to fetch models: {e}", base_url=base_url) from e

    if response.status_code >= 400:
        raise ProviderRequestFailed(provider, response.status_code, response.text)

    models = []
    for entry in response.json().get("data", []):
        pricing = entry.get("pricing")
        is_free = False
        if pricing:
            try:
                is_free = float(pricing.get("prompt", 1)) == 0 and float(pricing.get("completion", 1)) == 0
            except (TypeError, ValueError):
                is_free = False
        models.append(ModelInfo(id=entry["id"], name=entry.get("name") or entry["id"], is_free=is_free))

    return models
