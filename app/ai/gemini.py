"""Gemini generateContent client for CT video and frame-sequence analysis.

Talks to the AI integrations proxy directly over HTTP:
- POST {base}/models/{model}:generateContent
- POST {base}/models/{model}:streamGenerateContent?alt=sse
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from app.constants import DEFAULT_INFERENCE_TIMEOUT_SECONDS, GEMINI_MODEL
from app.settings import Settings

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"


class InferenceError(Exception):
    """Raised when the inference endpoint is unconfigured or returns an error."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class InlineMedia:
    """Base64 payload sent as an inlineData part."""

    data: str
    mime_type: str


def build_request(prompt: str, media: Sequence[InlineMedia]) -> dict[str, Any]:
    """Request body with every media part first, in order, and the prompt last."""
    parts: list[dict[str, Any]] = [
        {"inlineData": {"mimeType": item.mime_type, "data": item.data}} for item in media
    ]
    parts.append({"text": prompt})
    return {"contents": [{"role": "user", "parts": parts}]}


def extract_text(data: dict[str, Any]) -> str:
    """Text of the first part of the first candidate, or "" if there is none."""
    try:
        return data["candidates"][0]["content"]["parts"][0].get("text") or ""
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""


def extract_chunk_text(data: dict[str, Any]) -> str:
    """All text parts of the first candidate in a streamed chunk, concatenated."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(part.get("text") or "" for part in parts if isinstance(part, dict))


async def iter_sse_data(chunks: AsyncIterable[bytes]) -> AsyncIterator[dict[str, Any]]:
    """
    Decode JSON payloads from a server-sent-event byte stream.

    Lines may span network reads, so partial lines are buffered until their
    newline arrives. Payloads that fail to decode are skipped. The iterator
    ends when the underlying stream does.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""

    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            payload = _parse_sse_line(line)
            if payload is not None:
                yield payload

    buffer += decoder.decode(b"", final=True)
    if buffer:
        payload = _parse_sse_line(buffer)
        if payload is not None:
            yield payload


def _parse_sse_line(line: str) -> dict[str, Any] | None:
    line = line.rstrip("\r")
    if not line.startswith(SSE_DATA_PREFIX):
        return None

    raw = line[len(SSE_DATA_PREFIX) :].strip()
    if not raw or raw == "[DONE]":
        return None

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE chunk: %.80s", raw)
        return None
    return payload if isinstance(payload, dict) else None


class GeminiVisionClient:
    """
    Stateless adapter for multimodal generateContent calls.

    Each call opens its own HTTP client; nothing is retained between calls.

    Example:
        >>> client = GeminiVisionClient.from_settings(get_settings())
        >>> text = await client.analyze_video_inline(prompt, video_b64, "video/mp4")
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str | None,
        model: str = GEMINI_MODEL,
        timeout_seconds: float = DEFAULT_INFERENCE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/") if base_url else None
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> GeminiVisionClient:
        return cls(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.inference_timeout_seconds,
            transport=transport,
        )

    def _endpoint(self, method: str) -> str:
        if not self.api_key or not self.base_url:
            raise InferenceError("Gemini AI integration not configured")
        return f"{self.base_url}/models/{self.model}:{method}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )

    async def _generate(self, body: dict[str, Any]) -> str:
        url = self._endpoint("generateContent")
        try:
            async with self._client() as client:
                response = await client.post(url, json=body)
        except httpx.HTTPError as e:
            raise InferenceError(f"Gemini request failed: {e}") from e

        if not response.is_success:
            raise InferenceError(
                f"Gemini API error: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InferenceError(f"Gemini returned invalid JSON: {e}") from e
        return extract_text(data)

    async def analyze_images(self, prompt: str, images: Sequence[InlineMedia]) -> str:
        """
        Send an ordered image sequence followed by the prompt.

        Returns:
            Generated text, or "" if the endpoint returned no candidate

        Raises:
            InferenceError: On missing configuration or a non-success status
        """
        logger.info("Sending %d frames to %s", len(images), self.model)
        return await self._generate(build_request(prompt, images))

    async def analyze_video_inline(self, prompt: str, video_base64: str, mime_type: str) -> str:
        """Send one inline video followed by the prompt and return the generated text."""
        logger.info(
            "Sending video to %s (%.2fMB, %s)",
            self.model,
            len(video_base64) * 0.75 / 1024 / 1024,
            mime_type,
        )
        return await self._generate(build_request(prompt, [InlineMedia(video_base64, mime_type)]))

    async def stream_video_inline(
        self, prompt: str, video_base64: str, mime_type: str
    ) -> AsyncIterator[str]:
        """
        Stream generated text for one inline video.

        Yields text increments in the order received; each one is appended to
        what came before. Closing the iterator early stops reading upstream.

        Raises:
            InferenceError: On missing configuration, transport failure, or a
                non-success status (raised before the first chunk)
        """
        url = f"{self._endpoint('streamGenerateContent')}?alt=sse"
        body = build_request(prompt, [InlineMedia(video_base64, mime_type)])
        logger.info("Streaming video analysis from %s (%s)", self.model, mime_type)

        try:
            async with self._client() as client:
                async with client.stream("POST", url, json=body) as response:
                    if not response.is_success:
                        error_body = (await response.aread()).decode(errors="replace")
                        raise InferenceError(
                            f"Gemini API error: {response.status_code} {error_body}",
                            status_code=response.status_code,
                            body=error_body,
                        )
                    async for payload in iter_sse_data(response.aiter_bytes()):
                        text = extract_chunk_text(payload)
                        if text:
                            yield text
        except httpx.HTTPError as e:
            raise InferenceError(f"Gemini stream failed: {e}") from e
