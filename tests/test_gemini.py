import json

import httpx
import pytest

from app.ai.gemini import (
    GeminiVisionClient,
    InferenceError,
    InlineMedia,
    build_request,
    extract_text,
    iter_sse_data,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _client(handler) -> GeminiVisionClient:
    return GeminiVisionClient(
        api_key="test-key",
        base_url="https://gemini.test/v1beta/",
        transport=httpx.MockTransport(handler),
    )


def _candidate(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def test_build_request_puts_media_before_prompt():
    body = build_request(
        "Explain", [InlineMedia("AAA", "image/jpeg"), InlineMedia("BBB", "image/jpeg")]
    )

    (content,) = body["contents"]
    assert content["role"] == "user"
    assert content["parts"] == [
        {"inlineData": {"mimeType": "image/jpeg", "data": "AAA"}},
        {"inlineData": {"mimeType": "image/jpeg", "data": "BBB"}},
        {"text": "Explain"},
    ]


@pytest.mark.parametrize(
    "response",
    [{}, {"candidates": []}, {"candidates": [{"content": {"parts": []}}]}],
)
def test_extract_text_without_candidate_is_empty(response):
    assert extract_text(response) == ""


@pytest.mark.anyio
async def test_analyze_images_posts_generate_content():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=_candidate("Left renal calculus."))

    frames = [InlineMedia(f"frame-{i}", "image/jpeg") for i in range(1, 4)]
    text = await _client(handler).analyze_images("Walk through the frames", frames)

    assert text == "Left renal calculus."
    assert captured["url"] == "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"
    assert captured["auth"] == "Bearer test-key"
    parts = captured["body"]["contents"][0]["parts"]
    assert [part["inlineData"]["data"] for part in parts[:-1]] == ["frame-1", "frame-2", "frame-3"]
    assert parts[-1] == {"text": "Walk through the frames"}


@pytest.mark.anyio
async def test_analyze_video_inline_empty_candidates_returns_empty_string():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    assert await _client(handler).analyze_video_inline("p", "AAAA", "video/mp4") == ""


@pytest.mark.anyio
async def test_error_status_raises_inference_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="quota exceeded")

    with pytest.raises(InferenceError) as exc_info:
        await _client(handler).analyze_video_inline("p", "AAAA", "video/mp4")

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == "quota exceeded"


@pytest.mark.anyio
async def test_unconfigured_client_raises_before_any_request():
    client = GeminiVisionClient(api_key=None, base_url=None)

    with pytest.raises(InferenceError, match="not configured"):
        await client.analyze_images("p", [])


@pytest.mark.anyio
async def test_iter_sse_data_buffers_lines_across_reads():
    first = b'data: {"candidates": [{"content": {"parts": [{"text": "Hyd'
    second = b'ro"}]}}]}\n\ndata: {"n": 2}\n'

    payloads = [payload async for payload in iter_sse_data(_chunks(first, second))]

    assert payloads[0] == _candidate("Hydro")
    assert payloads[1] == {"n": 2}


@pytest.mark.anyio
async def test_iter_sse_data_handles_multibyte_characters_split_across_reads():
    encoded = 'data: {"text": "5 mm → obstructing"}\n'.encode()
    split_at = encoded.index("→".encode()) + 1

    payloads = [
        payload async for payload in iter_sse_data(_chunks(encoded[:split_at], encoded[split_at:]))
    ]

    assert payloads == [{"text": "5 mm → obstructing"}]


@pytest.mark.anyio
async def test_iter_sse_data_skips_malformed_and_non_data_lines():
    stream = _chunks(
        b": keep-alive\n",
        b"event: message\n",
        b"data: {not json\n",
        b"data: [DONE]\n",
        b'data: {"ok": true}',
    )

    payloads = [payload async for payload in iter_sse_data(stream)]

    assert payloads == [{"ok": True}]


@pytest.mark.anyio
async def test_stream_video_inline_yields_text_in_order():
    events = [
        b'data: {"candidates": [{"content": {"parts": [{"text": "Axial "}]}}]}\n\n',
        b'data: {"candidates": [{"content": {"parts": [{"text": "CT "}, {"text": "shows "}]}}]}\n',
        b'\ndata: {"candidates": [{"content": {"parts": [{"text": "a stone."}]}}]}\n\n',
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith(":streamGenerateContent")
        assert request.url.params["alt"] == "sse"
        return httpx.Response(200, content=_chunks(*events))

    chunks = [
        text async for text in _client(handler).stream_video_inline("p", "AAAA", "video/mp4")
    ]

    assert chunks == ["Axial ", "CT shows ", "a stone."]
    assert "".join(chunks) == "Axial CT shows a stone."


@pytest.mark.anyio
async def test_stream_video_inline_error_status_raises_before_first_chunk():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="overloaded")

    stream = _client(handler).stream_video_inline("p", "AAAA", "video/mp4")

    with pytest.raises(InferenceError) as exc_info:
        await stream.__anext__()

    assert exc_info.value.status_code == 503
    assert "overloaded" in str(exc_info.value)


@pytest.mark.anyio
async def test_closing_stream_stops_reading_upstream():
    produced = []

    async def endless_events():
        while True:
            produced.append(len(produced))
            text = f"chunk-{len(produced)} "
            yield f"data: {json.dumps(_candidate(text))}\n\n".encode()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=endless_events())

    stream = _client(handler).stream_video_inline("p", "AAAA", "video/mp4")

    first = await stream.__anext__()
    await stream.aclose()
    reads_at_close = len(produced)

    assert first == "chunk-1 "
    assert reads_at_close <= 2
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert len(produced) == reads_at_close
