import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from functools import lru_cache
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.concurrency import run_in_threadpool

from app.ai import InferenceError, TeachingAssistant
from app.analysis import VideoAnalysisError, VideoAnalyzer
from app.cases import CaseStore, InMemoryCaseStore
from app.constants import ALLOWED_VIDEO_EXTENSIONS, CASE_VIDEO_PREFIX
from app.media import prober, transcode
from app.media.frames import ExtractionError
from app.media.prober import ProbeError
from app.media.transcode import CompressionError, EncoderError
from app.models import (
    AnalyzeImageRequest,
    Case,
    CaseCreate,
    CaseUpdate,
    ChatMessage,
    ChatMessageCreate,
    ChatRequest,
    ChatResponse,
    RefineRequest,
    TeachingExplanation,
    VideoAnalysisResponse,
    VideoBlob,
    VideoInfoResponse,
)
from app.settings import Settings, get_settings
from app.utils.storage import StorageError, VideoAssetNotFoundError, VideoAssetStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    get_settings().warn_if_incomplete()
    yield


app = FastAPI(title="Uro-Radiology Teaching Cases API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


# ============================================================================
# Dependencies
# ============================================================================


@lru_cache(maxsize=1)
def get_case_store() -> CaseStore:
    return InMemoryCaseStore()


@lru_cache(maxsize=1)
def get_asset_store() -> VideoAssetStore:
    return VideoAssetStore(bucket_name=get_settings().video_bucket)


def get_video_analyzer(settings: Settings = Depends(get_settings)) -> VideoAnalyzer:
    return VideoAnalyzer.from_settings(settings)


def get_teaching_assistant(settings: Settings = Depends(get_settings)) -> TeachingAssistant:
    return TeachingAssistant.from_settings(settings)


# ============================================================================
# Helpers
# ============================================================================


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.

    - Remove directory traversal attempts (../)
    - Replace anything except alphanumeric, dash and underscore in the stem
    - Preserve file extension

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for storage
    """
    filename = Path(filename).name
    stem = Path(filename).stem
    suffix = Path(filename).suffix.lower()

    safe_stem = re.sub(r"[^a-zA-Z0-9_-]", "_", stem)[:100]
    return f"{safe_stem}{suffix}"


def parse_range_header(range_header: str | None, total_size: int) -> tuple[int, int] | None:
    """
    Parse a single-range "bytes=start-end" header into an inclusive range.

    Returns:
        (start, end) clamped to the object, or None when no range was requested

    Raises:
        HTTPException: 416 if the range is malformed or unsatisfiable
    """
    if not range_header:
        return None

    match = _RANGE_RE.match(range_header.strip())
    if not match or match.groups() == ("", ""):
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail={"error": "Invalid range", "detail": range_header},
        )

    raw_start, raw_end = match.groups()
    if raw_start:
        start = int(raw_start)
        end = min(int(raw_end), total_size - 1) if raw_end else total_size - 1
    else:
        # Suffix range: last N bytes
        start = max(total_size - int(raw_end), 0)
        end = total_size - 1

    if start > end or start >= total_size:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail={"error": "Range not satisfiable", "detail": f"bytes */{total_size}"},
        )
    return start, end


async def read_video_upload(file: UploadFile) -> VideoBlob:
    filename = file.filename or "video.mp4"
    file_ext = Path(filename).suffix.lower()

    if file_ext not in ALLOWED_VIDEO_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail={
                "error": "Unsupported file format",
                "detail": f"File extension '{file_ext}' not allowed",
                "allowed_formats": sorted(ALLOWED_VIDEO_EXTENSIONS),
            },
        )

    data = await file.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Empty upload", "detail": f"{filename} contains no data"},
        )
    return VideoBlob(data=data, filename=filename)


def not_found(error: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"error": error})


def sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


# ============================================================================
# Health
# ============================================================================


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "service": "Uro-Radiology Teaching Cases API",
        "version": "0.1.0",
        "status": "healthy",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


# ============================================================================
# Cases
# ============================================================================


@app.get("/api/cases", response_model=list[Case], tags=["Cases"])
async def list_cases(store: CaseStore = Depends(get_case_store)) -> list[Case]:
    return await store.list_cases()


@app.get("/api/cases/{case_id}", response_model=Case, tags=["Cases"])
async def get_case(case_id: str, store: CaseStore = Depends(get_case_store)) -> Case:
    case = await store.get_case(case_id)
    if case is None:
        raise not_found("Case not found")
    return case


@app.post(
    "/api/cases", response_model=Case, status_code=status.HTTP_201_CREATED, tags=["Cases"]
)
async def create_case(payload: CaseCreate, store: CaseStore = Depends(get_case_store)) -> Case:
    return await store.create_case(payload)


@app.patch("/api/cases/{case_id}", response_model=Case, tags=["Cases"])
async def update_case(
    case_id: str, payload: CaseUpdate, store: CaseStore = Depends(get_case_store)
) -> Case:
    case = await store.update_case(case_id, payload)
    if case is None:
        raise not_found("Case not found")
    return case


@app.delete("/api/cases/{case_id}", tags=["Cases"])
async def delete_case(
    case_id: str,
    store: CaseStore = Depends(get_case_store),
    assets: VideoAssetStore = Depends(get_asset_store),
):
    """Delete a case, its chat transcript, and its stored video (if any)."""
    case = await store.get_case(case_id)
    if case is None:
        raise not_found("Case not found")

    if case.video_url:
        if await run_in_threadpool(assets.exists, case.video_url):
            await run_in_threadpool(assets.delete, case.video_url)
        else:
            logger.warning("Stored video %s for case %s was already gone", case.video_url, case_id)

    await store.delete_case(case_id)
    return {"success": True}


@app.get("/api/cases/{case_id}/messages", response_model=list[ChatMessage], tags=["Cases"])
async def list_messages(
    case_id: str, store: CaseStore = Depends(get_case_store)
) -> list[ChatMessage]:
    return await store.list_messages(case_id)


@app.post(
    "/api/cases/{case_id}/messages",
    response_model=ChatMessage,
    status_code=status.HTTP_201_CREATED,
    tags=["Cases"],
)
async def create_message(
    case_id: str, payload: ChatMessageCreate, store: CaseStore = Depends(get_case_store)
) -> ChatMessage:
    if await store.get_case(case_id) is None:
        raise not_found("Case not found")
    return await store.create_message(case_id, payload)


@app.get("/api/cases/{case_id}/video", tags=["Cases"])
async def get_case_video(
    case_id: str,
    range_header: str | None = Header(None, alias="Range"),
    store: CaseStore = Depends(get_case_store),
    assets: VideoAssetStore = Depends(get_asset_store),
) -> Response:
    """Serve the stored case video, honouring single byte-range requests."""
    case = await store.get_case(case_id)
    if case is None or not case.video_url:
        raise not_found("Video not found")

    total_size = await run_in_threadpool(assets.size, case.video_url)
    byte_range = parse_range_header(range_header, total_size)
    headers = {"Accept-Ranges": "bytes"}

    if byte_range is None:
        data = await run_in_threadpool(assets.get, case.video_url)
        return Response(content=data, media_type="video/mp4", headers=headers)

    start, end = byte_range
    data = await run_in_threadpool(assets.get, case.video_url, start, end)
    headers["Content-Range"] = f"bytes {start}-{end}/{total_size}"
    return Response(
        content=data,
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type="video/mp4",
        headers=headers,
    )


# ============================================================================
# AI: still images and chat
# ============================================================================


@app.post("/api/ai/analyze", response_model=TeachingExplanation, tags=["AI"])
async def analyze_image(
    payload: AnalyzeImageRequest,
    assistant: TeachingAssistant = Depends(get_teaching_assistant),
) -> TeachingExplanation:
    explanation = await assistant.explain_image(payload.image_base64, payload.attending_prompt)
    title, category = await asyncio.gather(
        assistant.generate_title(explanation),
        assistant.generate_category(explanation),
    )
    return TeachingExplanation(explanation=explanation, title=title, category=category)


@app.post("/api/ai/refine", response_model=TeachingExplanation, tags=["AI"])
async def refine_explanation(
    payload: RefineRequest,
    assistant: TeachingAssistant = Depends(get_teaching_assistant),
) -> TeachingExplanation:
    explanation = await assistant.refine(
        payload.image_base64, payload.current_explanation, payload.feedback
    )
    title, category = await asyncio.gather(
        assistant.generate_title(explanation),
        assistant.generate_category(explanation),
    )
    return TeachingExplanation(explanation=explanation, title=title, category=category)


@app.post("/api/ai/chat", response_model=ChatResponse, tags=["AI"])
async def chat(
    payload: ChatRequest,
    assistant: TeachingAssistant = Depends(get_teaching_assistant),
) -> ChatResponse:
    response = await assistant.chat(payload.explanation, payload.chat_history, payload.user_message)
    return ChatResponse(response=response)


# ============================================================================
# AI: CT video
# ============================================================================


@app.post("/api/video/info", response_model=VideoInfoResponse, tags=["Video Analysis"])
async def video_info(
    file: UploadFile = File(..., description="CT scan video"),
) -> VideoInfoResponse:
    video = await read_video_upload(file)
    metadata = await prober.probe(video)
    return VideoInfoResponse(
        duration_seconds=metadata.duration_seconds,
        width=metadata.width_px,
        height=metadata.height_px,
        fps=metadata.fps,
    )


@app.post(
    "/api/ai/analyze-video",
    response_model=VideoAnalysisResponse,
    responses={
        413: {"description": "Video could not be compressed under the storage limit"},
        415: {"description": "Unsupported media type"},
        422: {"description": "Video could not be probed or analyzed"},
        500: {"description": "Video encoder missing or failed"},
        502: {"description": "Inference endpoint failed"},
    },
    tags=["Video Analysis"],
)
async def analyze_video(
    file: UploadFile = File(..., description="CT scan video"),
    attending_prompt: str | None = Form(None),
    settings: Settings = Depends(get_settings),
    analyzer: VideoAnalyzer = Depends(get_video_analyzer),
    assistant: TeachingAssistant = Depends(get_teaching_assistant),
    assets: VideoAssetStore = Depends(get_asset_store),
) -> VideoAnalysisResponse:
    """
    Analyze a CT scroll video and store a compressed copy.

    Pipeline:
    1. Probe → duration, resolution, fps
    2. Analyze → native video or frame extraction, per VIDEO_ANALYSIS_MODE
    3. Title + category from the explanation
    4. Compress → size-bounded mp4
    5. Store → object storage (only after analysis succeeded)
    """
    video = await read_video_upload(file)
    metadata = await prober.probe(video)

    result = await analyzer.analyze(video, attending_prompt)
    title, category = await asyncio.gather(
        assistant.generate_title(result.explanation),
        assistant.generate_category(result.explanation),
    )

    compressed = await transcode.compress(video, settings.max_stored_size_mb)
    video_key = f"{CASE_VIDEO_PREFIX}/{uuid4()}-{sanitize_filename(compressed.filename)}"
    await run_in_threadpool(assets.put, video_key, compressed.data, compressed.mime_type)
    logger.info(
        "Stored %s (%.2fMB, strategy=%s)", video_key, compressed.size_mb, result.strategy.value
    )

    return VideoAnalysisResponse(
        explanation=result.explanation,
        title=title,
        category=category,
        thumbnail=result.thumbnail,
        strategy=result.strategy,
        video_key=video_key,
        video_size_mb=round(compressed.size_mb, 2),
        video_info=VideoInfoResponse(
            duration_seconds=metadata.duration_seconds,
            width=metadata.width_px,
            height=metadata.height_px,
            fps=metadata.fps,
        ),
    )


@app.post("/api/ai/analyze-video/stream", tags=["Video Analysis"])
async def stream_video_analysis(
    file: UploadFile = File(..., description="CT scan video"),
    attending_prompt: str | None = Form(None),
    analyzer: VideoAnalyzer = Depends(get_video_analyzer),
) -> StreamingResponse:
    """
    Stream a native video analysis as server-sent events.

    Events:
    - {"text": "..."} for each generated chunk, in order
    - {"done": true, "thumbnail": "data:...", "strategy": "native"} at the end
    - {"error": "...", "detail": "..."} if inference fails mid-stream
    """
    video = await read_video_upload(file)
    prepared = analyzer.prepare_streaming(video, attending_prompt)

    async def events() -> AsyncIterator[str]:
        try:
            # Closing the upstream iterator stops reading from the provider
            # when the client goes away.
            async with aclosing(analyzer.stream(prepared)) as chunks:
                async for text in chunks:
                    yield sse_event({"text": text})

            thumbnail = await analyzer.streaming_thumbnail(video)
            yield sse_event({"done": True, "thumbnail": thumbnail, "strategy": "native"})
        except (InferenceError, ExtractionError) as e:
            logger.error("Streaming analysis failed for %s: %s", video.filename, e)
            yield sse_event({"error": "Failed to analyze video", "detail": str(e)})

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ============================================================================
# Error handling
# ============================================================================

_ERROR_RESPONSES: dict[type[Exception], tuple[int, str]] = {
    ProbeError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "Could not read video"),
    ExtractionError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "Could not extract frames"),
    VideoAnalysisError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "Video cannot be analyzed"),
    CompressionError: (status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Video too large to store"),
    EncoderError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Video encoding failed"),
    InferenceError: (status.HTTP_502_BAD_GATEWAY, "AI analysis failed"),
    VideoAssetNotFoundError: (status.HTTP_404_NOT_FOUND, "Video not found"),
    StorageError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage operation failed"),
}


async def domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Turn domain errors into {"error", "detail"} payloads."""
    status_code, error = next(
        value for error_type, value in _ERROR_RESPONSES.items() if isinstance(exc, error_type)
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)

    return JSONResponse(status_code=status_code, content={"error": error, "detail": str(exc)})


for _error_type in _ERROR_RESPONSES:
    app.add_exception_handler(_error_type, domain_exception_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return a concise, friendly 422 payload."""
    errors = []
    for err in exc.errors():
        location_parts = [str(part) for part in err.get("loc", []) if part != "body"]
        errors.append(
            {
                "field": "body" if not location_parts else ".".join(location_parts),
                "message": err.get("msg"),
            }
        )

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Invalid request payload",
            "errors": errors,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=9000, reload=True)
