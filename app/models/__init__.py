"""Models package.

- media: video blobs, probe metadata, extracted frames
- analysis: analysis modes, results and the video analysis response
- cases: teaching cases and chat messages
- teaching: AI teaching endpoint payloads
"""

from app.models.analysis import (
    AnalysisMode,
    AnalysisResult,
    AnalysisStrategyName,
    StreamPreparation,
    VideoAnalysisResponse,
    VideoInfoResponse,
)
from app.models.cases import Case, CaseCreate, CaseUpdate, ChatMessage, ChatMessageCreate
from app.models.media import ExtractedFrame, VideoBlob, VideoMetadata, video_mime_type
from app.models.teaching import (
    AnalyzeImageRequest,
    ChatRequest,
    ChatResponse,
    ChatTurn,
    RefineRequest,
    TeachingExplanation,
)

__all__ = [
    # Media
    "ExtractedFrame",
    "VideoBlob",
    "VideoMetadata",
    "video_mime_type",
    # Analysis
    "AnalysisMode",
    "AnalysisResult",
    "AnalysisStrategyName",
    "StreamPreparation",
    "VideoAnalysisResponse",
    "VideoInfoResponse",
    # Cases
    "Case",
    "CaseCreate",
    "CaseUpdate",
    "ChatMessage",
    "ChatMessageCreate",
    # Teaching
    "AnalyzeImageRequest",
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "RefineRequest",
    "TeachingExplanation",
]
