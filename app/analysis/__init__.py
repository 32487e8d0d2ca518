"""CT video analysis.

- prompts: five-part teaching prompts for video and frame-sequence input
- strategies: native video and frame extraction strategies
- selector: mode-driven strategy selection with native -> frames fallback
"""

from app.analysis.selector import VideoAnalyzer
from app.analysis.strategies import (
    FrameExtractionStrategy,
    NativeVideoStrategy,
    VideoAnalysisError,
    VideoAnalysisStrategy,
)

__all__ = [
    "FrameExtractionStrategy",
    "NativeVideoStrategy",
    "VideoAnalysisError",
    "VideoAnalysisStrategy",
    "VideoAnalyzer",
]
