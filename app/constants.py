# ============================================================================
# PROJECT CONFIGURATION
# ============================================================================
import os

# GCS bucket for compressed case videos (overridable via CASE_VIDEO_BUCKET)
CASE_VIDEO_BUCKET = "uro-teaching-case-videos"
CASE_VIDEO_PREFIX = "cases/videos"

# ============================================================================
# VIDEO ANALYSIS
# ============================================================================
VIDEO_ANALYSIS_MODE_ENV = "VIDEO_ANALYSIS_MODE"

# Largest payload the inference endpoint accepts as inline data
MAX_INLINE_VIDEO_SIZE_MB = 20

# Frame-extraction strategy
FRAME_SEQUENCE_COUNT = 10
THUMBNAIL_SEQUENCE_INDEX_CAP = 4  # thumbnail = frames[min(4, len // 2)]

# Single-frame thumbnail position (fraction of duration). 0.3 lands inside the
# anatomy rather than on a blank leading slice.
THUMBNAIL_POSITION = 0.3

# ffmpeg -q:v for extracted stills (2 = near-lossless jpeg)
FRAME_JPEG_QUALITY = 2

# ============================================================================
# COMPRESSION (storage copy)
# ============================================================================
DEFAULT_MAX_STORED_SIZE_MB = 50

# Descending quality ladder: (crf, preset). Lower CRF = higher quality.
COMPRESSION_LADDER: tuple[tuple[int, str], ...] = (
    (18, "slow"),
    (23, "medium"),
    (28, "medium"),
    (32, "fast"),
)

# Height cap applied on the final rung when the input is already over budget
COMPRESSION_FINAL_MAX_HEIGHT = 720

# ============================================================================
# INFERENCE
# ============================================================================
GEMINI_MODEL = "gemini-2.5-flash"
TEXT_MODEL = "gpt-5.1"

DEFAULT_INFERENCE_TIMEOUT_SECONDS = 120.0

EXPLANATION_MAX_TOKENS = 1024
TITLE_MAX_TOKENS = 50
CATEGORY_MAX_TOKENS = 20
CHAT_MAX_TOKENS = 512

# ============================================================================
# CASES
# ============================================================================
CASE_CATEGORIES = (
    "Stones",
    "Hydronephrosis",
    "Mass/Tumor",
    "Infection",
    "Trauma",
    "Congenital",
    "Vascular",
    "Bladder",
    "Prostate",
    "Other",
)
DEFAULT_CASE_CATEGORY = "Other"
DEFAULT_CASE_TITLE = "Untitled Case"

# ============================================================================
# UPLOADS
# ============================================================================
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm"}
VIDEO_MIME_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
}
DEFAULT_VIDEO_MIME_TYPE = "video/mp4"

# ============================================================================
# LOCAL SCRATCH STORAGE
# ============================================================================
SCRATCH_DIR = os.getenv("SCRATCH_DIR", os.getenv("TMPDIR", "/tmp"))
