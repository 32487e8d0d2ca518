"""Process-wide settings resolved once from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from app.constants import (
    CASE_VIDEO_BUCKET,
    DEFAULT_INFERENCE_TIMEOUT_SECONDS,
    DEFAULT_MAX_STORED_SIZE_MB,
    VIDEO_ANALYSIS_MODE_ENV,
)
from app.models.analysis import AnalysisMode

logger = logging.getLogger(__name__)


def parse_analysis_mode(raw: str | None) -> AnalysisMode:
    """Map a raw setting to an AnalysisMode, defaulting to native_with_fallback."""
    if raw:
        try:
            return AnalysisMode(raw.strip().lower())
        except ValueError:
            logger.warning(
                "Unrecognized %s=%r, using %s",
                VIDEO_ANALYSIS_MODE_ENV,
                raw,
                AnalysisMode.NATIVE_WITH_FALLBACK.value,
            )
    return AnalysisMode.NATIVE_WITH_FALLBACK


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    analysis_mode: AnalysisMode = AnalysisMode.NATIVE_WITH_FALLBACK
    gemini_api_key: str | None = None
    gemini_base_url: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    video_bucket: str = CASE_VIDEO_BUCKET
    max_stored_size_mb: float = DEFAULT_MAX_STORED_SIZE_MB
    inference_timeout_seconds: float = DEFAULT_INFERENCE_TIMEOUT_SECONDS

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key and self.gemini_base_url)

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key and self.openai_base_url)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            analysis_mode=parse_analysis_mode(os.getenv(VIDEO_ANALYSIS_MODE_ENV)),
            gemini_api_key=os.getenv("AI_INTEGRATIONS_GEMINI_API_KEY"),
            gemini_base_url=os.getenv("AI_INTEGRATIONS_GEMINI_BASE_URL"),
            openai_api_key=os.getenv("AI_INTEGRATIONS_OPENAI_API_KEY"),
            openai_base_url=os.getenv("AI_INTEGRATIONS_OPENAI_BASE_URL"),
            video_bucket=os.getenv("CASE_VIDEO_BUCKET", CASE_VIDEO_BUCKET),
            max_stored_size_mb=_float_env("VIDEO_MAX_STORED_SIZE_MB", DEFAULT_MAX_STORED_SIZE_MB),
            inference_timeout_seconds=_float_env(
                "INFERENCE_TIMEOUT_SECONDS", DEFAULT_INFERENCE_TIMEOUT_SECONDS
            ),
        )

    def warn_if_incomplete(self) -> None:
        """Log (but do not fail on) missing inference credentials."""
        if not self.gemini_configured:
            logger.warning("Gemini AI integration environment variables not configured")
        if not self.openai_configured:
            logger.warning("OpenAI AI integration environment variables not configured")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings.from_env()
    logger.info("Video analysis mode: %s", settings.analysis_mode.value)
    return settings
