"""Inference clients.

- gemini: multimodal video / frame-sequence analysis (HTTP + SSE)
- teaching: text model for image explanations, titles, categories and chat
"""

from app.ai.gemini import GeminiVisionClient, InferenceError, InlineMedia
from app.ai.teaching import TeachingAssistant

__all__ = [
    "GeminiVisionClient",
    "InferenceError",
    "InlineMedia",
    "TeachingAssistant",
]
