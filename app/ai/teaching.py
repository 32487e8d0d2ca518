"""Text-model helpers for still-image cases: explanation, title, category, chat."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from app.ai.gemini import InferenceError
from app.constants import (
    CASE_CATEGORIES,
    CATEGORY_MAX_TOKENS,
    CHAT_MAX_TOKENS,
    DEFAULT_CASE_CATEGORY,
    DEFAULT_CASE_TITLE,
    DEFAULT_INFERENCE_TIMEOUT_SECONDS,
    EXPLANATION_MAX_TOKENS,
    TEXT_MODEL,
    TITLE_MAX_TOKENS,
)
from app.models.teaching import ChatTurn
from app.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_EXPLANATION = """You are a radiology teaching assistant for urology trainees.
Analyze this CT image and provide a teaching explanation.

Include:
1. What the image shows (anatomical orientation, structures visible)
2. Key finding identification (the pathology or abnormality)
3. Recognition features that help learners identify this in future
4. Relevant radiology first principles

Keep the explanation concise but educational (2-3 paragraphs).
Write for PGY-2 residents and new APPs learning uro-radiology."""

SYSTEM_PROMPT_TITLE = """Based on this radiology case explanation, generate a short descriptive title (3-4 words maximum).

Format: [Pathology] [Location/Qualifier]
Examples: "Staghorn Calculus Left Kidney", "Grade 3 Hydronephrosis", "Renal Cell Carcinoma Upper Pole"

Return ONLY the title, no other text."""

SYSTEM_PROMPT_CATEGORY = (
    "Based on this radiology case explanation, assign ONE category from this list:\n\n"
    + "\n".join(f"- {category}" for category in CASE_CATEGORIES)
    + "\n\nReturn ONLY the category name, no other text."
)

SYSTEM_PROMPT_CHAT = """You are a radiology teaching assistant. The learner is viewing a uro-radiology case and has a follow-up question.

Answer their question in a helpful, educational manner.
Stay focused on the specific case and radiology concepts.
If they ask something unrelated to the case, gently redirect."""

CHAT_FALLBACK_RESPONSE = "I'm sorry, I couldn't generate a response. Please try again."

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


def with_attending_guidance(prompt: str, attending_prompt: str | None) -> str:
    """Append the attending's free-text guidance to a system prompt."""
    if not attending_prompt:
        return prompt
    return f"{prompt}\n\nAdditional guidance from the attending: {attending_prompt}"


def split_data_url(image: str) -> tuple[str, str]:
    """
    Split a data URL into (mime_type, base64).

    Input that is not a data URL is treated as raw base64 jpeg.
    """
    match = _DATA_URL_RE.match(image)
    if match:
        return match.group(1), match.group(2)
    return "image/jpeg", image


def _image_message(prompt: str, image: str) -> dict[str, Any]:
    mime_type, data = split_data_url(image)
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{data}"}},
        ],
    }


class TeachingAssistant:
    """Chat-completions wrapper used for image cases and follow-up questions."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = TEXT_MODEL,
        client: AsyncOpenAI | None = None,
        timeout_seconds: float = DEFAULT_INFERENCE_TIMEOUT_SECONDS,
    ):
        self.model = model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> TeachingAssistant:
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.inference_timeout_seconds,
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key or not self._base_url:
                raise InferenceError("OpenAI AI integration not configured")
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_seconds,
            )
        return self._client

    async def _complete(self, messages: list[dict[str, Any]], max_tokens: int) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_completion_tokens=max_tokens,
            )
        except OpenAIError as e:
            status_code = getattr(e, "status_code", None)
            raise InferenceError(f"Text model request failed: {e}", status_code=status_code) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def explain_image(self, image: str, attending_prompt: str | None = None) -> str:
        prompt = with_attending_guidance(SYSTEM_PROMPT_EXPLANATION, attending_prompt)
        return await self._complete([_image_message(prompt, image)], EXPLANATION_MAX_TOKENS)

    async def generate_title(self, explanation: str) -> str:
        content = f"{SYSTEM_PROMPT_TITLE}\n\nExplanation:\n{explanation}"
        title = await self._complete([{"role": "user", "content": content}], TITLE_MAX_TOKENS)
        return title.strip() or DEFAULT_CASE_TITLE

    async def generate_category(self, explanation: str) -> str:
        """Classify the case; anything outside CASE_CATEGORIES becomes "Other"."""
        content = f"{SYSTEM_PROMPT_CATEGORY}\n\nExplanation:\n{explanation}"
        category = await self._complete([{"role": "user", "content": content}], CATEGORY_MAX_TOKENS)
        category = category.strip()
        if category not in CASE_CATEGORIES:
            logger.debug("Unrecognized category %r, using %s", category, DEFAULT_CASE_CATEGORY)
            return DEFAULT_CASE_CATEGORY
        return category

    async def chat(
        self, explanation: str, history: Sequence[ChatTurn], user_message: str
    ) -> str:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": f"{SYSTEM_PROMPT_CHAT}\n\nCase Explanation:\n{explanation}"}
        ]
        for turn in history:
            role = "user" if turn.role == "user" else "assistant"
            messages.append({"role": role, "content": turn.content})
        messages.append({"role": "user", "content": user_message})

        response = await self._complete(messages, CHAT_MAX_TOKENS)
        return response or CHAT_FALLBACK_RESPONSE

    async def refine(self, image: str, current_explanation: str, feedback: str) -> str:
        """Rewrite an explanation per attending feedback; keeps the old text on empty output."""
        prompt = (
            "You are a radiology teaching assistant. The attending has provided feedback "
            "on the current explanation.\n\n"
            f"Current explanation:\n{current_explanation}\n\n"
            f"Attending's feedback/request:\n{feedback}\n\n"
            "Please update the explanation based on this feedback. Keep the same educational "
            "format but incorporate the requested changes."
        )
        refined = await self._complete([_image_message(prompt, image)], EXPLANATION_MAX_TOKENS)
        return refined or current_explanation
