"""Request/response models for the AI teaching endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class AnalyzeImageRequest(BaseModel):
    image_base64: str = Field(..., description="CT image as a data URL or raw base64 jpeg")
    attending_prompt: Optional[str] = None


class TeachingExplanation(BaseModel):
    explanation: str
    title: str
    category: str


class RefineRequest(BaseModel):
    image_base64: str
    current_explanation: str
    feedback: str


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    explanation: str
    chat_history: list[ChatTurn] = Field(default_factory=list)
    user_message: str


class ChatResponse(BaseModel):
    response: str
