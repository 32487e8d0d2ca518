"""Teaching case and chat models."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

MediaType = Literal["image", "video"]


class CaseCreate(BaseModel):
    """Fields supplied when saving a new case."""

    title: str = Field(..., min_length=1)
    image_url: str = Field(..., description="Image or thumbnail as a data URL or URL")
    explanation: str
    category: str
    attending_prompt: Optional[str] = None
    video_url: Optional[str] = Field(
        None, description="Object storage key of the stored case video"
    )
    media_type: MediaType = "image"


class CaseUpdate(BaseModel):
    title: Optional[str] = None
    explanation: Optional[str] = None
    category: Optional[str] = None


class Case(CaseCreate):
    id: str
    case_number: int
    created_at: datetime


class ChatMessageCreate(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatMessage(ChatMessageCreate):
    id: str
    case_id: str
    created_at: datetime
