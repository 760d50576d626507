from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from chat_board.models import ChatMessage


class ChatListResponse(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list, description="Messages ordered by id")


class ChatPostResponse(BaseModel):
    ok: bool = True
    entry: ChatMessage


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human readable reason the request failed")


class HealthResponse(BaseModel):
    status: str = "ok"
