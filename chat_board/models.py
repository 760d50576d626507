from __future__ import annotations

from pydantic import BaseModel, Field, PositiveInt


class ChatMessage(BaseModel):
    """One entry of the public board as stored in the backing file."""

    id: PositiveInt = Field(..., description="Sequential id, max existing id + 1")
    user: str = Field(..., description="Pseudonymous numeric id of the poster")
    message: str = Field(..., min_length=1, description="Trimmed message text")
    timestamp: str = Field(..., description="ISO-8601 UTC instant assigned at append time")
