from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: Optional[str] = Field(None, description="User's latest message")
    session_id: Optional[str] = Field(
        None, alias="sessionId", description="Client-side conversation id"
    )


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    session_id: str = Field(..., alias="sessionId")


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
