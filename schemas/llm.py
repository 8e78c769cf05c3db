"""Pydantic schemas for the LLM proxy API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant", "function"]
    content: str
    name: Optional[str] = None


class LLMRequestPayload(BaseModel):
    """OpenAI-style request body forwarded to the provider."""

    messages: List[ChatMessage] = Field(..., min_length=1)
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class LLMProxyRequest(BaseModel):
    """Request to the LLM proxy.

    Messages stored under ``chat_history`` in the referenced contexts are
    prepended to ``request.messages`` in the order the ids are given.
    """

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(..., min_length=1)
    request: LLMRequestPayload
    context_ids: List[str] = Field(default_factory=list, alias="contextIds")


class LLMProxyResponse(BaseModel):
    provider: str
    text: str
    raw: Dict[str, Any] = Field(default_factory=dict, description="Provider response body")
