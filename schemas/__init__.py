"""Pydantic schemas for API request/response validation."""

from .context import (
    CreateContextRequest,
    UpdateContextRequest,
    AppendToListRequest,
    ContextResponse,
    ContextListResponse,
)
from .config import (
    EvolveConfigRequest,
    EvolveConfigResponse,
    EvolveConfigErrorResponse,
    ServerConfigResponse,
)
from .llm import (
    ChatMessage,
    LLMRequestPayload,
    LLMProxyRequest,
    LLMProxyResponse,
)

__all__ = [
    # Context
    "CreateContextRequest",
    "UpdateContextRequest",
    "AppendToListRequest",
    "ContextResponse",
    "ContextListResponse",
    # Config
    "EvolveConfigRequest",
    "EvolveConfigResponse",
    "EvolveConfigErrorResponse",
    "ServerConfigResponse",
    # LLM
    "ChatMessage",
    "LLMRequestPayload",
    "LLMProxyRequest",
    "LLMProxyResponse",
]
