"""LLM proxy router.

Forwards a chat request to a configured provider, optionally prefixing it
with chat history stored in the context store.
"""

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from core.dependencies import get_context_store, get_llm_gateway
from core.llm import LLMGateway, LLMRequest
from core.services.context_service import ContextNotFoundError, ContextStore
from schemas.llm import LLMProxyRequest, LLMProxyResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/llm", tags=["llm"])

CHAT_HISTORY_KEY = "chat_history"
HISTORY_ROLES = {"system", "user", "assistant", "function"}


async def _collect_history(store: ContextStore, context_ids: List[str]) -> List[Dict[str, str]]:
    """Gather well-formed messages from each context's ``chat_history`` list."""
    history: List[Dict[str, str]] = []
    for context_id in context_ids:
        try:
            context = await store.get(context_id)
        except ContextNotFoundError:
            logger.warning(f"[LLM Route] Context {context_id} not found, skipping its history")
            continue
        if not isinstance(context.data, dict):
            continue
        entries = context.data.get(CHAT_HISTORY_KEY)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if (
                isinstance(entry, dict)
                and entry.get("role") in HISTORY_ROLES
                and isinstance(entry.get("content"), str)
            ):
                history.append({"role": entry["role"], "content": entry["content"]})
    return history


@router.post("/request", response_model=LLMProxyResponse)
async def llm_request(
    body: LLMProxyRequest,
    store: ContextStore = Depends(get_context_store),
    gateway: LLMGateway = Depends(get_llm_gateway),
):
    """Send a chat completion request to ``provider``; 502 when the provider fails."""
    history = await _collect_history(store, body.context_ids) if body.context_ids else []
    if history:
        logger.info(f"[LLM Route] Prepending {len(history)} history messages from {len(body.context_ids)} contexts")

    messages = history + [m.model_dump(exclude_none=True) for m in body.request.messages]
    result = await gateway.complete(
        body.provider,
        LLMRequest(
            messages=messages,
            temperature=body.request.temperature,
            max_output_tokens=body.request.max_tokens,
            model=body.request.model,
        ),
    )

    if not result.ok:
        logger.error(f"[LLM Route] Error from {body.provider}: {result.error.message}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "message": f"Error from LLM provider {body.provider}.",
                "provider_error": {
                    "kind": result.error.kind,
                    "message": result.error.message,
                    "details": result.error.provider_error,
                },
            },
        )

    return LLMProxyResponse(provider=body.provider, text=result.text, raw=result.raw)
