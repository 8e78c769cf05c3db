"""Context router.

CRUD over the context store: create, read, full-replace update, append to
a list inside a context's data, delete, and a filtered listing.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from core.dependencies import get_context_store
from core.services.context_service import (
    ContextNotFoundError,
    ContextPersistenceError,
    ContextStore,
    ContextValidationError,
)
from schemas.context import (
    AppendToListRequest,
    ContextListResponse,
    ContextResponse,
    CreateContextRequest,
    UpdateContextRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/context", tags=["context"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Context not found")


def _storage_failure(e: ContextPersistenceError, action: str) -> HTTPException:
    logger.error(f"Failed to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "IOError", "message": f"Failed to {action}: storage unavailable"},
    )


@router.post("", response_model=ContextResponse, status_code=status.HTTP_201_CREATED)
async def create_context(
    request: CreateContextRequest,
    store: ContextStore = Depends(get_context_store),
) -> ContextResponse:
    """Create a context and persist it before returning."""
    try:
        context = await store.create(
            owner_id=request.owner_id,
            type=request.type,
            initial_data=request.initial_data,
            metadata=request.metadata,
        )
    except ContextValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ContextPersistenceError as e:
        raise _storage_failure(e, "create context")
    return ContextResponse.from_context(context)


@router.get("", response_model=ContextListResponse)
async def list_contexts(
    owner_id: Optional[str] = Query(default=None, alias="ownerId"),
    type: Optional[str] = Query(default=None),
    store: ContextStore = Depends(get_context_store),
) -> ContextListResponse:
    """List contexts, optionally filtered by owner and type."""
    contexts = await store.list(owner_id=owner_id, type=type)
    return ContextListResponse(contexts=[ContextResponse.from_context(c) for c in contexts])


@router.get("/{context_id}", response_model=ContextResponse)
async def get_context(
    context_id: str,
    store: ContextStore = Depends(get_context_store),
) -> ContextResponse:
    try:
        context = await store.get(context_id)
    except ContextNotFoundError:
        raise _not_found()
    return ContextResponse.from_context(context)


@router.put("/{context_id}", response_model=ContextResponse)
async def update_context(
    context_id: str,
    request: UpdateContextRequest,
    store: ContextStore = Depends(get_context_store),
) -> ContextResponse:
    """
    Replace a context's data.

    ``data`` replaces the stored value wholesale; ``metadata`` is merged.
    """
    try:
        context = await store.update(context_id, request.data, request.metadata)
    except ContextNotFoundError:
        raise _not_found()
    except ContextPersistenceError as e:
        raise _storage_failure(e, "update context")
    return ContextResponse.from_context(context)


@router.post("/{context_id}/append", response_model=ContextResponse)
async def append_to_context_list(
    context_id: str,
    request: AppendToListRequest,
    store: ContextStore = Depends(get_context_store),
) -> ContextResponse:
    """Append an item to ``data[listKey]``, creating the list if needed."""
    try:
        context = await store.append_to_list(context_id, request.list_key, request.item)
    except ContextNotFoundError:
        raise _not_found()
    except ContextValidationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ContextPersistenceError as e:
        raise _storage_failure(e, "append to context list")
    return ContextResponse.from_context(context)


@router.delete("/{context_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_context(
    context_id: str,
    store: ContextStore = Depends(get_context_store),
) -> Response:
    try:
        deleted = await store.delete(context_id)
    except ContextPersistenceError as e:
        raise _storage_failure(e, "delete context")
    if not deleted:
        raise _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
