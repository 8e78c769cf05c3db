"""
Context service - durable keyed store of opaque context records.

Contexts are shared across agent sessions. The authoritative copy lives in
memory; every mutation writes the full collection to a single JSON snapshot
file before it is committed, so a failed write leaves memory untouched.

Concurrency:
- Mutations on the same context id are serialized by a per-id asyncio.Lock,
  which rules out lost updates from interleaved read-modify-write cycles.
- Snapshot writes are serialized by a store-wide lock so two mutations on
  different ids never race on the file or drop each other from it.

A background task re-persists the snapshot on a fixed interval while the
collection is non-empty (the backstop).
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Union

from pydantic import JsonValue

from core.persistence import (
    PersistenceError,
    SnapshotNotFoundError,
    decode_json,
    encode_json,
    read_snapshot,
    write_snapshot,
)
from models.context import Context, utc_now

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_INTERVAL = 30.0  # seconds


class ContextStoreError(Exception):
    """Base exception for context store errors."""

    pass


class ContextNotFoundError(ContextStoreError):
    """No context exists with the requested id."""

    def __init__(self, context_id: str):
        super().__init__(f"Context {context_id} not found")
        self.context_id = context_id


class ContextValidationError(ContextStoreError):
    """Caller input rejected before any state change."""

    pass


class ContextPersistenceError(ContextStoreError):
    """The snapshot could not be written; the mutation was not applied."""

    pass


class ContextStore:
    """
    Owner of the in-memory context map and its snapshot file.

    One instance per application; the FastAPI lifespan creates it and the
    routers receive it through a dependency.
    """

    def __init__(
        self,
        snapshot_path: Union[str, Path],
        autosave_interval: float = DEFAULT_AUTOSAVE_INTERVAL,
    ):
        """
        Initialize the store.

        Args:
            snapshot_path: JSON file holding every context keyed by id
            autosave_interval: Seconds between backstop saves, <= 0 disables them
        """
        self.snapshot_path = Path(snapshot_path)
        self.autosave_interval = autosave_interval
        self._contexts: Dict[str, Context] = {}
        self._id_locks: Dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._contexts)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def load(self) -> None:
        """Load the snapshot file into memory, starting empty if it is missing or corrupt."""
        try:
            payload = await read_snapshot(self.snapshot_path)
        except SnapshotNotFoundError:
            logger.info(f"No context file found at {self.snapshot_path}, starting with empty contexts")
            return
        except PersistenceError as e:
            logger.error(f"Failed to load contexts from {self.snapshot_path}: {e}")
            return

        try:
            parsed = decode_json(payload)
        except ValueError as e:
            logger.error(f"Context file {self.snapshot_path} is not valid JSON: {e}")
            return

        if not isinstance(parsed, dict):
            logger.error(f"Context file {self.snapshot_path} does not hold an object, ignoring it")
            return

        loaded: Dict[str, Context] = {}
        for key, raw in parsed.items():
            try:
                context = Context.from_dict(raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed context {key!r}: {e}")
                continue
            loaded[context.id] = context

        self._contexts = loaded
        logger.info(f"Loaded {len(loaded)} contexts from {self.snapshot_path}")

    async def start(self) -> None:
        """Start the backstop autosave task."""
        if self._running or self.autosave_interval <= 0:
            return
        self._running = True
        self._task = asyncio.create_task(self._autosave_loop())
        logger.info(f"Context autosave started (every {self.autosave_interval}s)")

    async def stop(self) -> None:
        """Stop the backstop task and flush the snapshot one last time."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._contexts:
            try:
                await self.save()
            except ContextPersistenceError as e:
                logger.error(f"Final context save failed: {e}")
        logger.info("Context autosave stopped")

    async def _autosave_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.autosave_interval)
            if not self._contexts:
                continue
            try:
                logger.debug(f"Auto-saving {len(self._contexts)} contexts...")
                await self.save()
            except ContextPersistenceError as e:
                logger.error(f"Context autosave failed: {e}")

    async def save(self) -> None:
        """
        Write the full collection to the snapshot file.

        Raises:
            ContextPersistenceError: If the write fails
        """
        async with self._write_lock:
            await self._write(self._contexts)

    async def _write(self, contexts: Dict[str, Context]) -> None:
        payload = encode_json({cid: ctx.to_dict() for cid, ctx in contexts.items()})
        try:
            await write_snapshot(self.snapshot_path, payload)
        except PersistenceError as e:
            raise ContextPersistenceError(f"Failed to persist contexts: {e}") from e

    async def _commit(self, context: Context) -> None:
        """Persist the collection with ``context`` in it, then apply it to memory."""
        async with self._write_lock:
            staged = dict(self._contexts)
            staged[context.id] = context
            await self._write(staged)
            self._contexts[context.id] = context

    @asynccontextmanager
    async def _locked(self, context_id: str) -> AsyncIterator[None]:
        """Hold the per-id lock; drop it again once the id no longer exists."""
        lock = self._id_locks.setdefault(context_id, asyncio.Lock())
        try:
            async with lock:
                yield
        finally:
            if (
                context_id not in self._contexts
                and not lock.locked()
                and self._id_locks.get(context_id) is lock
            ):
                del self._id_locks[context_id]

    def _new_id(self) -> str:
        while True:
            context_id = str(uuid.uuid4())
            if context_id not in self._contexts:
                return context_id

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(
        self,
        owner_id: str,
        type: str,
        initial_data: JsonValue = None,
        metadata: Optional[Dict[str, JsonValue]] = None,
    ) -> Context:
        """
        Create and persist a new context.

        Args:
            owner_id: User, agent or session id owning the context
            type: Free-form classification tag
            initial_data: Initial data value, defaults to an empty object
            metadata: Initial metadata, defaults to empty

        Returns:
            The created Context

        Raises:
            ContextValidationError: If owner_id or type is empty
            ContextPersistenceError: If the snapshot write fails
        """
        if not owner_id or not type:
            raise ContextValidationError("ownerId and type are required")

        now = utc_now()
        context = Context(
            id=self._new_id(),
            owner_id=owner_id,
            type=type,
            created_at=now,
            updated_at=now,
            data={} if initial_data is None else initial_data,
            metadata=dict(metadata) if metadata else {},
        )
        await self._commit(context.copy())
        logger.info(f"Context created: {context.id}, type: {type}, owner: {owner_id}")
        return context

    async def get(self, context_id: str) -> Context:
        """
        Get a context from memory.

        Raises:
            ContextNotFoundError: If no context has this id
        """
        context = self._contexts.get(context_id)
        if context is None:
            raise ContextNotFoundError(context_id)
        return context.copy()

    async def list(
        self,
        owner_id: Optional[str] = None,
        type: Optional[str] = None,
    ) -> List[Context]:
        """List contexts, optionally filtered by owner and type, newest first."""
        matches = [
            ctx.copy()
            for ctx in self._contexts.values()
            if (owner_id is None or ctx.owner_id == owner_id) and (type is None or ctx.type == type)
        ]
        return sorted(matches, key=lambda ctx: ctx.created_at, reverse=True)

    async def update(
        self,
        context_id: str,
        data: JsonValue,
        metadata: Optional[Dict[str, JsonValue]] = None,
    ) -> Context:
        """
        Replace a context's data and merge its metadata.

        ``data`` replaces the stored value wholesale; callers must send the
        complete value. ``metadata`` keys are merged into the existing ones.

        Raises:
            ContextNotFoundError: If no context has this id
            ContextPersistenceError: If the snapshot write fails
        """
        async with self._locked(context_id):
            current = self._contexts.get(context_id)
            if current is None:
                raise ContextNotFoundError(context_id)

            updated = current.copy()
            updated.data = data
            if metadata:
                updated.metadata = {**updated.metadata, **metadata}
            updated.updated_at = max(utc_now(), current.updated_at)

            await self._commit(updated.copy())

        logger.info(f"Context updated: {context_id}")
        return updated.copy()

    async def append_to_list(self, context_id: str, list_key: str, item: JsonValue) -> Context:
        """
        Append an item to a list stored under ``data[list_key]``.

        A missing or non-list value at ``list_key`` is replaced by an empty
        list before the append, discarding whatever was there.

        Raises:
            ContextValidationError: If list_key is empty or data is not an object
            ContextNotFoundError: If no context has this id
            ContextPersistenceError: If the snapshot write fails
        """
        if not list_key:
            raise ContextValidationError("listKey is required")

        async with self._locked(context_id):
            current = self._contexts.get(context_id)
            if current is None:
                raise ContextNotFoundError(context_id)
            if not isinstance(current.data, dict):
                raise ContextValidationError(
                    f"Context {context_id} data is not an object, cannot append to '{list_key}'"
                )

            updated = current.copy()
            existing = updated.data.get(list_key)
            if not isinstance(existing, list):
                if existing is not None:
                    logger.warning(
                        f"Replacing non-list value at '{list_key}' in context {context_id} with a list"
                    )
                existing = []
            updated.data[list_key] = existing + [item]
            updated.updated_at = max(utc_now(), current.updated_at)

            await self._commit(updated.copy())

        logger.info(f"Item appended to list '{list_key}' in context: {context_id}")
        return updated.copy()

    async def delete(self, context_id: str) -> bool:
        """
        Delete a context.

        Returns:
            True if deleted, False if not found

        Raises:
            ContextPersistenceError: If the snapshot write fails
        """
        async with self._locked(context_id):
            if context_id not in self._contexts:
                return False

            async with self._write_lock:
                staged = dict(self._contexts)
                del staged[context_id]
                await self._write(staged)
                del self._contexts[context_id]

        logger.info(f"Context deleted: {context_id}")
        return True
