"""
Snapshot persistence for the JSON-backed stores.

Pure file I/O with no business rules: read a snapshot, write a snapshot,
copy a file. Blocking calls run in the default thread pool executor so the
event loop keeps serving other requests while a file is being read or
written. Nothing is cached between calls.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PersistenceError(Exception):
    """Storage fault while reading, writing or copying a file."""

    def __init__(self, message: str, path: PathLike):
        super().__init__(message)
        self.path = str(path)


class SnapshotNotFoundError(PersistenceError):
    """The snapshot file does not exist."""

    pass


class DestinationExistsError(PersistenceError):
    """An exclusive copy found its destination already present."""

    pass


def encode_json(value: Any) -> bytes:
    """Serialize a JSON value the way snapshots are stored on disk."""
    return json.dumps(value, indent=2, ensure_ascii=False).encode("utf-8")


def decode_json(payload: bytes) -> Any:
    """Parse snapshot bytes. Raises ValueError on malformed content."""
    return json.loads(payload.decode("utf-8"))


def _read_bytes(path: Path) -> bytes:
    return path.read_bytes()


def _write_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


async def read_snapshot(path: PathLike) -> bytes:
    """
    Read a snapshot file.

    Args:
        path: Snapshot file path

    Returns:
        Raw file contents

    Raises:
        SnapshotNotFoundError: If the file does not exist
        PersistenceError: For any other OS-level failure
    """
    target = Path(path)
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _read_bytes, target)
    except FileNotFoundError as e:
        raise SnapshotNotFoundError(f"Snapshot not found: {target}", target) from e
    except OSError as e:
        logger.error("Failed to read snapshot %s: %s", target, e)
        raise PersistenceError(f"Failed to read {target}: {e}", target) from e


async def write_snapshot(path: PathLike, payload: bytes) -> None:
    """
    Replace a snapshot file with new contents.

    The payload goes to a temp file in the same directory which is then
    renamed over the target, so readers see either the old or the new file.

    Raises:
        PersistenceError: If the write or rename fails
    """
    target = Path(path)
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, _write_atomic, target, payload)
    except OSError as e:
        logger.error("Failed to write snapshot %s: %s", target, e)
        raise PersistenceError(f"Failed to write {target}: {e}", target) from e


def _copy_exclusive(source: Path, destination: Path) -> None:
    # "xb" fails if destination exists, so an existing file is never replaced
    with open(source, "rb") as src, open(destination, "xb") as dst:
        shutil.copyfileobj(src, dst)
    shutil.copystat(source, destination)


async def copy_file(src: PathLike, dst: PathLike, overwrite: bool = True) -> None:
    """
    Copy a file, preserving its metadata.

    Args:
        src: File to copy
        dst: Destination path
        overwrite: Replace an existing destination; when False the copy
            fails with DestinationExistsError instead

    Raises:
        DestinationExistsError: If overwrite is False and dst exists
        PersistenceError: If the copy fails (including a missing source)
    """
    source, destination = Path(src), Path(dst)
    copier = shutil.copy2 if overwrite else _copy_exclusive
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, copier, source, destination)
    except FileExistsError as e:
        raise DestinationExistsError(f"Destination already exists: {destination}", destination) from e
    except OSError as e:
        logger.error("Failed to copy %s to %s: %s", source, destination, e)
        raise PersistenceError(f"Failed to copy {source} to {destination}: {e}", source) from e
