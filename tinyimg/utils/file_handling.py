"""
Utilities for file handling and temporary file management.
"""
import os
import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional, Set, Union

from tinyimg.config import TEMP_DIR
from tinyimg.core.errors import OptimizationIOError

# Set up logging
logger = logging.getLogger(__name__)

# Pending cleanup tasks; the event loop only keeps weak references
_cleanups: Set[asyncio.Task] = set()


def get_temp_filepath(file_id: Optional[str] = None, suffix: str = "") -> str:
    """
    Generate a path for a temporary file.

    Args:
        file_id: Optional file ID to use (generates a new UUID if not provided)
        suffix: Optional file suffix/extension

    Returns:
        Absolute path to a temporary file
    """
    if file_id is None:
        file_id = str(uuid.uuid4())

    os.makedirs(TEMP_DIR, exist_ok=True)
    return os.path.join(TEMP_DIR, f"{file_id}{suffix}")


def ensure_parent_dir(path: Union[str, Path]) -> Path:
    """
    Create the parent directory of path if it does not exist yet.

    Safe to call repeatedly and from several tasks sharing one directory.

    Raises:
        OptimizationIOError: If the directory cannot be created
    """
    parent = Path(path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OptimizationIOError(f"Failed to create directory {parent}: {e}") from e
    return parent


def read_bytes(path: Union[str, Path]) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise OptimizationIOError(f"Failed to read {path}: {e}") from e


def atomic_write(path: Union[str, Path], data: bytes) -> None:
    """
    Write data to path through a temporary file in the same directory.

    The destination is either left untouched or fully replaced, which keeps
    in-place optimization safe when a write fails midway. An existing
    destination keeps its permission bits.

    Raises:
        OptimizationIOError: If the file cannot be written
    """
    path = Path(path)
    ensure_parent_dir(path)
    temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        with open(temp_path, "xb") as f:
            f.write(data)
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError as e:
        raise OptimizationIOError(f"Failed to write {path}: {e}") from e
    finally:
        if temp_path.exists():
            temp_path.unlink()



async def cleanup_file_later(file_path: str, delay: float = 60) -> None:
    """
    Delete a file after a delay.

    Args:
        file_path: Path to the file to delete
        delay: Delay in seconds before deletion (default: 60)
    """
    logger.debug(f"Scheduling cleanup of {file_path} in {delay} seconds")
    await asyncio.sleep(delay)
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.debug(f"Cleaned up temporary file: {file_path}")
    except OSError as e:
        logger.error(f"Failed to clean up temporary file {file_path}: {e}")


def schedule_cleanup(file_path: str, delay: float = 60) -> None:
    """
    Schedule a file for deletion after a delay (non-blocking).

    Must be called from a running event loop.
    """
    task = asyncio.create_task(cleanup_file_later(file_path, delay))
    _cleanups.add(task)
    task.add_done_callback(_cleanups.discard)
