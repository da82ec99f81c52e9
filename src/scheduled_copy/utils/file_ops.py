"""
File Operation Utilities

Provides low-level file operations used by the copy pipeline: hashing,
chunked copying with cooperative cancellation, and collision-free naming.

Author: Scheduled Copy Project
License: MIT
"""

import hashlib
import os
import shutil
import threading
from pathlib import Path
from typing import Optional, Union

from .logger import get_logger
from ..core.exceptions import OperationCancelledError, RenameExhaustedError

logger = get_logger(__name__)

PathLike = Union[str, os.PathLike]

DEFAULT_CHUNK_SIZE = 81920
MIN_DIGEST_BITS = 256


def calculate_file_hash(file_path: PathLike, algorithm: str = "sha256", chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """
    Calculate hash of a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm (sha256, sha512, blake2b, ...)
        chunk_size: Size of chunks to read (bytes)

    Returns:
        Hexadecimal hash string

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is unsupported
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        hash_func = hashlib.new(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def is_strong_hash_algorithm(algorithm: str) -> bool:
    """Check that ``algorithm`` exists in hashlib and yields at least a 256-bit digest."""
    try:
        digest_size = hashlib.new(algorithm).digest_size
    except (ValueError, TypeError):
        return False
    return digest_size * 8 >= MIN_DIGEST_BITS


def copy_file_chunked(
    source: PathLike,
    destination: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
    exclusive: bool = False,
    preserve_metadata: bool = True
) -> int:
    """
    Stream ``source`` into ``destination`` one chunk at a time.

    The cancellation event is checked before every chunk. A cancelled copy
    leaves the partially written destination in place.

    Args:
        source: Source file path
        destination: Destination file path (parent must exist)
        chunk_size: Bytes read per iteration
        cancel_event: Optional event; when set the copy stops
        exclusive: Fail with FileExistsError instead of replacing an existing file
        preserve_metadata: Copy timestamps and mode bits after the data

    Returns:
        Number of bytes written

    Raises:
        OperationCancelledError: If cancellation was requested mid-copy
        OSError: On any read/write failure
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive: {chunk_size}")

    mode = 'xb' if exclusive else 'wb'
    written = 0

    with open(source, 'rb') as src, open(destination, mode) as dst:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError()
            chunk = src.read(chunk_size)
            if not chunk:
                break
            dst.write(chunk)
            written += len(chunk)

    if preserve_metadata:
        shutil.copystat(source, destination)

    return written


def generate_unique_path(file_path: PathLike, max_attempts: int = 1000) -> Path:
    """
    Find an unused sibling of ``file_path`` named ``stem_(N)suffix``.

    Args:
        file_path: The path that is already taken
        max_attempts: Highest N to probe

    Returns:
        First path that does not exist

    Raises:
        RenameExhaustedError: If every candidate up to max_attempts is taken
    """
    path = Path(file_path)
    stem = path.stem
    suffix = path.suffix

    for counter in range(1, max_attempts + 1):
        candidate = path.with_name(f"{stem}_({counter}){suffix}")
        if not candidate.exists():
            logger.debug(f"Generated unique filename: {candidate.name}")
            return candidate

    raise RenameExhaustedError(str(path), max_attempts)


def ensure_directory(directory: PathLike) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: Directory path

    Returns:
        The directory as a Path

    Raises:
        OSError: If the directory cannot be created
    """
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path
