"""
Duplicate Resolver

Decides, for one source file and its intended destination, whether to copy,
skip, overwrite or copy under a new name. Comparison strategies range from
cheap metadata checks to a full content hash.

Author: Scheduled Copy Project
License: MIT
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..utils.logger import get_logger
from ..utils.file_ops import calculate_file_hash, generate_unique_path, DEFAULT_CHUNK_SIZE
from ..core.models import DuplicateComparison, DuplicateHandling

logger = get_logger(__name__)


@dataclass
class DuplicateCheckResult:
    """Outcome of duplicate resolution for one destination."""
    copy: bool
    destination: Optional[Path]
    reason: str
    renamed: bool = False


class DuplicateResolver:
    """
    Duplicate handling for the copy pipeline.

    Features:
    - Skip / Overwrite / OverwriteIfNewer / RenameNew policies
    - Size, modification time or SHA-256 content comparison
    - Hash cache keyed by (path, size, mtime) so unchanged files are read once
    - Hash failures degrade to size + modification time comparison
    """

    HASH_ALGORITHM = 'sha256'
    CHUNK_SIZE = DEFAULT_CHUNK_SIZE
    MAX_CACHE_ENTRIES = 10000

    def __init__(
        self,
        hash_algorithm: Optional[str] = None,
        chunk_size: Optional[int] = None,
        max_rename_attempts: int = 1000
    ):
        """
        Initialize the resolver.

        Args:
            hash_algorithm: hashlib algorithm for HashContent comparisons
            chunk_size: Read size used while hashing
            max_rename_attempts: Highest _(N) suffix tried by RenameNew
        """
        self.hash_algorithm = hash_algorithm or self.HASH_ALGORITHM
        self.chunk_size = chunk_size or self.CHUNK_SIZE
        self.max_rename_attempts = max_rename_attempts
        self._hash_cache: Dict[Tuple[str, int, int], str] = {}
        self._cache_lock = threading.Lock()

    def resolve(
        self,
        source: Path,
        destination: Path,
        policy: DuplicateHandling,
        comparison: DuplicateComparison
    ) -> DuplicateCheckResult:
        """
        Decide what to do with ``source`` given its naive destination path.

        Args:
            source: Source file
            destination: Destination path the file would get without renaming
            policy: Task's duplicate handling policy
            comparison: Task's comparison strategy

        Returns:
            DuplicateCheckResult with the decision and the final destination

        Raises:
            RenameExhaustedError: If RenameNew cannot find a free name
            OSError: If the files cannot be inspected
        """
        if not destination.exists():
            return DuplicateCheckResult(copy=True, destination=destination, reason="new file")

        policy = DuplicateHandling(policy)
        comparison = DuplicateComparison(comparison)

        if policy == DuplicateHandling.OVERWRITE:
            return DuplicateCheckResult(copy=True, destination=destination, reason="overwrite")

        if policy == DuplicateHandling.SKIP:
            if self.files_equal(source, destination, comparison):
                return DuplicateCheckResult(
                    copy=False, destination=None,
                    reason=f"identical by {comparison.value}"
                )
            return DuplicateCheckResult(
                copy=True, destination=destination,
                reason=f"differs by {comparison.value}"
            )

        if policy == DuplicateHandling.OVERWRITE_IF_NEWER:
            if source.stat().st_mtime_ns > destination.stat().st_mtime_ns:
                return DuplicateCheckResult(copy=True, destination=destination, reason="source is newer")
            return DuplicateCheckResult(copy=False, destination=None, reason="destination is up to date")

        if policy == DuplicateHandling.RENAME_NEW:
            if self.files_equal(source, destination, comparison):
                return DuplicateCheckResult(
                    copy=False, destination=None,
                    reason=f"identical by {comparison.value}"
                )
            alternate = generate_unique_path(destination, self.max_rename_attempts)
            logger.info(f"Destination exists, copying {source.name} as {alternate.name}")
            return DuplicateCheckResult(
                copy=True, destination=alternate, reason="renamed", renamed=True
            )

        raise ValueError(f"Unknown duplicate handling policy: {policy}")

    def files_equal(self, source: Path, destination: Path, comparison: DuplicateComparison) -> bool:
        """
        Compare two existing files under ``comparison``.

        Args:
            source: First file
            destination: Second file
            comparison: Strategy

        Returns:
            True when the files count as the same
        """
        comparison = DuplicateComparison(comparison)

        if comparison == DuplicateComparison.HASH_CONTENT:
            try:
                return self.calculate_hash(source) == self.calculate_hash(destination)
            except OSError as e:
                logger.warning(
                    f"Hash comparison failed for {source.name} ({e}); "
                    f"falling back to {DuplicateComparison.SIZE_AND_DATE.value}"
                )
                comparison = DuplicateComparison.SIZE_AND_DATE

        src_stat = source.stat()
        dst_stat = destination.stat()

        same_size = src_stat.st_size == dst_stat.st_size
        same_date = src_stat.st_mtime_ns == dst_stat.st_mtime_ns

        if comparison == DuplicateComparison.SIZE_ONLY:
            return same_size
        if comparison == DuplicateComparison.DATE_ONLY:
            return same_date
        return same_size and same_date

    def calculate_hash(self, file_path: Path, use_cache: bool = True) -> str:
        """
        Calculate the content hash of a file.

        Args:
            file_path: Path to file
            use_cache: Whether to reuse a hash for an unchanged file

        Returns:
            Hex string of file hash
        """
        stat = os.stat(file_path)
        cache_key = (os.path.abspath(file_path), stat.st_size, stat.st_mtime_ns)

        if use_cache:
            with self._cache_lock:
                cached = self._hash_cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Using cached hash for {Path(file_path).name}")
                return cached

        logger.debug(f"Calculating {self.hash_algorithm} hash for {Path(file_path).name}")
        hash_value = calculate_file_hash(file_path, self.hash_algorithm, self.chunk_size)

        with self._cache_lock:
            self._hash_cache[cache_key] = hash_value
            while len(self._hash_cache) > self.MAX_CACHE_ENTRIES:
                # Oldest insertion first
                self._hash_cache.pop(next(iter(self._hash_cache)))
        return hash_value

    def clear_cache(self):
        """Clear hash cache."""
        with self._cache_lock:
            self._hash_cache.clear()
        logger.info("Hash cache cleared")
