"""
File Selector

Resolves which files of a task's source directory take part in a run:
explicitly named files or top-level glob matches, deduplicated, then
filtered by the task's attribute conditions.

Author: Scheduled Copy Project
License: MIT
"""

import fnmatch
import os
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from ..utils.logger import get_logger
from ..core.models import CopyTask, FileCondition

logger = get_logger(__name__)


class FileSelector:
    """
    Candidate file discovery for a copy task.

    Never raises: enumeration problems are logged and whatever was gathered
    so far is returned.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        """
        Initialize the selector.

        Args:
            today: Clock used by the *Today conditions
        """
        self._today = today

    def select_files(self, task: CopyTask) -> List[Path]:
        """
        List the files a task should copy, in a stable order.

        Args:
            task: Copy task definition

        Returns:
            Absolute file paths that satisfy every condition
        """
        source_dir = Path(task.source_path)

        if task.specific_files:
            candidates = self._specific_files(source_dir, task.specific_files)
        else:
            candidates = self._pattern_files(source_dir, task.file_patterns)

        # Deduplicate by absolute path, first occurrence wins
        unique: Dict[str, Path] = {}
        for path in candidates:
            unique.setdefault(os.path.abspath(path), path)
        files = [Path(p) for p in unique]

        if task.conditions:
            today = self._today()
            files = [f for f in files if self.evaluate_conditions(f, task.conditions, today)]

        logger.debug(f"Selected {len(files)} files for task {task.name or task.id}")
        return files

    def _specific_files(self, source_dir: Path, names: Iterable[str]) -> List[Path]:
        found = []
        for name in names:
            candidate = source_dir / name
            try:
                if candidate.is_file():
                    found.append(candidate)
                else:
                    logger.info(f"Specific file not found, skipping: {candidate}")
            except OSError as e:
                logger.error(f"Error checking specific file {candidate}: {e}")
        return found

    def _pattern_files(self, source_dir: Path, patterns: List[str]) -> List[Path]:
        try:
            with os.scandir(source_dir) as entries:
                names = sorted(e.name for e in entries if self._is_file(e))
        except OSError as e:
            logger.error(f"Error listing files in {source_dir}: {e}")
            return []

        if not patterns:
            return [source_dir / n for n in names]

        matched = []
        for pattern in patterns:
            try:
                matched.extend(source_dir / n for n in names if fnmatch.fnmatch(n, pattern))
            except Exception as e:
                logger.error(f"Error applying pattern {pattern!r} in {source_dir}: {e}")
        return matched

    @staticmethod
    def _is_file(entry: os.DirEntry) -> bool:
        try:
            return entry.is_file()
        except OSError:
            return False

    def evaluate_conditions(
        self,
        file_path: Path,
        conditions: Iterable[FileCondition],
        today: Optional[date] = None
    ) -> bool:
        """
        Check a file against every condition.

        Args:
            file_path: File to test
            conditions: Conditions that must all hold
            today: Reference date for the *Today conditions

        Returns:
            True when the file exists and passes all conditions
        """
        try:
            stat = file_path.stat()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Cannot stat {file_path}, excluding it: {e}")
            return False

        today = today or self._today()
        for condition in conditions:
            if not condition.matches(file_path, stat, today):
                logger.debug(f"{file_path.name} rejected by {condition.type}")
                return False
        return True
