"""
Sync Engine Module

Copy pipeline: file selection, duplicate resolution and copy execution.

Author: Scheduled Copy Project
License: MIT
"""

from .file_selector import FileSelector
from .deduplicator import DuplicateResolver, DuplicateCheckResult
from .copy_executor import CopyExecutor, CANCELLED_MESSAGE

__all__ = [
    'FileSelector', 'DuplicateResolver', 'DuplicateCheckResult',
    'CopyExecutor', 'CANCELLED_MESSAGE'
]
