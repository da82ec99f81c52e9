"""
Scheduled Copy

Copies files from a source folder to one or more destinations on a
schedule, with selection rules and duplicate handling.

Author: Scheduled Copy Project
License: MIT
"""

from .core.orchestrator import FileTaskService
from .config import Config, load_config

__version__ = "0.1.0"
__all__ = ['FileTaskService', 'Config', 'load_config']
