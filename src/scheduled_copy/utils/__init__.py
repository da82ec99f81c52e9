"""
Utility helpers: logging setup and low-level file operations.

Author: Scheduled Copy Project
License: MIT
"""
