"""
Storage adapters for warnwatch.

This module contains the in-memory snapshot cache shared by the
fetch loop and the query API.
"""

from .warning_cache import WarningCache

__all__ = ["WarningCache"]
