"""
Adapters for warnwatch hexagonal architecture.

This module contains the concrete implementations of port interfaces
that handle external I/O and infrastructure concerns.
"""

from .storage import WarningCache
from .smhi.client import WarningFetcher
from .webhook.sender import WebhookSender
from .directory.json_directory import JsonDirectory

__all__ = ["WarningCache", "WarningFetcher", "WebhookSender", "JsonDirectory"]
