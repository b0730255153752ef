"""
Orchestrators for warnwatch.

This module contains the orchestrators that coordinate
the flow between ports and adapters.
"""
from .dispatcher import NotificationDispatcher
from .orchestrator import Orchestrator

__all__ = ["NotificationDispatcher", "Orchestrator"]
