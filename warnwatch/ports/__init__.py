"""
Port interfaces for warnwatch.

This module defines the port interfaces (Protocols) that define
the contracts between the pipeline and external collaborators.
"""

from .directory import SensorDirectoryPort, SubscriberDirectoryPort
from .dispatch import WebhookSenderPort

__all__ = ["SensorDirectoryPort", "SubscriberDirectoryPort", "WebhookSenderPort"]
