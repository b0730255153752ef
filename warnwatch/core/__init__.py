"""
Core domain models and pure functions for warnwatch.

This module contains the domain models and pure business logic
that are independent of external I/O and infrastructure concerns.
"""

from .models import Snapshot, WeatherWarning, WarningArea, Sensor, WebhookSubscription, NotificationEvent
from .normalize import to_snapshot, to_warning
from .policy import warning_qualifies, area_qualifies

__all__ = [
    "Snapshot", "WeatherWarning", "WarningArea", "Sensor", "WebhookSubscription",
    "NotificationEvent", "to_snapshot", "to_warning", "warning_qualifies", "area_qualifies",
]
