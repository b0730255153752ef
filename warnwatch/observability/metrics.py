"""
Metrics definitions for warnwatch.

This module defines Prometheus metrics for monitoring
the fetch -> match -> notify pipeline.
"""

from prometheus_client import Counter, Histogram, Gauge

# 카운터 메트릭
feed_fetches = Counter(
    "feed_fetches_total",
    "Number of warning feed fetch attempts",
    ["result"]
)

fetch_ticks_skipped = Counter(
    "fetch_ticks_skipped_total",
    "Scheduler ticks skipped because a fetch was still in flight"
)

sensors_matched = Counter(
    "sensors_matched_total",
    "Sensor/warning pairs matched by geometry",
    ["severity"]
)

areas_skipped = Counter(
    "warning_areas_skipped_total",
    "Warning areas skipped for matching because of invalid geometry"
)

status_updates = Counter(
    "sensor_status_updates_total",
    "Sensor status update calls",
    ["result"]
)

webhook_deliveries = Counter(
    "webhook_deliveries_total",
    "Outbound webhook delivery attempts",
    ["result"]
)

# 히스토그램 메트릭
fetch_seconds = Histogram(
    "feed_fetch_duration_seconds",
    "Time spent fetching and decoding the warning feed",
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

dispatch_seconds = Histogram(
    "dispatch_duration_seconds",
    "Time spent on one notification pass",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0]
)

# 게이지 메트릭
warnings_cached = Gauge(
    "warnings_cached",
    "Number of warnings in the current snapshot"
)

deliveries_inflight = Gauge(
    "webhook_deliveries_inflight",
    "Webhook deliveries currently in flight"
)

uptime_seconds = Gauge(
    "uptime_seconds",
    "Service uptime in seconds"
)
