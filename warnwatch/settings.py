# warnwatch/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field
from warnwatch.core.errors import ConfigError
from warnwatch.core.policy import normalize_threshold

SMHI_WARNINGS_URL = "https://opendata-download-warnings.smhi.se/ibww/api/version/1/warning.json"

class Feed(BaseModel):
    url: str = SMHI_WARNINGS_URL
    interval_sec: float = 900.0               # 15분
    timeout_sec: float = 30.0

class Notify(BaseModel):
    severity_threshold: str = "ORANGE"        # YELLOW|ORANGE|RED
    max_inflight: int = 10
    timeout_sec: float = 10.0

class Query(BaseModel):
    default_page_size: int = 10

class Directory(BaseModel):
    path: str = "/data/directory.json"

class Observability(BaseModel):
    http_port: int = 8080
    metrics_enabled: bool = True
    service_name: str = "warnwatch"
    build_version: str = "0.1.0"
    build_date: str = "2026-10-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    # 하위 섹션 (기본값/팩토리로 누락 방지)
    feed: Feed = Field(default_factory=Feed)
    notify: Notify = Field(default_factory=Notify)
    query: Query = Field(default_factory=Query)
    directory: Directory = Field(default_factory=Directory)
    observability: Observability = Field(default_factory=Observability)

    def validate_required(self) -> None:
        """
        기동 전에 필수 설정을 검증합니다.

        Raises:
            ConfigError: 피드 URL 누락, 잘못된 임계값/주기/동시성 값
        """
        if not (self.feed.url or "").strip():
            raise ConfigError("FEED_URL이 설정되지 않았습니다")
        if self.feed.interval_sec <= 0:
            raise ConfigError(f"FEED_INTERVAL_SEC는 0보다 커야 합니다: {self.feed.interval_sec}")
        if self.notify.max_inflight < 1:
            raise ConfigError(f"WEBHOOK_MAX_INFLIGHT는 1 이상이어야 합니다: {self.notify.max_inflight}")
        try:
            self.notify.severity_threshold = normalize_threshold(self.notify.severity_threshold)
        except ValueError as e:
            raise ConfigError(str(e)) from e
