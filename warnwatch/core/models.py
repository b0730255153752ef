"""
Core domain models for warnwatch.

This module defines the core domain models using Pydantic v2
for type safety and validation. Feed-facing models keep the
feed's camelCase field names as aliases.
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# 심각도 레벨 (낮음 -> 높음)
SEVERITY_LEVELS: Tuple[str, ...] = ("YELLOW", "ORANGE", "RED")


class FeedModel(BaseModel):
    """피드 JSON과 호환되는 불변 모델 베이스"""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LocalizedText(FeedModel):
    """영어/스웨덴어 이중 언어 텍스트"""
    en: str = ""
    sv: str = ""
    code: Optional[str] = None

    @property
    def display(self) -> str:
        return self.en or self.sv or (self.code or "")


class Event(LocalizedText):
    """경보 이벤트 분류"""
    mho_classification: Optional[LocalizedText] = None


class Description(FeedModel):
    title: LocalizedText = Field(default_factory=LocalizedText)
    text: LocalizedText = Field(default_factory=LocalizedText)


class Geometry(FeedModel):
    """지리적 형상 모델 (Polygon / MultiPolygon)"""
    type: str
    coordinates: Any = None


class AffectedArea(FeedModel):
    """텍스트 필터링에 쓰이는 영향 지역"""
    id: int
    sv: str = ""
    en: str = ""

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(n for n in (self.sv, self.en) if n)


class WarningArea(FeedModel):
    """경보 영역 모델"""
    id: int
    area: Geometry
    area_name: Optional[LocalizedText] = None
    approximate_start: Optional[datetime] = None
    approximate_end: Optional[datetime] = None
    normal_probability: bool = False
    warning_level: Optional[LocalizedText] = None
    event_description: Optional[LocalizedText] = None
    published: Optional[datetime] = None
    descriptions: Tuple[Description, ...] = ()
    affected_areas: Tuple[AffectedArea, ...] = ()

    @property
    def level(self) -> str:
        """영역 자체의 경보 레벨 코드 (대문자)"""
        if self.warning_level is None or not self.warning_level.code:
            return ""
        return self.warning_level.code.upper()


class WeatherWarning(FeedModel):
    """피드에서 가져온 단일 기상 경보"""
    id: int
    event: Event
    normal_probability: bool = False
    area_name: Optional[LocalizedText] = None
    descriptions: Tuple[Description, ...] = ()
    warning_areas: Tuple[WarningArea, ...] = ()

    @property
    def severity(self) -> Optional[str]:
        """
        경보의 대표 심각도를 반환합니다.

        영역 레벨 중 가장 높은 값을 사용하고, 영역 레벨이 없으면
        이벤트 코드가 레벨 이름일 때만 그 값을 사용합니다.
        """
        levels = [a.level for a in self.warning_areas if a.level in SEVERITY_LEVELS]
        if levels:
            return max(levels, key=SEVERITY_LEVELS.index)
        code = (self.event.code or "").upper()
        return code if code in SEVERITY_LEVELS else None


class Snapshot(BaseModel):
    """캐시 교체 단위: 경보 목록 + 조회 시각"""
    model_config = ConfigDict(frozen=True)

    warnings: Tuple[WeatherWarning, ...] = ()
    fetched_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.warnings)


class Sensor(BaseModel):
    """외부 디렉토리가 소유한 센서 (읽기 전용)"""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    latitude: float
    longitude: float
    status: str = "OK"
    tenant_id: int
    description: Optional[str] = None


class WebhookSubscription(BaseModel):
    """테넌트에 속한 웹훅 구독"""
    model_config = ConfigDict(frozen=True)

    url: str
    tenant_id: int
    user_id: Optional[int] = None


class NotificationEvent(BaseModel):
    """한 처리 패스 안에서 중복 제거에 쓰이는 팬아웃 단위"""
    model_config = ConfigDict(frozen=True)

    sensor_id: int
    warning_id: int
    severity: str


class Delivery(BaseModel):
    """단일 웹훅 발송 건"""
    model_config = ConfigDict(frozen=True)

    url: str
    event: NotificationEvent
    payload: dict


class DispatchReport(BaseModel):
    """처리 패스 결과 요약"""
    qualifying_warnings: int = 0
    skipped_areas: int = 0
    matched_sensors: int = 0
    status_updates_ok: int = 0
    status_updates_failed: int = 0
    deliveries_ok: int = 0
    deliveries_failed: int = 0
    events: List[NotificationEvent] = Field(default_factory=list)
