"""
테스트 설정 및 픽스처

이 모듈은 pytest 설정과 공통 픽스처를 제공합니다.
"""

import asyncio
import json
import pytest
from typing import Any, Callable, Dict, List, Optional, Union
from loguru import logger
from warnwatch.core.models import Sensor, WebhookSubscription
from warnwatch.core.normalize import to_warning
from warnwatch.settings import Settings

# 스톡홀름 주변 1도 x 1도 사각형 (경도 18~19, 위도 59~60)
SQUARE = [[[18.0, 59.0], [19.0, 59.0], [19.0, 60.0], [18.0, 60.0], [18.0, 59.0]]]
STOCKHOLM = (18.07, 59.33)
UPPSALA = (17.64, 59.86)


def raw_area(area_id: int = 10,
             level: Optional[str] = "ORANGE",
             coordinates: Any = None,
             geometry_type: str = "Polygon",
             affected: Optional[List[Dict[str, Any]]] = None,
             as_feature: bool = False) -> Dict[str, Any]:
    """피드 형태의 warningArea 딕셔너리"""
    geometry = {"type": geometry_type, "coordinates": SQUARE if coordinates is None else coordinates}
    area: Dict[str, Any] = geometry
    if as_feature:
        area = {"type": "Feature", "properties": {}, "geometry": geometry}
    data: Dict[str, Any] = {
        "id": area_id,
        "area": area,
        "areaName": {"sv": "Stockholms län", "en": "Stockholm County"},
        "approximateStart": "2026-10-19T06:00:00Z",
        "approximateEnd": "2026-10-19T18:00:00Z",
        "normalProbability": True,
        "eventDescription": {"sv": "Kuling", "en": "Gale", "code": "GALE"},
        "published": "2026-10-18T12:00:00Z",
        "descriptions": [],
        "affectedAreas": affected if affected is not None else [
            {"id": 1, "sv": "Stockholms län", "en": "Stockholm County"},
        ],
    }
    if level is not None:
        data["warningLevel"] = {"sv": level.title(), "en": level.title(), "code": level}
    return data


def raw_warning(warning_id: int = 1,
                event_code: str = "WIND",
                event_en: str = "Wind",
                areas: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """피드 형태의 경보 딕셔너리"""
    return {
        "id": warning_id,
        "normalProbability": True,
        "event": {
            "sv": "Vind",
            "en": event_en,
            "code": event_code,
            "mhoClassification": {"sv": "Meteorologi", "en": "Meteorology", "code": "MET"},
        },
        "descriptions": [],
        "warningAreas": [raw_area()] if areas is None else areas,
    }


class FakeResponse:
    """aiohttp 응답 대역 (async with 지원)"""

    def __init__(self, status: int = 200, body: Union[str, bytes] = "", delay: float = 0.0,
                 exc: Optional[BaseException] = None):
        self.status = status
        self.body = body
        self.delay = delay
        self.exc = exc

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def read(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    async def text(self) -> str:
        return (await self.read()).decode("utf-8")


class FakeSession:
    """aiohttp.ClientSession 대역. responder(url)가 FakeResponse를 돌려줍니다."""

    def __init__(self, responder: Callable[[str], FakeResponse]):
        self.responder = responder
        self.calls: List[tuple] = []
        self.closed = False

    def get(self, url: str, **kwargs):
        self.calls.append(("GET", url, None))
        return self.responder(url)

    def post(self, url: str, json: Any = None, **kwargs):
        self.calls.append(("POST", url, json))
        return self.responder(url)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_session():
    """고정 응답 또는 응답 함수로 FakeSession을 만드는 팩토리"""
    def _make(response=None, responder=None) -> FakeSession:
        if responder is None:
            fixed = response if response is not None else FakeResponse()
            responder = lambda url: fixed
        return FakeSession(responder)
    return _make


@pytest.fixture
def feed_body():
    """정상 피드 응답 본문 (Feature로 감싼 영역 포함)"""
    return json.dumps([
        raw_warning(1, areas=[raw_area(10, "ORANGE", as_feature=True)]),
        raw_warning(2, event_code="RAIN", event_en="Rain", areas=[raw_area(20, "YELLOW")]),
    ])


@pytest.fixture
def orange_warning():
    """스톡홀름 사각형에 대한 ORANGE 경보"""
    return to_warning(raw_warning(1, areas=[raw_area(10, "ORANGE")]))


@pytest.fixture
def sensors():
    """테스트용 센서 목록 (테넌트 1: 스톡홀름/웁살라, 테넌트 2: 스톡홀름)"""
    return [
        Sensor(id=1, name="Stockholm roof", longitude=STOCKHOLM[0], latitude=STOCKHOLM[1], tenant_id=1),
        Sensor(id=2, name="Uppsala yard", longitude=UPPSALA[0], latitude=UPPSALA[1], tenant_id=1),
        Sensor(id=3, name="Södermalm", longitude=18.06, latitude=59.31, tenant_id=2),
    ]


@pytest.fixture
def webhooks():
    """테스트용 웹훅 구독"""
    return [
        WebhookSubscription(url="https://hooks.example/a", tenant_id=1, user_id=7),
        WebhookSubscription(url="https://hooks.example/b", tenant_id=2, user_id=8),
    ]


@pytest.fixture
def sample_settings():
    """테스트용 설정"""
    settings = Settings()
    settings.observability.service_name = "test-service"
    settings.observability.build_version = "1.0.0"
    settings.observability.log_level = "INFO"
    return settings


@pytest.fixture
def log_records():
    """loguru 레코드를 수집하는 싱크"""
    records: List[dict] = []
    sink_id = logger.add(lambda m: records.append(m.record), level="DEBUG")
    yield records
    logger.remove(sink_id)


# pytest 설정
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "slow: 느린 테스트 마커"
    )
    config.addinivalue_line(
        "markers", "integration: 통합 테스트 마커"
    )


def pytest_collection_modifyitems(config, items):
    """테스트 아이템 수정"""
    for item in items:
        # 느린 테스트 마커 추가
        if "performance" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)

        # 통합 테스트 마커 추가
        if "integration" in item.name:
            item.add_marker(pytest.mark.integration)
