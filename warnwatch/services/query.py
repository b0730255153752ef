"""
Query service for warnwatch.

This module filters and paginates the cached snapshot for API
consumers. It never mutates the cache; narrowed warnings are copies.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from warnwatch.adapters.storage.warning_cache import WarningCache
from warnwatch.core.models import WarningArea, WeatherWarning

DEFAULT_PAGE_SIZE = 10


def _narrow_by_area_name(warning: WeatherWarning, needle: str) -> Optional[WeatherWarning]:
    """일치하는 영역만 남긴 사본을 반환합니다. 일치가 없으면 None."""
    matching_areas: list[WarningArea] = []
    for area in warning.warning_areas:
        affected = tuple(
            a for a in area.affected_areas
            if any(needle in name.lower() for name in a.names)
        )
        if affected:
            matching_areas.append(area.model_copy(update={"affected_areas": affected}))

    if not matching_areas:
        return None
    return warning.model_copy(update={"warning_areas": tuple(matching_areas)})


def filter_warnings(
    warnings: Sequence[WeatherWarning],
    event_type: Optional[str] = None,
    area_name: Optional[str] = None,
) -> List[WeatherWarning]:
    filtered: List[WeatherWarning] = []
    needle = (area_name or "").lower()
    for warning in warnings:
        if event_type and warning.event.code != event_type:
            continue
        if needle:
            narrowed = _narrow_by_area_name(warning, needle)
            if narrowed is None:
                continue
            warning = narrowed
        filtered.append(warning)
    return filtered


def paginate(items: Sequence[WeatherWarning], page: int, page_size: int) -> List[WeatherWarning]:
    start = (page - 1) * page_size
    if start >= len(items):
        return []
    return list(items[start:start + page_size])


class QueryService:
    """현재 스냅샷에 대한 읽기 전용 조회 서비스"""

    def __init__(self, cache: WarningCache, default_page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.cache = cache
        self.default_page_size = default_page_size if default_page_size > 0 else DEFAULT_PAGE_SIZE

    def query(
        self,
        event_type: Optional[str] = None,
        area_name: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> List[WeatherWarning]:
        """
        현재 스냅샷을 필터링하고 한 페이지를 피드 순서대로 반환합니다.

        Args:
            event_type: 이벤트 코드 정확히 일치 (빈 값이면 필터 없음)
            area_name: 영향 지역 이름 부분 문자열 (대소문자 무시)
            page: 1부터 시작하는 페이지 (1 미만이면 1)
            page_size: 페이지 크기 (1 미만이면 기본값)

        Returns:
            경보 목록 (범위를 벗어난 페이지는 빈 목록)
        """
        if page < 1:
            page = 1
        if page_size is None or page_size < 1:
            page_size = self.default_page_size

        snapshot = self.cache.read()
        filtered = filter_warnings(snapshot.warnings, event_type, area_name)
        return paginate(filtered, page, page_size)
