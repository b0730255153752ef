"""
Normalization functions for warnwatch.

This module contains pure functions for converting raw feed
payloads into internal domain models.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from .errors import FeedDecodeError
from .models import Snapshot, WeatherWarning
from warnwatch.observability.logging_setup import get_logger

log = get_logger("warnwatch.normalize")


def _unknown_geometry(raw: Any) -> Dict[str, Any]:
    """판정 불가 영역. 조회 API에는 그대로 노출되고 매칭에서만 제외됩니다."""
    coordinates = raw.get("coordinates") if isinstance(raw, dict) else None
    return {"type": "Unknown", "coordinates": coordinates}


def _unwrap_area(raw_area: Dict[str, Any]) -> Dict[str, Any]:
    """
    area를 지오메트리 딕셔너리로 정리합니다.

    GeoJSON Feature는 geometry만 남기고, 누락되었거나 type이 문자열이 아닌
    지오메트리는 Unknown 타입으로 바꿔 경보 전체가 버려지지 않게 합니다.
    """
    geometry = raw_area.get("area")
    if isinstance(geometry, dict) and geometry.get("type") == "Feature":
        geometry = geometry.get("geometry")
    if not isinstance(geometry, dict) or not isinstance(geometry.get("type"), str):
        log.warning(f"판정 불가 지오메트리를 Unknown으로 보존 area_id:{raw_area.get('id')}")
        geometry = _unknown_geometry(geometry)
    return {**raw_area, "area": geometry}


def to_warning(raw: Dict[str, Any]) -> WeatherWarning:
    """
    원시 경보 딕셔너리를 WeatherWarning 모델로 변환합니다.

    Args:
        raw: 피드의 경보 객체

    Returns:
        WeatherWarning 모델

    Raises:
        FeedDecodeError: 필수 필드 누락 또는 타입 오류
    """
    if not isinstance(raw, dict):
        raise FeedDecodeError(f"경보 객체가 아닙니다: {type(raw).__name__}")

    areas = raw.get("warningAreas") or []
    if not isinstance(areas, list):
        raise FeedDecodeError(f"warningAreas가 배열이 아닙니다 id:{raw.get('id')}")
    data = {**raw, "warningAreas": [_unwrap_area(a) if isinstance(a, dict) else a for a in areas]}

    try:
        return WeatherWarning.model_validate(data)
    except ValidationError as e:
        raise FeedDecodeError(f"경보 변환 실패 id:{raw.get('id')} error:{e.error_count()}개 필드 오류") from e


def to_snapshot(payload: Any, fetched_at: Optional[datetime] = None) -> Snapshot:
    """
    피드 응답 전체를 Snapshot으로 변환합니다.

    하나라도 변환에 실패하면 전체를 실패로 처리하여
    부분적으로 채워진 스냅샷이 캐시에 들어가지 않도록 합니다.

    Args:
        payload: 디코딩된 JSON (경보 객체 배열)
        fetched_at: 조회 시각 (None이면 현재 UTC)

    Returns:
        Snapshot

    Raises:
        FeedDecodeError: 배열이 아니거나 경보 변환 실패
    """
    if not isinstance(payload, list):
        raise FeedDecodeError(f"피드 응답이 배열이 아닙니다: {type(payload).__name__}")

    warnings: List[WeatherWarning] = [to_warning(raw) for raw in payload]
    log.debug(f"피드 변환 완료 count:{len(warnings)}")
    return Snapshot(
        warnings=tuple(warnings),
        fetched_at=fetched_at or datetime.now(timezone.utc),
    )
