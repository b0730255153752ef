"""
Policy evaluation functions for warnwatch.

This module contains pure functions for gating warnings and
warning areas on the configured severity threshold.
"""

from typing import Optional
from .models import SEVERITY_LEVELS, WarningArea, WeatherWarning

# 심각도 순서 정의 (낮음 -> 높음), 알 수 없는 값은 0
SEVERITY_ORDER = {level: rank for rank, level in enumerate(SEVERITY_LEVELS, start=1)}


def rank(level: Optional[str]) -> int:
    """레벨 이름을 순위로 변환합니다. 알 수 없으면 0."""
    if not level:
        return 0
    return SEVERITY_ORDER.get(level.upper(), 0)


def normalize_threshold(threshold: str) -> str:
    """
    임계값 문자열을 검증하고 대문자로 반환합니다.

    Raises:
        ValueError: 알 수 없는 레벨 이름
    """
    level = (threshold or "").strip().upper()
    if level not in SEVERITY_ORDER:
        raise ValueError(f"알 수 없는 심각도 임계값: {threshold!r} (허용: {', '.join(SEVERITY_LEVELS)})")
    return level


def warning_qualifies(warning: WeatherWarning, *, threshold: str) -> bool:
    """경보 대표 심각도가 임계값 이상인지 확인합니다."""
    return rank(warning.severity) >= rank(threshold)


def effective_level(warning: WeatherWarning, area: WarningArea) -> str:
    """
    영역에 적용할 레벨을 결정합니다.

    영역 자체 레벨이 우선이고, 없으면 경보 대표 심각도를 사용합니다.
    """
    if area.level in SEVERITY_ORDER:
        return area.level
    return warning.severity or ""


def area_qualifies(warning: WeatherWarning, area: WarningArea, *, threshold: str) -> bool:
    """영역 레벨이 임계값 이상인지 확인합니다."""
    return rank(effective_level(warning, area)) >= rank(threshold)
