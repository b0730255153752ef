"""
Geographic utilities for warnwatch.

This module provides the point-in-polygon containment test used
to match sensors against warning areas. Points and ring vertices
are (longitude, latitude) pairs.
"""

import math
from typing import Any, List, Sequence, Tuple
from warnwatch.core.errors import GeometryError
from warnwatch.core.models import Geometry

Point = Tuple[float, float]
Ring = List[Point]
Polygon = List[Ring]


def validate_coordinates(lon: Any, lat: Any) -> bool:
    """
    좌표가 유한한 숫자인지 확인합니다.

    Args:
        lon: 경도
        lat: 위도

    Returns:
        두 값 모두 유한한 숫자이면 True
    """
    for v in (lon, lat):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return False
        if not math.isfinite(v):
            return False
    return True


def point_in_ring(point: Point, ring: Sequence[Point]) -> bool:
    """
    점이 링 내부에 있는지 Ray casting(even-odd) 알고리즘으로 확인합니다.

    경도 양의 방향으로 수평 반직선을 쏘아 교차 횟수를 셉니다.
    한 끝점의 위도가 점의 위도 이상이고 다른 끝점은 미만인 변만
    교차로 인정하므로 꼭짓점에서 중복 카운트가 생기지 않습니다.

    Args:
        point: 확인할 점 (경도, 위도)
        ring: 링의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 링 내부에 있으면 True
    """
    n = len(ring)
    if n < 3:
        return False

    x, y = point
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi >= y) != (yj >= y):
            x_cross = xi + (y - yi) * (xj - xi) / (yj - yi)
            if x_cross > x:
                inside = not inside
        j = i
    return inside


def point_in_polygon(point: Point, polygon: Sequence[Sequence[Point]]) -> bool:
    """
    외곽 링 내부이고 모든 구멍 링 외부일 때만 True를 반환합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 링 목록, 첫 번째가 외곽 링

    Returns:
        점이 폴리곤 내부에 있으면 True
    """
    if not polygon:
        return False
    exterior, holes = polygon[0], polygon[1:]
    if not point_in_ring(point, exterior):
        return False
    return not any(point_in_ring(point, hole) for hole in holes)


def _parse_ring(raw: Any) -> Ring:
    if not isinstance(raw, (list, tuple)):
        raise GeometryError("링이 배열이 아닙니다")
    ring: Ring = []
    for vertex in raw:
        if not isinstance(vertex, (list, tuple)) or len(vertex) < 2:
            raise GeometryError(f"잘못된 꼭짓점: {vertex!r}")
        lon, lat = vertex[0], vertex[1]
        if not validate_coordinates(lon, lat):
            raise GeometryError(f"유한하지 않은 좌표: {vertex!r}")
        ring.append((float(lon), float(lat)))
    if len(ring) < 3:
        raise GeometryError(f"링의 꼭짓점이 부족합니다: {len(ring)}")
    return ring


def _parse_polygon(raw: Any) -> Polygon:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise GeometryError("폴리곤에 링이 없습니다")
    return [_parse_ring(r) for r in raw]


def parse_area(geometry: Geometry) -> List[Polygon]:
    """
    지오메트리를 검증하고 폴리곤 목록으로 변환합니다.

    Args:
        geometry: Polygon 또는 MultiPolygon 지오메트리

    Returns:
        폴리곤 목록 (Polygon이면 길이 1)

    Raises:
        GeometryError: 지원하지 않는 타입이거나 좌표가 잘못된 경우
    """
    coords = geometry.coordinates
    if geometry.type == "Polygon":
        return [_parse_polygon(coords)]
    if geometry.type == "MultiPolygon":
        if not isinstance(coords, (list, tuple)) or not coords:
            raise GeometryError("MultiPolygon에 폴리곤이 없습니다")
        return [_parse_polygon(p) for p in coords]
    raise GeometryError(f"지원하지 않는 지오메트리 타입: {geometry.type}")


def polygons_contain(point: Point, polygons: Sequence[Polygon]) -> bool:
    """파싱된 폴리곤 중 하나라도 점을 포함하면 True"""
    if not validate_coordinates(*point):
        return False
    return any(point_in_polygon(point, p) for p in polygons)


def contains(point: Point, area: Geometry) -> bool:
    """
    점이 경보 영역에 포함되는지 판정합니다.

    잘못된 지오메트리나 유한하지 않은 좌표는 예외 대신 False를 반환합니다.

    Args:
        point: 확인할 점 (경도, 위도)
        area: Polygon 또는 MultiPolygon 지오메트리

    Returns:
        포함 여부
    """
    try:
        polygons = parse_area(area)
    except GeometryError:
        return False
    return polygons_contain(point, polygons)
