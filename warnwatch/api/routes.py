"""HTTP route definitions for the warning query API."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from warnwatch.observability.logging_setup import get_logger
from warnwatch.services.query import QueryService

log = get_logger("warnwatch.api")

router = APIRouter()


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service


def _int_or_none(raw: Optional[str]) -> Optional[int]:
    """정수로 해석할 수 없는 값은 None (기본값 사용)."""
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


@router.get(
    "/api/weather-warnings",
    summary="List cached weather warnings with optional filters and paging.",
    status_code=status.HTTP_200_OK,
)
async def list_weather_warnings(
    event_type: Optional[str] = Query(None, alias="eventType"),
    area_name: Optional[str] = Query(None, alias="areaName"),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    service: QueryService = Depends(get_query_service),
) -> dict:
    warnings = service.query(
        event_type=event_type or None,
        area_name=area_name or None,
        page=_int_or_none(page) or 1,
        page_size=_int_or_none(page_size),
    )
    try:
        body = [w.model_dump(mode="json", by_alias=True) for w in warnings]
    except (ValueError, TypeError) as exc:
        log.error(f"경보 응답 인코딩 실패 error:{exc!r}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to encode warnings.",
        ) from exc
    return {"warnings": body}
