"""
Warning feed client for warnwatch.

This module fetches the external severe-weather warning feed
(SMHI impact-based warnings by default) over HTTP, decodes it
into a Snapshot, and drives the periodic refresh of the cache.
"""

import asyncio
import contextlib
import json
import time
from typing import Callable, Optional
import aiohttp
from warnwatch.adapters.storage.warning_cache import WarningCache
from warnwatch.core.errors import FeedDecodeError, FeedError, FeedTransportError
from warnwatch.core.models import Snapshot
from warnwatch.core.normalize import to_snapshot
from warnwatch.observability import metrics
from warnwatch.observability.logging_setup import get_logger

log = get_logger("warnwatch.feed")

SnapshotCallback = Callable[[Snapshot], None]


class WarningFetcher:
    """경보 피드 클라이언트"""

    def __init__(self,
                 url: str,
                 timeout: float = 30,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        초기화합니다.

        Args:
            url: 경보 피드 URL
            timeout: 요청 타임아웃 (초)
            session: 외부에서 주입하는 세션 (테스트용, 닫지 않음)
        """
        self.url = url
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None

        log.info(f"경보 피드 클라이언트 초기화됨 url:{url}")

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def fetch_once(self) -> Snapshot:
        """
        피드를 한 번 조회하여 스냅샷으로 변환합니다.

        캐시는 건드리지 않습니다.

        Returns:
            새 스냅샷

        Raises:
            FeedTransportError: 네트워크 오류, 타임아웃, 2xx 이외 응답
            FeedDecodeError: JSON 또는 경보 모델 변환 실패
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        t0 = time.perf_counter()
        try:
            async with self.session.get(self.url) as response:
                if not 200 <= response.status < 300:
                    raise FeedTransportError(
                        f"피드 응답 오류 status:{response.status}", status=response.status
                    )
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            metrics.feed_fetches.labels(result="transport_error").inc()
            raise FeedTransportError(f"피드 요청 실패 error:{e!r}") from e
        except FeedTransportError:
            metrics.feed_fetches.labels(result="transport_error").inc()
            raise

        try:
            payload = json.loads(body)
            snapshot = to_snapshot(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            metrics.feed_fetches.labels(result="decode_error").inc()
            raise FeedDecodeError(f"피드 JSON 파싱 실패 error:{e}") from e
        except FeedDecodeError:
            metrics.feed_fetches.labels(result="decode_error").inc()
            raise

        metrics.feed_fetches.labels(result="ok").inc()
        metrics.fetch_seconds.observe(time.perf_counter() - t0)
        log.info(f"경보 피드 조회 완료 count:{len(snapshot)}")
        return snapshot

    async def run(self,
                  interval: float,
                  cache: WarningCache,
                  on_snapshot: Optional[SnapshotCallback] = None) -> None:
        """
        고정 주기로 피드를 조회하여 캐시를 교체합니다.

        틱은 이벤트 루프 시계 기준이라 느린 조회가 다음 틱을 밀지 않습니다.
        이전 조회가 아직 진행 중이면 해당 틱은 건너뜁니다.

        Args:
            interval: 조회 주기 (초)
            cache: 교체할 캐시
            on_snapshot: 교체 성공 후 호출할 콜백
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + interval
        inflight: Optional[asyncio.Task] = None

        log.info(f"주기 조회 시작 interval:{interval}s")
        try:
            while True:
                await asyncio.sleep(max(0.0, next_tick - loop.time()))
                now = loop.time()
                next_tick += interval
                if next_tick <= now:
                    # 루프가 한 주기 이상 밀렸으면 몰아서 실행하지 않음
                    next_tick = now + interval

                if inflight is not None and not inflight.done():
                    metrics.fetch_ticks_skipped.inc()
                    log.warning("이전 조회가 진행 중이라 이번 틱을 건너뜁니다")
                    continue

                inflight = asyncio.create_task(self._tick(cache, on_snapshot))
        finally:
            if inflight is not None and not inflight.done():
                inflight.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await inflight
            log.info("주기 조회 종료")

    async def _tick(self, cache: WarningCache, on_snapshot: Optional[SnapshotCallback]) -> None:
        """한 틱: 조회 -> 캐시 교체 -> 콜백"""
        try:
            snapshot = await self.fetch_once()
        except FeedError as e:
            log.error(f"경보 피드 조회 실패, 기존 스냅샷 유지 error:{e}")
            return
        except Exception as e:
            log.exception(f"경보 피드 조회 중 예기치 않은 오류 error:{e!r}")
            return

        cache.replace(snapshot)
        if on_snapshot is not None:
            try:
                on_snapshot(snapshot)
            except Exception as e:
                log.exception(f"스냅샷 콜백 처리 중 예기치 않은 오류 error:{e!r}")
