"""
Service orchestrator for warnwatch.

This module wires the feed fetcher, the warning cache and the
notification dispatcher together: one blocking initial fetch,
then a periodic refresh where every new snapshot triggers a
notification pass in the background.
"""

import asyncio
import time
from typing import Optional, Set
from warnwatch.adapters.smhi.client import WarningFetcher
from warnwatch.adapters.storage.warning_cache import WarningCache
from warnwatch.core.models import Snapshot
from warnwatch.observability import metrics
from warnwatch.observability.logging_setup import get_logger
from warnwatch.orchestrators.dispatcher import NotificationDispatcher

log = get_logger("warnwatch.orchestrator")


class Orchestrator:
    """조회 -> 캐시 교체 -> 알림 패스 오케스트레이터"""

    def __init__(self,
                 fetcher: WarningFetcher,
                 cache: WarningCache,
                 dispatcher: NotificationDispatcher,
                 *,
                 interval: float = 900,
                 metrics_interval: float = 30):
        """
        초기화합니다.

        Args:
            fetcher: 경보 피드 클라이언트 (세션이 열린 상태)
            cache: 경보 스냅샷 캐시
            dispatcher: 알림 처리기
            interval: 피드 조회 주기 (초)
            metrics_interval: 업타임 메트릭 갱신 주기 (초)
        """
        self.fetcher = fetcher
        self.cache = cache
        self.dispatcher = dispatcher
        self.interval = interval
        self.metrics_interval = metrics_interval
        self.start_time = time.time()

        self._ticker: Optional[asyncio.Task] = None
        self._metrics_task: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()

        log.info(f"오케스트레이터 초기화됨 interval:{interval}s")

    async def start(self) -> None:
        """
        초기 조회를 수행하고 주기 조회를 시작합니다.

        초기 조회 실패는 치명적이므로 그대로 전파합니다.

        Raises:
            FeedError: 초기 조회 실패
        """
        snapshot = await self.fetcher.fetch_once()
        self.cache.replace(snapshot)
        self._schedule_dispatch(snapshot)

        self._ticker = asyncio.create_task(
            self.fetcher.run(self.interval, self.cache, on_snapshot=self._schedule_dispatch)
        )
        self._metrics_task = asyncio.create_task(self._update_metrics())
        log.info(f"오케스트레이터 시작됨 warnings:{len(snapshot)}")

    async def stop(self) -> None:
        """주기 조회와 진행 중인 알림 패스를 모두 취소하고 종료를 기다립니다."""
        tasks = [t for t in (self._ticker, self._metrics_task) if t is not None]
        tasks.extend(self._dispatches)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._ticker = None
        self._metrics_task = None
        self._dispatches.clear()
        log.info("오케스트레이터 종료됨")

    @property
    def pending_dispatches(self) -> int:
        return len(self._dispatches)

    def _schedule_dispatch(self, snapshot: Snapshot) -> None:
        """새 스냅샷에 대한 알림 패스를 백그라운드로 시작합니다."""
        task = asyncio.create_task(self._dispatch(snapshot))
        self._dispatches.add(task)
        task.add_done_callback(self._dispatches.discard)

    async def _dispatch(self, snapshot: Snapshot) -> None:
        try:
            await self.dispatcher.process(snapshot)
        except Exception as e:
            log.exception(f"알림 패스 처리 중 예기치 않은 오류 error:{e!r}")

    async def _update_metrics(self) -> None:
        """주기적으로 업타임 메트릭을 업데이트합니다."""
        while True:
            metrics.uptime_seconds.set(time.time() - self.start_time)
            await asyncio.sleep(self.metrics_interval)
