"""
Notification dispatcher for warnwatch.

This module runs one notification pass per fetched snapshot:
filter by severity, match sensors against warning geometry,
update sensor status, and fan out webhook deliveries with a
bounded number in flight.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple
from warnwatch.common.geo import parse_area, polygons_contain, validate_coordinates
from warnwatch.core.errors import GeometryError
from warnwatch.core.models import (
    Delivery, DispatchReport, NotificationEvent, Sensor, Snapshot,
    WeatherWarning, WebhookSubscription,
)
from warnwatch.core.policy import (
    area_qualifies, effective_level, normalize_threshold, rank, warning_qualifies,
)
from warnwatch.observability import metrics
from warnwatch.observability.logging_setup import get_logger
from warnwatch.ports.directory import SensorDirectoryPort, SubscriberDirectoryPort
from warnwatch.ports.dispatch import WebhookSenderPort

log = get_logger("warnwatch.dispatch")


class _Match(NamedTuple):
    sensor: Sensor
    warning: WeatherWarning
    severity: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationDispatcher:
    """스냅샷 단위 알림 처리기"""

    def __init__(self,
                 sensors: SensorDirectoryPort,
                 subscribers: SubscriberDirectoryPort,
                 sender: WebhookSenderPort,
                 *,
                 severity_threshold: str = "ORANGE",
                 max_inflight: int = 10,
                 clock: Callable[[], datetime] = _utcnow):
        """
        초기화합니다.

        Args:
            sensors: 센서 디렉토리 포트
            subscribers: 웹훅 구독자 디렉토리 포트
            sender: 웹훅 발송 포트
            severity_threshold: 알림 대상 최소 심각도 (YELLOW|ORANGE|RED)
            max_inflight: 동시에 진행할 최대 발송 수
            clock: 페이로드 timestamp 생성용 시계
        """
        if max_inflight < 1:
            raise ValueError(f"max_inflight는 1 이상이어야 합니다: {max_inflight}")
        self.sensors = sensors
        self.subscribers = subscribers
        self.sender = sender
        self.threshold = normalize_threshold(severity_threshold)
        self.max_inflight = max_inflight
        self.clock = clock
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def process(self, snapshot: Snapshot) -> DispatchReport:
        """
        스냅샷 하나에 대해 필터 -> 매칭 -> 상태 갱신 -> 알림 발송을 수행합니다.

        디렉토리/발송 오류는 로그만 남기고 나머지 처리를 계속합니다.

        Args:
            snapshot: 새로 조회된 스냅샷

        Returns:
            처리 결과 요약
        """
        t0 = time.perf_counter()
        try:
            return await self._run_pass(snapshot)
        finally:
            metrics.dispatch_seconds.observe(time.perf_counter() - t0)

    async def _run_pass(self, snapshot: Snapshot) -> DispatchReport:
        report = DispatchReport()

        qualifying = self._filter(snapshot.warnings)
        report.qualifying_warnings = len(qualifying)
        if not qualifying:
            log.debug("임계값 이상의 경보가 없습니다")
            return report

        try:
            sensors = await self.sensors.list_sensors()
        except Exception as e:
            log.error(f"센서 목록 조회 실패, 이번 패스 중단 error:{e!r}")
            return report

        matches = self._match(qualifying, sensors, report)
        report.matched_sensors = len(matches)
        report.events = [
            NotificationEvent(sensor_id=m.sensor.id, warning_id=m.warning.id, severity=m.severity)
            for m in matches.values()
        ]
        for m in matches.values():
            metrics.sensors_matched.labels(severity=m.severity).inc()

        await self._update_statuses(matches.values(), report)

        subscriptions = await self._load_subscribers({m.sensor.tenant_id for m in matches.values()})
        deliveries = self._plan_deliveries(matches.values(), subscriptions)
        await self._deliver_all(deliveries, report)

        log.info(
            f"알림 패스 완료 qualifying:{report.qualifying_warnings} matched:{report.matched_sensors} "
            f"status_ok:{report.status_updates_ok} status_failed:{report.status_updates_failed} "
            f"delivered:{report.deliveries_ok} delivery_failed:{report.deliveries_failed} "
            f"skipped_areas:{report.skipped_areas}"
        )
        return report

    def _filter(self, warnings: Sequence[WeatherWarning]) -> List[WeatherWarning]:
        """임계값 이상이고 영역이 있는 경보만 남깁니다."""
        qualifying = []
        for warning in warnings:
            if not warning.warning_areas:
                log.debug(f"영역이 없는 경보 건너뜀 warning_id:{warning.id}")
                continue
            if warning_qualifies(warning, threshold=self.threshold):
                qualifying.append(warning)
        return qualifying

    def _match(self,
               warnings: Sequence[WeatherWarning],
               sensors: Sequence[Sensor],
               report: DispatchReport) -> Dict[Tuple[int, int], _Match]:
        """
        센서를 경보 영역과 매칭합니다.

        같은 경보의 여러 영역에 포함된 센서는 (센서, 경보) 한 건으로 합치고
        가장 높은 레벨을 사용합니다. 영역 지오메트리는 패스당 한 번만 파싱합니다.
        """
        matches: Dict[Tuple[int, int], _Match] = {}
        for warning in warnings:
            for area in warning.warning_areas:
                if not area_qualifies(warning, area, threshold=self.threshold):
                    continue
                try:
                    polygons = parse_area(area.area)
                except GeometryError as e:
                    report.skipped_areas += 1
                    metrics.areas_skipped.inc()
                    log.warning(f"판정 불가 영역 건너뜀 warning_id:{warning.id} area_id:{area.id} reason:{e}")
                    continue

                level = effective_level(warning, area)
                invalid_points = 0
                for sensor in sensors:
                    point = (sensor.longitude, sensor.latitude)
                    if not validate_coordinates(*point):
                        invalid_points += 1
                        continue
                    if not polygons_contain(point, polygons):
                        continue
                    key = (sensor.id, warning.id)
                    previous = matches.get(key)
                    if previous is None or rank(level) > rank(previous.severity):
                        matches[key] = _Match(sensor, warning, level)

                if invalid_points:
                    log.warning(
                        f"좌표가 유효하지 않은 센서 제외 warning_id:{warning.id} "
                        f"area_id:{area.id} count:{invalid_points}"
                    )
        return matches

    async def _update_statuses(self, matches, report: DispatchReport) -> None:
        """매칭된 센서 상태를 경보 레벨로 갱신합니다."""
        for m in matches:
            try:
                await self.sensors.update_status(m.sensor.id, m.severity)
            except Exception as e:
                report.status_updates_failed += 1
                metrics.status_updates.labels(result="error").inc()
                log.error(f"센서 상태 갱신 실패 sensor_id:{m.sensor.id} status:{m.severity} error:{e!r}")
                continue
            report.status_updates_ok += 1
            metrics.status_updates.labels(result="ok").inc()

    async def _load_subscribers(self, tenant_ids) -> Dict[int, List[WebhookSubscription]]:
        """테넌트 구독자를 한 번에 조회합니다. 실패하면 빈 결과."""
        if not tenant_ids:
            return {}
        try:
            return await self.subscribers.subscribers_for(sorted(tenant_ids))
        except Exception as e:
            log.error(f"웹훅 구독자 조회 실패 tenants:{sorted(tenant_ids)} error:{e!r}")
            return {}

    def _plan_deliveries(self, matches, subscriptions: Dict[int, List[WebhookSubscription]]) -> List[Delivery]:
        """(구독 URL, 센서, 경보) 단위로 중복 없이 발송 목록을 만듭니다."""
        timestamp = self.clock().isoformat()
        planned: Dict[Tuple[str, NotificationEvent], Delivery] = {}
        for m in matches:
            event = NotificationEvent(sensor_id=m.sensor.id, warning_id=m.warning.id, severity=m.severity)
            subs = subscriptions.get(m.sensor.tenant_id) or []
            if not subs:
                log.debug(f"구독자가 없는 테넌트 tenant_id:{m.sensor.tenant_id}")
            for sub in subs:
                key = (sub.url, event)
                if key in planned:
                    continue
                planned[key] = Delivery(
                    url=sub.url,
                    event=event,
                    payload={
                        "sensor_id": m.sensor.id,
                        "sensor_name": m.sensor.name,
                        "status": m.severity,
                        "warning": m.warning.event.display,
                        "timestamp": timestamp,
                    },
                )
        return list(planned.values())

    async def _deliver_all(self, deliveries: Sequence[Delivery], report: DispatchReport) -> None:
        """
        동시 발송 수를 제한하여 모든 발송을 한 번씩 시도합니다.

        세마포어는 인스턴스 단위라 겹치는 패스끼리도 한도를 공유합니다.

        취소되면 진행 중인 발송도 함께 취소됩니다.
        """
        if not deliveries:
            return
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_inflight)
        semaphore = self._semaphore

        async def _one(delivery: Delivery) -> bool:
            async with semaphore:
                metrics.deliveries_inflight.inc()
                try:
                    return await self.sender.send(delivery.url, delivery.payload)
                except Exception as e:
                    log.error(f"웹훅 발송 오류 url:{delivery.url} sensor_id:{delivery.event.sensor_id} error:{e!r}")
                    return False
                finally:
                    metrics.deliveries_inflight.dec()

        results = await asyncio.gather(*(_one(d) for d in deliveries))
        report.deliveries_ok += sum(1 for ok in results if ok)
        report.deliveries_failed += sum(1 for ok in results if not ok)
