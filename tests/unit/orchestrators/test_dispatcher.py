"""
NotificationDispatcher 단위 테스트

이 모듈은 임계값 필터, 센서 매칭, 중복 제거, 상태 갱신,
동시성 제한 발송과 오류 격리를 테스트합니다.
"""

import asyncio
import pytest
from datetime import datetime, timezone
from prometheus_client import REGISTRY
from unittest.mock import AsyncMock

from conftest import raw_area, raw_warning
from warnwatch.adapters.directory.json_directory import JsonDirectory
from warnwatch.core.errors import DirectoryError
from warnwatch.core.models import Sensor, Snapshot, WebhookSubscription
from warnwatch.core.normalize import to_snapshot, to_warning
from warnwatch.orchestrators.dispatcher import NotificationDispatcher

FIXED_NOW = datetime(2026, 10, 19, 6, 0, tzinfo=timezone.utc)

# 사각형과 겹치지 않는 먼 영역
FAR = [[[100.0, 0.0], [101.0, 0.0], [101.0, 1.0], [100.0, 1.0], [100.0, 0.0]]]


class RecordingSender:
    """발송 기록 및 최대 동시 발송 수 측정용 발송기"""

    def __init__(self, delay: float = 0.0, fail_urls=(), raise_urls=()):
        self.delay = delay
        self.fail_urls = set(fail_urls)
        self.raise_urls = set(raise_urls)
        self.sent = []
        self.inflight = 0
        self.max_inflight = 0

    async def send(self, url, payload):
        self.inflight += 1
        self.max_inflight = max(self.max_inflight, self.inflight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.raise_urls:
                raise RuntimeError("boom")
            self.sent.append((url, payload))
            return url not in self.fail_urls
        finally:
            self.inflight -= 1


def _dispatcher(directory, sender, **kwargs):
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    return NotificationDispatcher(directory, directory, sender, **kwargs)


class TestMatching:
    """필터 및 매칭 테스트"""

    @pytest.mark.asyncio
    async def test_orange_warning_notifies_sensors_inside(self, sensors, webhooks, orange_warning):
        """사각형 내부 센서만 상태 갱신 및 알림"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        sender = RecordingSender()

        report = await _dispatcher(directory, sender).process(Snapshot(warnings=(orange_warning,)))

        assert report.qualifying_warnings == 1
        assert report.matched_sensors == 2
        assert sorted(e.sensor_id for e in report.events) == [1, 3]
        statuses = {s.id: s.status for s in await directory.list_sensors()}
        assert statuses == {1: "ORANGE", 2: "OK", 3: "ORANGE"}

        assert sorted((url, p["sensor_id"]) for url, p in sender.sent) == [
            ("https://hooks.example/a", 1),
            ("https://hooks.example/b", 3),
        ]
        assert report.deliveries_ok == 2
        assert report.deliveries_failed == 0

    @pytest.mark.asyncio
    async def test_payload_shape(self, sensors, webhooks, orange_warning):
        """페이로드는 sensor_id, sensor_name, status, warning, timestamp"""
        directory = JsonDirectory.from_records(sensors[:1], webhooks)
        sender = RecordingSender()

        await _dispatcher(directory, sender).process(Snapshot(warnings=(orange_warning,)))

        assert sender.sent == [("https://hooks.example/a", {
            "sensor_id": 1,
            "sensor_name": "Stockholm roof",
            "status": "ORANGE",
            "warning": "Wind",
            "timestamp": "2026-10-19T06:00:00+00:00",
        })]

    @pytest.mark.asyncio
    async def test_below_threshold_does_nothing(self, sensors, webhooks):
        """임계값 미만 경보는 상태 갱신/알림 없음"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        sender = RecordingSender()
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "YELLOW")])])

        report = await _dispatcher(directory, sender).process(snapshot)

        assert report.qualifying_warnings == 0
        assert report.events == []
        assert sender.sent == []
        assert {s.status for s in await directory.list_sensors()} == {"OK"}

    @pytest.mark.asyncio
    async def test_yellow_threshold_includes_yellow(self, sensors, webhooks):
        """임계값을 YELLOW로 낮추면 YELLOW 경보도 처리"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "YELLOW")])])

        report = await _dispatcher(directory, RecordingSender(), severity_threshold="YELLOW").process(snapshot)

        assert {e.severity for e in report.events} == {"YELLOW"}

    @pytest.mark.asyncio
    async def test_area_below_threshold_is_not_matched(self, sensors, webhooks):
        """ORANGE 경보 안의 YELLOW 영역은 매칭하지 않음"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "YELLOW"), raw_area(11, "ORANGE", coordinates=FAR)])])

        report = await _dispatcher(directory, RecordingSender()).process(snapshot)

        assert report.qualifying_warnings == 1
        assert report.matched_sensors == 0

    @pytest.mark.asyncio
    async def test_overlapping_areas_deduplicated_highest_level(self, sensors, webhooks):
        """같은 경보의 겹치는 영역은 (센서, 경보) 한 건, 높은 레벨 사용"""
        directory = JsonDirectory.from_records(sensors[:1], webhooks)
        sender = RecordingSender()
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "ORANGE"), raw_area(11, "RED")])])

        report = await _dispatcher(directory, sender).process(snapshot)

        assert len(report.events) == 1
        assert report.events[0].severity == "RED"
        assert len(sender.sent) == 1
        assert sender.sent[0][1]["status"] == "RED"

    @pytest.mark.asyncio
    async def test_two_warnings_two_notifications(self, sensors, webhooks):
        """서로 다른 경보는 각각 알림"""
        directory = JsonDirectory.from_records(sensors[:1], webhooks)
        sender = RecordingSender()
        snapshot = to_snapshot([raw_warning(1), raw_warning(2, event_code="RAIN", event_en="Rain")])

        await _dispatcher(directory, sender).process(snapshot)

        assert sorted(p["warning"] for _, p in sender.sent) == ["Rain", "Wind"]

    @pytest.mark.asyncio
    async def test_duplicate_subscription_url_sent_once(self, sensors, orange_warning):
        """같은 URL 구독이 중복되어도 한 번만 발송"""
        hooks = [
            WebhookSubscription(url="https://hooks.example/a", tenant_id=1, user_id=1),
            WebhookSubscription(url="https://hooks.example/a", tenant_id=1, user_id=2),
        ]
        directory = JsonDirectory.from_records(sensors[:1], hooks)
        sender = RecordingSender()

        await _dispatcher(directory, sender).process(Snapshot(warnings=(orange_warning,)))

        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_invalid_geometry_skipped_once(self, sensors, webhooks, log_records):
        """판정 불가 영역은 건너뛰고 영역당 한 번만 로그"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        snapshot = to_snapshot([raw_warning(1, areas=[
            raw_area(10, "RED", coordinates=[[[18.0, 59.0], [19.0, 59.0]]]),
            raw_area(11, "RED"),
        ])])

        report = await _dispatcher(directory, RecordingSender()).process(snapshot)

        assert report.skipped_areas == 1
        assert report.matched_sensors == 2
        skipped_logs = [r for r in log_records if "판정 불가 영역" in r["message"]]
        assert len(skipped_logs) == 1

    @pytest.mark.asyncio
    async def test_unknown_area_skipped_other_area_matched(self, sensors, webhooks):
        """형식이 깨진 영역은 건너뛰고 같은 경보의 정상 영역으로는 매칭"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        broken = raw_area(11, "RED")
        broken["area"] = {"coordinates": FAR}
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "ORANGE"), broken])])

        report = await _dispatcher(directory, RecordingSender()).process(snapshot)

        assert report.skipped_areas == 1
        assert sorted(e.sensor_id for e in report.events) == [1, 3]
        assert {e.severity for e in report.events} == {"ORANGE"}

    @pytest.mark.asyncio
    async def test_sensor_with_non_finite_coordinates_excluded(self, webhooks, orange_warning):
        """유한하지 않은 좌표의 센서는 매칭되지 않음"""
        bad = Sensor(id=9, name="broken", latitude=float("nan"), longitude=18.5, tenant_id=1)
        good = Sensor(id=1, name="ok", latitude=59.5, longitude=18.5, tenant_id=1)
        directory = JsonDirectory.from_records([bad, good], webhooks)

        report = await _dispatcher(directory, RecordingSender()).process(Snapshot(warnings=(orange_warning,)))

        assert [e.sensor_id for e in report.events] == [1]

    @pytest.mark.asyncio
    async def test_warning_without_areas_ignored(self, sensors, webhooks):
        """영역이 없는 경보는 매칭 대상이 아님"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        snapshot = to_snapshot([raw_warning(1, event_code="RED", areas=[])])

        report = await _dispatcher(directory, RecordingSender()).process(snapshot)

        assert report.qualifying_warnings == 0


class TestFailureIsolation:
    """협력자 오류 격리 테스트"""

    @pytest.mark.asyncio
    async def test_sensor_listing_failure_aborts_pass(self, orange_warning):
        """센서 목록 조회 실패 시 빈 결과로 종료"""
        sensors_port = AsyncMock()
        sensors_port.list_sensors.side_effect = DirectoryError("down")
        subscribers_port = AsyncMock()
        sender = RecordingSender()

        dispatcher = NotificationDispatcher(sensors_port, subscribers_port, sender)
        report = await dispatcher.process(Snapshot(warnings=(orange_warning,)))

        assert report.matched_sensors == 0
        subscribers_port.subscribers_for.assert_not_called()
        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_status_failure_does_not_block_others(self, sensors, webhooks, orange_warning):
        """상태 갱신 실패는 다른 센서와 알림을 막지 않음"""
        sensors_port = AsyncMock()
        sensors_port.list_sensors.return_value = sensors

        async def update_status(sensor_id, status):
            if sensor_id == 1:
                raise DirectoryError("locked")

        sensors_port.update_status.side_effect = update_status
        subscribers_port = JsonDirectory.from_records([], webhooks)
        sender = RecordingSender()

        report = await NotificationDispatcher(sensors_port, subscribers_port, sender).process(
            Snapshot(warnings=(orange_warning,))
        )

        assert report.status_updates_failed == 1
        assert report.status_updates_ok == 1
        assert len(sender.sent) == 2

    @pytest.mark.asyncio
    async def test_subscriber_lookup_failure_skips_deliveries(self, sensors, orange_warning):
        """구독자 조회 실패 시 상태는 갱신, 발송은 생략"""
        directory = JsonDirectory.from_records(sensors, [])
        subscribers_port = AsyncMock()
        subscribers_port.subscribers_for.side_effect = DirectoryError("down")
        sender = RecordingSender()

        report = await NotificationDispatcher(directory, subscribers_port, sender).process(
            Snapshot(warnings=(orange_warning,))
        )

        assert report.status_updates_ok == 2
        assert sender.sent == []
        subscribers_port.subscribers_for.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_bulk_call_per_pass(self, sensors, webhooks):
        """패스당 센서 조회 1회, 구독자 조회 1회"""
        sensors_port = AsyncMock()
        sensors_port.list_sensors.return_value = sensors
        subscribers_port = AsyncMock()
        subscribers_port.subscribers_for.return_value = {}
        snapshot = to_snapshot([raw_warning(i, areas=[raw_area(i * 10, "RED")]) for i in range(1, 6)])

        await NotificationDispatcher(sensors_port, subscribers_port, RecordingSender()).process(snapshot)

        sensors_port.list_sensors.assert_awaited_once()
        subscribers_port.subscribers_for.assert_awaited_once()
        assert sorted(subscribers_port.subscribers_for.await_args.args[0]) == [1, 2]

    @pytest.mark.asyncio
    async def test_failed_and_raising_deliveries_counted(self, sensors, orange_warning):
        """발송 실패/예외는 다른 발송을 막지 않고 실패로 집계"""
        hooks = [
            WebhookSubscription(url="https://hooks.example/ok", tenant_id=1),
            WebhookSubscription(url="https://hooks.example/fail", tenant_id=1),
            WebhookSubscription(url="https://hooks.example/raise", tenant_id=1),
        ]
        directory = JsonDirectory.from_records(sensors[:1], hooks)
        sender = RecordingSender(fail_urls=["https://hooks.example/fail"],
                                 raise_urls=["https://hooks.example/raise"])

        report = await _dispatcher(directory, sender).process(Snapshot(warnings=(orange_warning,)))

        assert report.deliveries_ok == 1
        assert report.deliveries_failed == 2

    @pytest.mark.asyncio
    async def test_early_return_still_records_duration(self, sensors, webhooks):
        """처리할 경보가 없어 일찍 끝난 패스도 소요 시간 히스토그램에 기록"""
        directory = JsonDirectory.from_records(sensors, webhooks)
        snapshot = to_snapshot([raw_warning(1, areas=[raw_area(10, "YELLOW")])])
        before = REGISTRY.get_sample_value("dispatch_duration_seconds_count") or 0.0

        await _dispatcher(directory, RecordingSender()).process(snapshot)

        assert REGISTRY.get_sample_value("dispatch_duration_seconds_count") == before + 1

    @pytest.mark.asyncio
    async def test_aborted_pass_still_records_duration(self, orange_warning):
        """센서 목록 조회 실패로 중단된 패스도 소요 시간 기록"""
        sensors_port = AsyncMock()
        sensors_port.list_sensors.side_effect = DirectoryError("down")
        before = REGISTRY.get_sample_value("dispatch_duration_seconds_count") or 0.0

        await NotificationDispatcher(sensors_port, AsyncMock(), RecordingSender()).process(
            Snapshot(warnings=(orange_warning,))
        )

        assert REGISTRY.get_sample_value("dispatch_duration_seconds_count") == before + 1


class TestConcurrency:
    """동시 발송 제한 테스트"""

    @pytest.mark.asyncio
    async def test_inflight_bounded(self, orange_warning):
        """동시에 진행되는 발송 수는 max_inflight 이하"""
        many_sensors = [
            Sensor(id=i, name=f"s{i}", latitude=59.5, longitude=18.5, tenant_id=1)
            for i in range(1, 21)
        ]
        hooks = [WebhookSubscription(url="https://hooks.example/a", tenant_id=1)]
        directory = JsonDirectory.from_records(many_sensors, hooks)
        sender = RecordingSender(delay=0.01)

        report = await _dispatcher(directory, sender, max_inflight=3).process(Snapshot(warnings=(orange_warning,)))

        assert report.deliveries_ok == 20
        assert 1 <= sender.max_inflight <= 3

    @pytest.mark.asyncio
    async def test_overlapping_passes_share_inflight_limit(self, orange_warning):
        """겹쳐 실행되는 두 패스도 합쳐서 max_inflight 이하"""
        many_sensors = [
            Sensor(id=i, name=f"s{i}", latitude=59.5, longitude=18.5, tenant_id=1)
            for i in range(1, 11)
        ]
        hooks = [WebhookSubscription(url="https://hooks.example/a", tenant_id=1)]
        directory = JsonDirectory.from_records(many_sensors, hooks)
        sender = RecordingSender(delay=0.01)
        dispatcher = _dispatcher(directory, sender, max_inflight=3)
        snapshot = Snapshot(warnings=(orange_warning,))

        first, second = await asyncio.gather(dispatcher.process(snapshot), dispatcher.process(snapshot))

        assert first.deliveries_ok == 10
        assert second.deliveries_ok == 10
        assert 1 <= sender.max_inflight <= 3

    @pytest.mark.asyncio
    async def test_cancel_stops_pending_deliveries(self, orange_warning):
        """패스를 취소하면 남은 발송도 중단"""
        many_sensors = [
            Sensor(id=i, name=f"s{i}", latitude=59.5, longitude=18.5, tenant_id=1)
            for i in range(1, 11)
        ]
        hooks = [WebhookSubscription(url="https://hooks.example/a", tenant_id=1)]
        directory = JsonDirectory.from_records(many_sensors, hooks)
        sender = RecordingSender(delay=0.5)

        task = asyncio.create_task(
            _dispatcher(directory, sender, max_inflight=2).process(Snapshot(warnings=(orange_warning,)))
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert sender.sent == []
        assert sender.inflight == 0

    def test_invalid_arguments(self):
        """잘못된 임계값이나 동시성 값은 ValueError"""
        directory = JsonDirectory.from_records([], [])
        with pytest.raises(ValueError):
            NotificationDispatcher(directory, directory, RecordingSender(), max_inflight=0)
        with pytest.raises(ValueError):
            NotificationDispatcher(directory, directory, RecordingSender(), severity_threshold="PURPLE")
