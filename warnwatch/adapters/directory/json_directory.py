"""
JSON file backed sensor/subscriber directory for warnwatch.

This module implements both directory ports on top of a single
JSON document so the pipeline can run without the external
account/sensor service. Status updates are written back to disk.

File layout::

    {"sensors": [{"id": 1, "name": "...", "latitude": 59.3,
                  "longitude": 18.0, "status": "OK", "tenant_id": 1}],
     "webhooks": [{"url": "https://...", "tenant_id": 1, "user_id": 7}]}
"""

import asyncio
import json
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional
from pydantic import ValidationError
from warnwatch.core.errors import DirectoryError
from warnwatch.core.models import Sensor, WebhookSubscription
from warnwatch.observability.logging_setup import get_logger

log = get_logger("warnwatch.directory")


class JsonDirectory:
    """JSON 파일 기반 센서/웹훅 디렉토리"""

    def __init__(self, path: Optional[Path] = None):
        """
        초기화합니다.

        Args:
            path: JSON 파일 경로 (None이면 메모리 전용)
        """
        self.path = path
        self._lock = Lock()
        self._write_lock = asyncio.Lock()
        self._sensors: Dict[int, Sensor] = {}
        self._webhooks: List[WebhookSubscription] = []
        if path is not None:
            self._load_from_disk()

    @classmethod
    def from_records(cls, sensors: Iterable[Sensor], webhooks: Iterable[WebhookSubscription]) -> "JsonDirectory":
        """메모리 전용 디렉토리를 만듭니다."""
        directory = cls()
        directory._sensors = {s.id: s for s in sensors}
        directory._webhooks = list(webhooks)
        return directory

    async def list_sensors(self) -> List[Sensor]:
        with self._lock:
            return list(self._sensors.values())

    async def update_status(self, sensor_id: int, status: str) -> None:
        """
        센서 상태를 갱신하고 파일에 반영합니다.

        새 매핑을 먼저 파일에 쓰고, 쓰기가 성공한 뒤에만 메모리에 반영합니다.

        Raises:
            DirectoryError: 존재하지 않는 센서 또는 파일 저장 실패
        """
        async with self._write_lock:
            with self._lock:
                sensor = self._sensors.get(sensor_id)
                if sensor is None:
                    raise DirectoryError(f"센서를 찾을 수 없습니다: {sensor_id}")
                if sensor.status == status:
                    return
                sensors = {**self._sensors, sensor_id: sensor.model_copy(update={"status": status})}
                webhooks = list(self._webhooks)

            if self.path is not None:
                await asyncio.to_thread(self._persist, sensors, webhooks)

            with self._lock:
                self._sensors = sensors
        log.info(f"센서 상태 갱신 sensor_id:{sensor_id} status:{sensor.status}->{status}")

    async def subscribers_for(self, tenant_ids: Iterable[int]) -> Dict[int, List[WebhookSubscription]]:
        wanted = set(tenant_ids)
        result: Dict[int, List[WebhookSubscription]] = {}
        with self._lock:
            for hook in self._webhooks:
                if hook.tenant_id in wanted:
                    result.setdefault(hook.tenant_id, []).append(hook)
        return result

    def _persist(self, sensors: Dict[int, Sensor], webhooks: List[WebhookSubscription]) -> None:
        payload = {
            "sensors": [s.model_dump(mode="json") for s in sensors.values()],
            "webhooks": [w.model_dump(mode="json") for w in webhooks],
        }
        try:
            self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False))
        except OSError as e:
            raise DirectoryError(f"디렉토리 파일 저장 실패 path:{self.path} error:{e}") from e

    def _load_from_disk(self) -> None:
        if not self.path or not self.path.exists():
            log.warning(f"디렉토리 파일이 없어 빈 디렉토리로 시작합니다 path:{self.path}")
            return

        try:
            data = json.loads(self.path.read_text() or "{}")
            sensors = [Sensor.model_validate(s) for s in data.get("sensors", [])]
            webhooks = [WebhookSubscription.model_validate(w) for w in data.get("webhooks", [])]
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            raise DirectoryError(f"디렉토리 파일 로드 실패 path:{self.path} error:{e}") from e

        self._sensors = {s.id: s for s in sensors}
        self._webhooks = webhooks
        log.info(f"디렉토리 로드됨 sensors:{len(self._sensors)} webhooks:{len(self._webhooks)}")
