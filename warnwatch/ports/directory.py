"""
Directory port interfaces.

This module defines the protocols for the external sensor and
webhook-subscriber directories. Both are owned by the CRUD
subsystem; the pipeline only reads them and updates sensor status.
"""

from typing import Dict, Iterable, List, Protocol
from warnwatch.core.models import Sensor, WebhookSubscription

class SensorDirectoryPort(Protocol):
    """센서 디렉토리 포트 인터페이스"""
    
    async def list_sensors(self) -> List[Sensor]:
        """
        모든 테넌트의 센서를 한 번에 조회합니다.
        
        Returns:
            센서 목록
        """
        ...
    
    async def update_status(self, sensor_id: int, status: str) -> None:
        """
        센서 상태를 갱신합니다. 같은 값으로 다시 호출해도 무해합니다.
        
        Args:
            sensor_id: 센서 ID
            status: 새 상태 레이블
        """
        ...

class SubscriberDirectoryPort(Protocol):
    """웹훅 구독자 디렉토리 포트 인터페이스"""
    
    async def subscribers_for(self, tenant_ids: Iterable[int]) -> Dict[int, List[WebhookSubscription]]:
        """
        여러 테넌트의 웹훅 구독을 한 번에 조회합니다.
        
        Args:
            tenant_ids: 테넌트 ID 목록
            
        Returns:
            테넌트 ID -> 구독 목록 (구독이 없는 테넌트는 빠질 수 있음)
        """
        ...
