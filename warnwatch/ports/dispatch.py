"""
Webhook dispatch port interface.

This module defines the protocol for outbound webhook delivery.
"""

from typing import Protocol

class WebhookSenderPort(Protocol):
    """웹훅 발송 포트 인터페이스"""
    
    async def send(self, url: str, payload: dict) -> bool:
        """
        페이로드를 한 번 발송합니다.
        
        Args:
            url: 구독자 URL
            payload: JSON 페이로드
            
        Returns:
            발송 성공 여부
        """
        ...
