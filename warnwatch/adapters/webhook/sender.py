"""
Webhook sender adapter for warnwatch.

This module posts notification payloads to subscriber URLs.
Each call is a single attempt: failures are logged and reported
to the caller, never retried here.
"""

import asyncio
from typing import Optional
import aiohttp
from warnwatch.observability import metrics
from warnwatch.observability.logging_setup import get_logger

log = get_logger("warnwatch.webhook")


class WebhookSender:
    """웹훅 POST 발송 어댑터"""

    def __init__(self,
                 timeout: float = 10,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        초기화합니다.

        Args:
            timeout: 요청 타임아웃 (초)
            session: 외부에서 주입하는 세션 (테스트용, 닫지 않음)
        """
        self.timeout = timeout
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self):
        """비동기 컨텍스트 매니저 진입"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """비동기 컨텍스트 매니저 종료"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def send(self, url: str, payload: dict) -> bool:
        """
        JSON 페이로드를 POST로 발송합니다.

        Args:
            url: 구독자 URL
            payload: 발송할 JSON 객체

        Returns:
            2xx 응답이면 True, 그 외 응답이나 전송 오류면 False
        """
        if not self.session:
            raise RuntimeError("세션이 초기화되지 않았습니다. async with를 사용하세요.")

        try:
            async with self.session.post(url, json=payload) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            metrics.webhook_deliveries.labels(result="transport_error").inc()
            log.error(f"웹훅 발송 실패 url:{url} error:{e!r}")
            return False

        if not 200 <= status < 300:
            metrics.webhook_deliveries.labels(result="http_error").inc()
            log.error(f"웹훅 응답 오류 url:{url} status:{status}")
            return False

        metrics.webhook_deliveries.labels(result="ok").inc()
        log.debug(f"웹훅 발송 성공 url:{url} status:{status}")
        return True
