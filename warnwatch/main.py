# warnwatch/main.py
import os, sys, asyncio, signal
from pathlib import Path
import uvicorn
from warnwatch.settings import Settings
from warnwatch.core.errors import ConfigError, DirectoryError, FeedError
from warnwatch.observability.health import create_app
from warnwatch.observability.logging_setup import setup_logger, get_logger
from warnwatch.adapters.directory.json_directory import JsonDirectory
from warnwatch.adapters.smhi.client import WarningFetcher
from warnwatch.adapters.storage.warning_cache import WarningCache
from warnwatch.adapters.webhook.sender import WebhookSender
from warnwatch.orchestrators.dispatcher import NotificationDispatcher
from warnwatch.orchestrators.orchestrator import Orchestrator
from warnwatch.services.query import QueryService

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def _i(name, default):
    """정수 환경변수. 해석 불가 시 ConfigError."""
    raw = os.getenv(name)
    if raw is None or raw == "": return default
    try: return int(raw)
    except ValueError as e: raise ConfigError(f"{name}는 정수여야 합니다: {raw!r}") from e

def _f(name, default):
    raw = os.getenv(name)
    if raw is None or raw == "": return default
    try: return float(raw)
    except ValueError as e: raise ConfigError(f"{name}는 숫자여야 합니다: {raw!r}") from e

def build_settings() -> Settings:
    s = Settings()
    # 피드
    s.feed.url = os.getenv("FEED_URL", s.feed.url)
    s.feed.interval_sec = _f("FEED_INTERVAL_SEC", s.feed.interval_sec)
    s.feed.timeout_sec = _f("FEED_TIMEOUT_SEC", s.feed.timeout_sec)

    # 알림
    s.notify.severity_threshold = os.getenv("SEVERITY_THRESHOLD", s.notify.severity_threshold)
    s.notify.max_inflight = _i("WEBHOOK_MAX_INFLIGHT", s.notify.max_inflight)
    s.notify.timeout_sec = _f("WEBHOOK_TIMEOUT_SEC", s.notify.timeout_sec)

    # 조회 / 디렉토리
    s.query.default_page_size = _i("DEFAULT_PAGE_SIZE", s.query.default_page_size)
    s.directory.path = os.getenv("DIRECTORY_PATH", s.directory.path)

    # 관측성
    s.observability.http_port = _i("HTTP_PORT", s.observability.http_port)
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    return s

def start_http(settings: Settings, app) -> asyncio.Task:
    server = uvicorn.Server(
        uvicorn.Config(app, host="0.0.0.0", port=settings.observability.http_port, log_level="info")
    )
    # 시그널은 main에서 처리
    server.install_signal_handlers = lambda: None
    return asyncio.create_task(server.serve())

async def main() -> int:
    # 로거 초기화 (환경변수 LOG_LEVEL 우선)
    setup_logger(log_level=os.getenv("LOG_LEVEL", "INFO"))
    log = get_logger()

    try:
        s = build_settings()
        s.validate_required()
    except ConfigError as e:
        log.critical(f"설정 오류: {e}")
        return 1
    log.info("설정 로드 완료")

    try:
        directory = JsonDirectory(Path(s.directory.path))
    except DirectoryError as e:
        log.critical(f"디렉토리 로드 실패: {e}")
        return 1

    cache = WarningCache()
    query_service = QueryService(cache, default_page_size=s.query.default_page_size)

    async with WarningFetcher(s.feed.url, timeout=s.feed.timeout_sec) as fetcher, \
               WebhookSender(timeout=s.notify.timeout_sec) as sender:
        dispatcher = NotificationDispatcher(
            directory, directory, sender,
            severity_threshold=s.notify.severity_threshold,
            max_inflight=s.notify.max_inflight,
        )
        orch = Orchestrator(fetcher, cache, dispatcher, interval=s.feed.interval_sec)
        log.info("오케스트레이터 생성 완료")

        try:
            await orch.start()
        except FeedError as e:
            log.critical(f"초기 경보 조회 실패, 종료합니다: {e}")
            return 1

        http_task = start_http(s, create_app(s, cache, query_service))
        log.info(f"HTTP 서버 시작됨 port:{s.observability.http_port}")

        stop = asyncio.get_running_loop().create_future()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
            except NotImplementedError: pass

        # HTTP 서버가 먼저 끝나면(포트 바인딩 실패 등) 함께 종료
        await asyncio.wait({stop, http_task}, return_when=asyncio.FIRST_COMPLETED)
        log.info("종료 요청 수신")

        await orch.stop()
        http_task.cancel()
        await asyncio.gather(http_task, return_exceptions=True)

    log.info("종료 완료")
    return 0

def run() -> None:
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    run()
