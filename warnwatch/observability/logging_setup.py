from __future__ import annotations
import logging
import sys
from loguru import logger

# 외부 라이브러리 로거 -> 최소 레벨 (access 로그는 요청마다 찍혀 기본은 WARNING)
_STDLIB_LOGGERS = {
    "uvicorn": None,
    "uvicorn.error": None,
    "uvicorn.access": "WARNING",
    "aiohttp": None,
    "aiohttp.access": "WARNING",
    "asyncio": "WARNING",
}

# ---- stdlib logging → loguru 인터셉트 ----
class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(name=record.name).opt(depth=6, exception=record.exc_info).log(level, record.getMessage())

def _hook_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, min_level in _STDLIB_LOGGERS.items():
        l = logging.getLogger(name)
        l.handlers = [InterceptHandler()]
        l.propagate = False
        if min_level:
            l.setLevel(min_level)

# ---- 콘솔 포맷: 시각 | 레벨 | 컴포넌트 | 위치 - 메시지 ----
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level:<7}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "<cyan>{file}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

def setup_logging(log_level: str = "INFO") -> None:
    """
    loguru 초기화.
    - stderr 단일 싱크, TTY일 때만 컬러
    - 컴포넌트 이름(extra.name) 기본값 warnwatch
    - uvicorn/aiohttp 등 stdlib logging 흡수
    """
    logger.remove()
    logger.configure(extra={"name": "warnwatch"})
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        colorize=None,
        backtrace=True,
        diagnose=False,
        level=log_level.upper(),
    )
    _hook_stdlib_logging()

def get_logger(name: str = "warnwatch", **ctx):
    """컴포넌트 이름과 선택적 컨텍스트를 바인딩한 logger 반환."""
    return logger.bind(name=name, **ctx)

setup_logger = setup_logging
