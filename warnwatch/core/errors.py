"""
Error taxonomy for warnwatch.

This module defines the exception hierarchy shared by the
fetch, geomatching, directory and startup paths.
"""


class WarnwatchError(Exception):
    """warnwatch 기본 예외"""


class ConfigError(WarnwatchError):
    """필수 설정 누락 또는 잘못된 설정"""


class FeedError(WarnwatchError):
    """경보 피드 조회 실패"""


class FeedTransportError(FeedError):
    """네트워크 오류, 타임아웃, 2xx 이외의 응답"""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class FeedDecodeError(FeedError):
    """피드 응답을 경보 모델로 변환할 수 없음"""


class GeometryError(WarnwatchError, ValueError):
    """판정에 사용할 수 없는 지오메트리"""


class DirectoryError(WarnwatchError):
    """센서/구독자 디렉토리 호출 실패"""
