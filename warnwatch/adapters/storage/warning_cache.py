"""
In-memory warning snapshot cache for warnwatch.

This module implements the single shared snapshot store between
the background fetch task and the query path. Snapshots are
immutable, so replacing the reference under a lock is enough to
keep every reader on one complete snapshot.
"""

from threading import Lock
from warnwatch.core.models import Snapshot
from warnwatch.observability import metrics
from warnwatch.observability.logging_setup import get_logger

log = get_logger("warnwatch.cache")

_EMPTY = Snapshot()


class WarningCache:
    """불변 스냅샷 한 개를 보관하는 캐시"""

    def __init__(self, initial: Snapshot | None = None):
        """
        초기화합니다.

        Args:
            initial: 초기 스냅샷 (None이면 빈 스냅샷)
        """
        self._lock = Lock()
        self._snapshot = initial or _EMPTY
        self._primed = initial is not None

    def replace(self, snapshot: Snapshot) -> None:
        """
        현재 스냅샷을 통째로 교체합니다.

        Args:
            snapshot: 새 스냅샷
        """
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"Snapshot이 필요합니다: {type(snapshot).__name__}")
        with self._lock:
            previous = len(self._snapshot)
            self._snapshot = snapshot
            self._primed = True
        metrics.warnings_cached.set(len(snapshot))
        log.info(f"캐시 교체됨 previous:{previous} current:{len(snapshot)}")

    def read(self) -> Snapshot:
        """현재 스냅샷을 반환합니다. 호출자는 수정하면 안 됩니다."""
        with self._lock:
            return self._snapshot

    @property
    def is_primed(self) -> bool:
        """첫 교체가 이루어졌는지 여부"""
        with self._lock:
            return self._primed
