import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SingleFlight:
    """
    Non-blocking run guard: Idle -> Running -> Idle.

    A call made while a run is in progress is dropped, not queued, and
    returns None. The guard is per process.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, func: Callable[..., Any], *args, **kwargs) -> Optional[Any]:
        if not self._lock.acquire(blocking=False):
            logger.info("[%s] Previous run still in progress, skipped", self.name)
            return None
        try:
            return func(*args, **kwargs)
        finally:
            self._lock.release()
