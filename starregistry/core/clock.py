"""Wall-clock source for block timestamps and challenge freshness."""

import time
from typing import Protocol


class Clock(Protocol):
    def now_seconds(self) -> int: ...


class SystemClock:
    """Current unix time in whole seconds."""

    def now_seconds(self) -> int:
        return int(time.time())
