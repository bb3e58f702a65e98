from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC.

    Wall time keeps advancing while the process is suspended, which is what
    every timer derived from a stored reference instant relies on.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
