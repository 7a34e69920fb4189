"""
Wall-clock abstraction.

Checkpoint entries and retention decisions need millisecond timestamps. The
publisher and retention manager take a clock so tests can pin time.
"""

import time
from dataclasses import dataclass


class SystemClock:
    """Milliseconds since epoch from the system clock."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


@dataclass
class ManualClock:
    """
    Manually advanced clock.

    In tests: set current and advance explicitly.
    """
    current: int = 0

    def now_ms(self) -> int:
        """Get current timestamp without advancing."""
        return self.current

    def advance(self, step_ms: int) -> int:
        """Advance clock by step_ms and return the new time."""
        self.current += step_ms
        return self.current
