"""
Logical Clock for Deterministic Admission
=========================================

Injectable clock so every "now" the pipeline reads can be replayed.

GUARANTEES:
- Same inputs + same clock sequence = identical admission decisions
- Never reads system time implicitly in replay mode
- Times are integer unix seconds, the resolution of event timestamps
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import time


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    MODES:
    ======
    1. LIVE mode: Uses real system time, logs all ticks
    2. REPLAY mode: Uses pre-recorded tick sequence
    3. FIXED mode: Returns one frozen instant until moved with advance()
    """
    _ticks: List[int] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True
    _fixed: Optional[int] = None

    def now(self) -> int:
        """
        Get current logical time in unix seconds.

        In LIVE mode: reads system time and logs it
        In REPLAY mode: returns next tick from recorded sequence
        """
        if self._fixed is not None:
            return self._fixed

        if self._is_live:
            current = int(time.time())
            self._ticks.append(current)
            self._current_index = len(self._ticks)
            return current

        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    def advance(self, seconds: int) -> int:
        """Move a fixed clock forward. Only valid in FIXED mode."""
        if self._fixed is None:
            raise RuntimeError("advance() is only supported on a fixed clock")
        self._fixed += seconds
        return self._fixed

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live and self._fixed is None

    @property
    def ticks(self) -> List[int]:
        return list(self._ticks)

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls(_is_live=True)

    @classmethod
    def replay(cls, ticks: Iterable[int]) -> 'LogicalClock':
        """Create clock in REPLAY mode from a recorded tick sequence."""
        return cls(_ticks=list(ticks), _current_index=0, _is_live=False)

    @classmethod
    def fixed(cls, at: int) -> 'LogicalClock':
        """Create a clock frozen at `at` (unix seconds)."""
        return cls(_is_live=False, _fixed=at)

    def __repr__(self) -> str:
        if self._fixed is not None:
            return f"LogicalClock(FIXED, at={self._fixed})"
        mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, ticks={len(self._ticks)}, index={self._current_index})"
