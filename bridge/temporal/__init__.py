"""
Temporal Module

Logical clock and progress cursor: the only places the bridge reasons
about "now" and about how far back a poll should look.
"""

from .clock import LogicalClock, ClockExhausted
from .cursor import ProgressCursor

__all__ = ['LogicalClock', 'ClockExhausted', 'ProgressCursor']
