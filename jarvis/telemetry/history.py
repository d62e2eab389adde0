"""Rolling window of chart points for recent telemetry history."""

import logging
from collections import deque
from typing import Optional, Tuple

from ..models.telemetry import HistoryPoint

logger = logging.getLogger(__name__)


class HistoryBuffer:
    """Fixed-capacity FIFO of HistoryPoints, oldest evicted first."""

    def __init__(self, capacity: int = 30):
        """Initialize history buffer.

        Args:
            capacity: Maximum number of points kept
        """
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"History capacity must be a positive integer, got {capacity!r}")
        self.capacity = capacity
        self.buffer: deque = deque(maxlen=capacity)
        logger.debug(f"HistoryBuffer initialized: capacity {capacity}")

    def append(self, point: HistoryPoint) -> None:
        """Add a point; drops the oldest one when full."""
        self.buffer.append(point)

    def snapshot(self) -> Tuple[HistoryPoint, ...]:
        """Read-only copy of the window in arrival order."""
        return tuple(self.buffer)

    def latest(self) -> Optional[HistoryPoint]:
        return self.buffer[-1] if self.buffer else None

    def clear(self) -> None:
        self.buffer.clear()

    def __len__(self) -> int:
        return len(self.buffer)
