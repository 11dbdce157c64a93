"""
Fixed-length rolling buffers for host metric sparklines.
"""

from collections import deque
from typing import List, Optional


class HistoryBuffer:
    """
    FIFO buffer of fixed capacity.

    push() drops the oldest value once the buffer is full, so memory use is
    bounded by capacity no matter how long the process runs.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got: {capacity}")
        self.capacity = capacity
        self._values = deque(maxlen=capacity)

    def push(self, value: float):
        self._values.append(value)

    def values(self) -> List[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


class StatsHistoryBuffer:
    """CPU percent and temperature history, sized once at startup"""

    def __init__(self, capacity: int):
        self.cpu = HistoryBuffer(capacity)
        self.temperature = HistoryBuffer(capacity)

    def record(self, cpu_percent: Optional[float], cpu_temp: Optional[float]):
        """Append this cycle's readings. Unavailable readings are skipped, not zero-filled."""
        if cpu_percent is not None:
            self.cpu.push(cpu_percent)
        if cpu_temp is not None:
            self.temperature.push(cpu_temp)
