"""Frame schedulers driving the audio visualizer."""

import asyncio
from abc import ABC, abstractmethod


class FrameScheduler(ABC):
    """Source of paint ticks."""

    @abstractmethod
    async def next_tick(self) -> None:
        pass


class RefreshRateScheduler(FrameScheduler):
    """Best-effort ticks at the display refresh rate."""

    def __init__(self, fps: float = 60.0):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.interval = 1.0 / fps

    async def next_tick(self) -> None:
        await asyncio.sleep(self.interval)


class ManualScheduler(FrameScheduler):
    """Ticks only when ``advance`` is called. Used for deterministic frames."""

    def __init__(self):
        self._ticks: asyncio.Queue = asyncio.Queue()
        self.ticks_consumed = 0

    async def next_tick(self) -> None:
        await self._ticks.get()
        self.ticks_consumed += 1

    async def advance(self, count: int = 1) -> None:
        """Release ``count`` ticks and let the consumer process them."""
        target = self.ticks_consumed + count
        for _ in range(count):
            self._ticks.put_nowait(None)
        for _ in range(100):
            if self.ticks_consumed >= target:
                break
            await asyncio.sleep(0)
        # One more pass so the consumer finishes the last frame
        await asyncio.sleep(0)
