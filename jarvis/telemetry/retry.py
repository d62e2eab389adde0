"""Reconnect delay policies for the telemetry stream client."""

from abc import ABC, abstractmethod


class RetryPolicy(ABC):
    """Computes the wait before the next connection attempt."""

    @abstractmethod
    def next_delay(self, failures: int) -> float:
        """Delay in seconds before reconnecting.

        Args:
            failures: Consecutive failed or closed connections so far (>= 1)
        """
        pass


class FixedDelayPolicy(RetryPolicy):
    """Unbounded retry at a fixed interval."""

    def __init__(self, delay: float = 3.0):
        if delay < 0:
            raise ValueError("Retry delay must not be negative")
        self.delay = delay

    def next_delay(self, failures: int) -> float:
        return self.delay

    def __repr__(self) -> str:
        return f"FixedDelayPolicy(delay={self.delay})"


class ExponentialBackoffPolicy(RetryPolicy):
    """Unbounded retry with a delay that doubles up to a cap."""

    def __init__(self, initial: float = 3.0, maximum: float = 30.0, factor: float = 2.0):
        if initial < 0 or maximum < initial:
            raise ValueError("Backoff requires 0 <= initial <= maximum")
        if factor < 1.0:
            raise ValueError("Backoff factor must be >= 1.0")
        self.initial = initial
        self.maximum = maximum
        self.factor = factor

    def next_delay(self, failures: int) -> float:
        exponent = max(failures - 1, 0)
        # Cap the exponent so large failure counts cannot overflow
        delay = self.initial * (self.factor ** min(exponent, 32))
        return min(delay, self.maximum)

    def __repr__(self) -> str:
        return f"ExponentialBackoffPolicy(initial={self.initial}, maximum={self.maximum}, factor={self.factor})"
