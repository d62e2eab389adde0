"""Live audio source handle shared by the visualizer and speech capture."""

import logging
import threading
from collections import deque
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)


class AudioSource:
    """Thread-safe buffer of 16-bit PCM captured from an input device.

    The device callback thread calls ``feed``; the event loop reads the most
    recent samples for visualization and drains everything captured for
    recognition.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        window_samples: int = 4096,
        on_close: Optional[Callable[["AudioSource"], None]] = None,
    ):
        """Initialize audio source.

        Args:
            sample_rate: Audio sample rate
            channels: Number of interleaved channels in fed data
            window_samples: How many recent samples to keep for visualization
            on_close: Called once when the source is closed, releases the device
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.window_samples = window_samples
        self.on_close = on_close

        self.lock = threading.Lock()
        self.window = np.zeros(0, dtype=np.int16)
        self.pending = deque()
        self.total_bytes = 0
        self.closed = False

    def feed(self, audio_data: bytes) -> None:
        """Add raw little-endian int16 PCM captured from the device."""
        if not audio_data or self.closed:
            return
        samples = np.frombuffer(audio_data, dtype=np.int16)
        if self.channels > 1:
            # Keep the first channel for analysis
            samples = samples[::self.channels]
        with self.lock:
            self.pending.append(audio_data)
            self.total_bytes += len(audio_data)
            self.window = np.concatenate((self.window, samples))[-self.window_samples:]

    def latest_samples(self, count: int) -> np.ndarray:
        """Most recent ``count`` samples scaled to [-1, 1], zero-padded at the front."""
        with self.lock:
            recent = self.window[-count:]
        out = np.zeros(count, dtype=np.float32)
        if len(recent):
            out[-len(recent):] = recent.astype(np.float32) / 32768.0
        return out

    def drain(self) -> bytes:
        """Return and forget all audio captured since the last drain."""
        with self.lock:
            data = b''.join(self.pending)
            self.pending.clear()
        return data

    def close(self) -> None:
        """Release the underlying device. Safe to call more than once."""
        with self.lock:
            if self.closed:
                return
            self.closed = True
            self.pending.clear()
        logger.debug(f"Audio source closed after {self.total_bytes} bytes")
        if self.on_close is not None:
            try:
                self.on_close(self)
            except Exception as e:
                logger.error(f"Error releasing audio device: {e}", exc_info=True)
