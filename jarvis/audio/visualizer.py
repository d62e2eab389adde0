"""Live audio level visualizer producing normalized frequency frames."""

import asyncio
import logging
from typing import Callable, Optional

import numpy as np
from scipy.signal import get_window

from ..models.voice import AmplitudeFrame
from .scheduler import FrameScheduler, RefreshRateScheduler
from .source import AudioSource

logger = logging.getLogger(__name__)


FrameCallback = Callable[[AmplitudeFrame], None]


class VisualizerHandle:
    """One running visualization bound to an audio source."""

    def __init__(self, source: AudioSource, callback: FrameCallback):
        self.source = source
        self.callback = callback
        self.active = True
        self.task: Optional[asyncio.Task] = None
        self.smoothed: Optional[np.ndarray] = None
        self.frames_emitted = 0


class AudioVisualizer:
    """Turns live audio into AmplitudeFrames on every scheduler tick.

    Frames mimic a browser analyser node: Blackman-windowed FFT of the latest
    ``fft_size`` samples, exponential smoothing over time, decibel scaling
    onto 0-255 and finally division by 255.
    """

    def __init__(
        self,
        frame_size: int = 50,
        fft_size: int = 128,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
        scheduler: Optional[FrameScheduler] = None,
    ):
        if frame_size <= 0:
            raise ValueError("frame_size must be positive")
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 32")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must be greater than min_decibels")

        self.frame_size = frame_size
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.scheduler = scheduler or RefreshRateScheduler()
        self.window = get_window("blackman", fft_size)

    def start(self, source: AudioSource, callback: FrameCallback) -> VisualizerHandle:
        """Begin emitting frames for ``source``. Must be called from the event loop."""
        handle = VisualizerHandle(source, callback)
        handle.task = asyncio.get_running_loop().create_task(self._run(handle), name="audio-visualizer")
        logger.debug("Audio visualizer started")
        return handle

    def stop(self, handle: Optional[VisualizerHandle]) -> None:
        """Stop emitting frames and close the audio source. Idempotent."""
        if handle is None or not handle.active:
            return
        handle.active = False
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
        handle.source.close()
        logger.debug(f"Audio visualizer stopped after {handle.frames_emitted} frames")

    async def _run(self, handle: VisualizerHandle) -> None:
        while handle.active:
            await self.scheduler.next_tick()
            if not handle.active:
                break
            samples = handle.source.latest_samples(self.fft_size)
            frame, handle.smoothed = self.compute_frame(samples, handle.smoothed)
            handle.frames_emitted += 1
            try:
                handle.callback(frame)
            except Exception as e:
                logger.error(f"Visualizer frame callback failed: {e}", exc_info=True)

    def compute_frame(self, samples: np.ndarray, previous: Optional[np.ndarray] = None):
        """Compute one frame from time-domain samples in [-1, 1].

        Args:
            samples: Latest ``fft_size`` samples
            previous: Smoothed magnitudes from the previous tick, if any

        Returns:
            Tuple of (AmplitudeFrame, smoothed magnitudes for the next tick)
        """
        samples = np.asarray(samples, dtype=np.float64)
        if len(samples) < self.fft_size:
            samples = np.concatenate((np.zeros(self.fft_size - len(samples)), samples))
        samples = samples[-self.fft_size:]

        spectrum = np.abs(np.fft.rfft(samples * self.window))[: self.fft_size // 2] / self.fft_size
        if previous is not None:
            spectrum = self.smoothing * previous + (1.0 - self.smoothing) * spectrum

        decibels = 20.0 * np.log10(np.maximum(spectrum, 1e-12))
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        byte_values = np.clip(np.floor(scale * (decibels - self.min_decibels)), 0, 255)

        normalized = byte_values[: self.frame_size] / 255.0
        if len(normalized) < self.frame_size:
            normalized = np.concatenate((normalized, np.zeros(self.frame_size - len(normalized))))
        return tuple(float(v) for v in normalized), spectrum
