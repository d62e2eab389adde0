"""Audio capture and visualization module."""

from .source import AudioSource
from .scheduler import FrameScheduler, RefreshRateScheduler, ManualScheduler
from .visualizer import AudioVisualizer, VisualizerHandle

__all__ = [
    'AudioSource',
    'FrameScheduler',
    'RefreshRateScheduler',
    'ManualScheduler',
    'AudioVisualizer',
    'VisualizerHandle',
]
