"""Data models for the JARVIS application."""

from .telemetry import (
    ConnectionState,
    HealthStatus,
    HistoryPoint,
    TelemetryDecodeError,
    TelemetryRecord,
)
from .voice import AmplitudeFrame, RecognitionResult, SpeechOptions, VoiceSessionState, silent_frame
from .events import TelemetryUpdate, VoiceEvent

__all__ = [
    "ConnectionState",
    "HealthStatus",
    "HistoryPoint",
    "TelemetryDecodeError",
    "TelemetryRecord",
    "AmplitudeFrame",
    "RecognitionResult",
    "SpeechOptions",
    "VoiceSessionState",
    "silent_frame",
    # Pub/sub events
    "TelemetryUpdate",
    "VoiceEvent",
]
