"""Event models for pub/sub fan-out to the presentation layer."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .telemetry import ConnectionState, HistoryPoint, TelemetryRecord
from .voice import AmplitudeFrame, VoiceSessionState


@dataclass(frozen=True)
class TelemetryUpdate:
    """Notification from the stream client.

    Sent on every decoded record and on every connection state change.
    """
    record: Optional[TelemetryRecord]
    history: Tuple[HistoryPoint, ...]
    state: ConnectionState
    event_type: str = "record"  # "record" | "state_changed"
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class VoiceEvent:
    """Voice session lifecycle event."""
    event_type: str  # "state_changed", "transcript", "reply", "frame", "error"
    state: VoiceSessionState
    transcript: Optional[str] = None
    reply: Optional[str] = None
    frame: Optional[AmplitudeFrame] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
