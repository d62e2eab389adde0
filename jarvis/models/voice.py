"""Voice session data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


# Fully replaced on every visualization tick, samples in [0, 1]
AmplitudeFrame = Tuple[float, ...]


class VoiceSessionState(Enum):
    """State of the single voice exchange."""
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class RecognitionResult:
    """Final result of a one-shot speech recognition."""
    transcript: str
    confidence: float = 0.0
    locale: str = "en-US"


@dataclass(frozen=True)
class SpeechOptions:
    """Spoken output parameters, 1.0 means engine default."""
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


def silent_frame(size: int) -> AmplitudeFrame:
    """Frame shown while no capture is active."""
    return (0.0,) * size
