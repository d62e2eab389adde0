"""Voice command session module."""

from .base import (
    AbstractMicrophone,
    AbstractSpeechRecognizer,
    AbstractSpeechSynthesizer,
    CapabilityUnavailableError,
    MicrophoneUnavailableError,
    SpeechEngineUnavailableError,
    RecognitionError,
    NoSpeechDetectedError,
    SpeechSynthesisError,
)
from .commands import CommandDispatcher, CommandRule, dispatch_command
from .session import VoiceSession
from .publisher import VoicePublisher

__all__ = [
    "AbstractMicrophone",
    "AbstractSpeechRecognizer",
    "AbstractSpeechSynthesizer",
    "CapabilityUnavailableError",
    "MicrophoneUnavailableError",
    "SpeechEngineUnavailableError",
    "RecognitionError",
    "NoSpeechDetectedError",
    "SpeechSynthesisError",
    "CommandDispatcher",
    "CommandRule",
    "dispatch_command",
    "VoiceSession",
    "VoicePublisher",
]
