"""Capability interfaces for platform voice services."""

from abc import ABC, abstractmethod
import logging

from ..audio.source import AudioSource
from ..models.voice import RecognitionResult, SpeechOptions

logger = logging.getLogger(__name__)


class CapabilityUnavailableError(RuntimeError):
    """A platform capability could not be acquired."""


class MicrophoneUnavailableError(CapabilityUnavailableError):
    """Microphone access was denied or no input device exists."""


class SpeechEngineUnavailableError(CapabilityUnavailableError):
    """The speech recognition engine is missing or not initialized."""


class RecognitionError(Exception):
    """Recognition finished without a usable transcript."""


class NoSpeechDetectedError(RecognitionError):
    """Nothing intelligible was said."""


class SpeechSynthesisError(Exception):
    """Spoken output failed."""


class AbstractMicrophone(ABC):
    """Audio input device."""

    @abstractmethod
    async def acquire(self) -> AudioSource:
        """Open the input device.

        Raises:
            MicrophoneUnavailableError: If access is denied or no device exists
        """
        pass

    def release(self, source: AudioSource) -> None:
        """Release a source returned by ``acquire``."""
        source.close()


class AbstractSpeechRecognizer(ABC):
    """One-shot speech capture engine: audio in, final transcript out."""

    def __init__(self, language: str = "en-US"):
        """Initialize recognizer with language preference."""
        self.language = language

    @abstractmethod
    def start(self, source: AudioSource, locale: str = "en-US") -> None:
        """Begin capturing one utterance from ``source``.

        Raises:
            SpeechEngineUnavailableError: If the engine cannot be used
        """
        pass

    @abstractmethod
    async def result(self) -> RecognitionResult:
        """Wait for the final result of the capture started by ``start``.

        Raises:
            RecognitionError: If no usable transcript was produced
        """
        pass

    @abstractmethod
    def abort(self) -> None:
        """Stop the current capture; a pending ``result`` may never complete."""
        pass


class AbstractSpeechSynthesizer(ABC):
    """Spoken output engine."""

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    async def speak(self, text: str, options: SpeechOptions) -> None:
        """Speak ``text`` and return once playback completes.

        Raises:
            SpeechSynthesisError: If playback fails
        """
        pass
