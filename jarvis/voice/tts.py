"""pyttsx3 spoken output engine."""

import asyncio
import logging
import threading

import pyttsx3

from ..models.voice import SpeechOptions
from .base import AbstractSpeechSynthesizer, SpeechSynthesisError

logger = logging.getLogger(__name__)


class Pyttsx3Synthesizer(AbstractSpeechSynthesizer):
    """Speaks replies through the platform voice via pyttsx3.

    pyttsx3 blocks in ``runAndWait``, so playback runs in a worker thread;
    the lock keeps utterances from overlapping.
    """

    def __init__(self, base_rate_wpm: int = 200):
        """Initialize synthesizer.

        Args:
            base_rate_wpm: Words per minute corresponding to a rate of 1.0
        """
        self.base_rate_wpm = base_rate_wpm
        self.engine = None
        self.lock = threading.Lock()

    def initialize(self) -> bool:
        """Initialize pyttsx3 engine."""
        try:
            self.engine = pyttsx3.init()
        except (RuntimeError, OSError) as e:
            logger.error(f"Failed to initialize pyttsx3 engine: {e}")
            self.engine = None
            return False

        logger.info("pyttsx3 TTS engine initialized successfully")
        return True

    def is_available(self) -> bool:
        return self.engine is not None

    async def speak(self, text: str, options: SpeechOptions) -> None:
        if self.engine is None:
            raise SpeechSynthesisError("TTS engine not initialized")
        await asyncio.to_thread(self._speak_blocking, text, options)

    def _speak_blocking(self, text: str, options: SpeechOptions) -> None:
        with self.lock:
            try:
                self.engine.setProperty('rate', int(self.base_rate_wpm * options.rate))
                self.engine.setProperty('volume', max(0.0, min(1.0, options.volume)))
                if options.pitch != 1.0:
                    # Most pyttsx3 drivers have no pitch control
                    logger.debug(f"Ignoring pitch {options.pitch}, not supported by pyttsx3")
                self.engine.say(text)
                self.engine.runAndWait()
            except RuntimeError as e:
                raise SpeechSynthesisError(f"pyttsx3 playback failed: {e}") from e

    def stop(self) -> None:
        if self.engine is not None:
            self.engine.stop()
