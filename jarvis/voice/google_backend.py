"""Google Speech-to-Text speech capture engine."""

import asyncio
import logging
from typing import Optional

import numpy as np
from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

from ..audio.source import AudioSource
from ..models.voice import RecognitionResult
from .base import (
    AbstractSpeechRecognizer,
    NoSpeechDetectedError,
    RecognitionError,
    SpeechEngineUnavailableError,
)

logger = logging.getLogger(__name__)


class GoogleSpeechRecognizer(AbstractSpeechRecognizer):
    """Records one utterance from an AudioSource and transcribes it with Google.

    The utterance ends after ``silence_seconds`` of quiet following speech, or
    after ``max_listen_seconds`` in any case. Only final results are produced.
    """

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 use_enhanced: bool = False,
                 enable_automatic_punctuation: bool = True,
                 max_listen_seconds: float = 8.0,
                 silence_seconds: float = 1.0,
                 speech_rms_threshold: float = 500.0,
                 poll_interval: float = 0.1,
                 request_timeout: float = 10.0):
        """Initialize Google Speech recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the captured audio in Hz
            language: Default language code (e.g., 'en-US')
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            max_listen_seconds: Hard limit on utterance length
            silence_seconds: Trailing silence that ends the utterance
            speech_rms_threshold: int16 RMS above which a chunk counts as speech
            poll_interval: How often captured audio is inspected
            request_timeout: Per-request timeout for the recognize call
        """
        super().__init__(language)
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.max_listen_seconds = max_listen_seconds
        self.silence_seconds = silence_seconds
        self.speech_rms_threshold = speech_rms_threshold
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout

        self.client: Optional[speech.SpeechClient] = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"
        self._task: Optional[asyncio.Task] = None

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        try:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        except (OSError, ValueError) as e:
            logger.error(f"Invalid Google credentials: {e}")
            return False

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        return True

    def start(self, source: AudioSource, locale: str = "en-US") -> None:
        if self.client is None:
            raise SpeechEngineUnavailableError("Google Speech client is not initialized")
        if self._task is not None and not self._task.done():
            raise SpeechEngineUnavailableError("Speech capture already in progress")
        self._task = asyncio.get_running_loop().create_task(
            self._capture_and_recognize(source, locale or self.language), name="google-speech-capture")

    async def result(self) -> RecognitionResult:
        if self._task is None:
            raise RecognitionError("Speech capture was not started")
        return await self._task

    def abort(self) -> None:
        if self._task is not None and not self._task.done():
            logger.debug("Aborting speech capture")
            self._task.cancel()

    async def _capture_and_recognize(self, source: AudioSource, locale: str) -> RecognitionResult:
        audio = await self._record_utterance(source)
        return await asyncio.to_thread(self._recognize, audio, locale)

    async def _record_utterance(self, source: AudioSource) -> bytes:
        loop = asyncio.get_running_loop()
        started = loop.time()
        last_voice: Optional[float] = None
        captured = bytearray()

        while True:
            await asyncio.sleep(self.poll_interval)
            now = loop.time()
            chunk = source.drain()
            if chunk:
                captured.extend(chunk)
                samples = np.frombuffer(chunk[: len(chunk) // 2 * 2], dtype=np.int16).astype(np.float64)
                rms = float(np.sqrt(np.mean(samples ** 2))) if len(samples) else 0.0
                if rms >= self.speech_rms_threshold:
                    last_voice = now

            if last_voice is not None and now - last_voice >= self.silence_seconds:
                break
            if now - started >= self.max_listen_seconds or source.closed:
                break

        if last_voice is None:
            raise NoSpeechDetectedError("no speech above threshold")
        logger.debug(f"Captured utterance: {len(captured)} bytes in {loop.time() - started:.1f}s")
        return bytes(captured)

    def _recognize(self, audio_bytes: bytes, locale: str) -> RecognitionResult:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=locale,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            # Use model optimized for short audio
            model="latest_short",
        )
        audio = speech.RecognitionAudio(content=audio_bytes)
        try:
            response = self.client.recognize(config=config, audio=audio, timeout=self.request_timeout)
        except gax_exceptions.DeadlineExceeded as e:
            raise RecognitionError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            raise RecognitionError(f"Google Speech service unavailable: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            raise RecognitionError(f"Google Speech API error: {e}") from e

        if not response.results or not response.results[0].alternatives:
            raise NoSpeechDetectedError("recognizer returned no results")

        alternative = response.results[0].alternatives[0]
        logger.debug(f"Transcript='{alternative.transcript}' (conf={alternative.confidence:.2f})")
        return RecognitionResult(
            transcript=alternative.transcript,
            confidence=alternative.confidence,
            locale=locale,
        )

    def cleanup(self) -> None:
        self.abort()
        self.client = None
