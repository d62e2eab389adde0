"""Voice session state machine: capture, recognize, reply, speak."""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ..audio.source import AudioSource
from ..audio.visualizer import AudioVisualizer, VisualizerHandle
from ..models.events import VoiceEvent
from ..models.voice import AmplitudeFrame, SpeechOptions, VoiceSessionState, silent_frame
from .base import (
    AbstractMicrophone,
    AbstractSpeechRecognizer,
    AbstractSpeechSynthesizer,
    CapabilityUnavailableError,
    NoSpeechDetectedError,
    RecognitionError,
    SpeechSynthesisError,
)
from .commands import CommandHandler, dispatch_command

logger = logging.getLogger(__name__)


class _Exchange:
    """Resources of one capture -> reply exchange.

    Late callbacks compare themselves against the session's current exchange
    and drop out once it has been replaced or cancelled.
    """

    def __init__(self, number: int):
        self.number = number
        self.source: Optional[AudioSource] = None
        self.visualizer_handle: Optional[VisualizerHandle] = None
        self.task: Optional[asyncio.Task] = None
        self.cancelled = False
        self.capture_released = False


class VoiceSession:
    """Single orchestrator of one interactive voice exchange at a time.

    IDLE -> LISTENING -> PROCESSING -> SPEAKING -> IDLE, with LISTENING -> IDLE
    on cancel or recognition failure. Starting while not idle is rejected.
    """

    def __init__(
        self,
        microphone: AbstractMicrophone,
        recognizer: AbstractSpeechRecognizer,
        visualizer: AudioVisualizer,
        synthesizer: Optional[AbstractSpeechSynthesizer] = None,
        command_handler: CommandHandler = dispatch_command,
        callback: Optional[Callable[[VoiceEvent], None]] = None,
        locale: str = "en-US",
        speech_options: Optional[SpeechOptions] = None,
    ):
        """Initialize voice session.

        Args:
            microphone: Audio input capability
            recognizer: Speech capture engine
            visualizer: Audio level visualizer driven while listening
            synthesizer: Spoken output engine, None to skip speaking
            command_handler: Transcript -> reply function
            callback: Receives every VoiceEvent (state changes, frames, replies)
            locale: Recognition locale
            speech_options: Rate/pitch/volume for spoken replies
        """
        self.microphone = microphone
        self.recognizer = recognizer
        self.visualizer = visualizer
        self.synthesizer = synthesizer
        self.command_handler = command_handler
        self.callback = callback
        self.locale = locale
        self.speech_options = speech_options or SpeechOptions()

        self.state = VoiceSessionState.IDLE
        self.last_transcript: Optional[str] = None
        self.last_reply: Optional[str] = None
        self.current_frame: AmplitudeFrame = silent_frame(visualizer.frame_size)

        self._exchange: Optional[_Exchange] = None
        self._exchange_counter = 0
        self._closed = False

    @property
    def is_busy(self) -> bool:
        return self.state is not VoiceSessionState.IDLE or self._exchange is not None

    async def start_listening(self) -> Dict[str, Any]:
        """Acquire the microphone and start visualizer plus speech capture.

        Returns:
            Result dictionary with success status and details
        """
        if self._closed:
            return {"success": False, "error": "Voice session closed"}
        if self.is_busy:
            logger.warning(f"Start listening rejected, session is {self.state.value}")
            return {"success": False, "error": "Already active", "state": self.state.value}

        self._exchange_counter += 1
        exchange = _Exchange(self._exchange_counter)
        self._exchange = exchange
        self.last_transcript = None
        self.last_reply = None

        try:
            exchange.source = await self.microphone.acquire()
        except CapabilityUnavailableError as e:
            logger.warning(f"Cannot start listening: {e}")
            return self._abort_start(exchange, str(e))
        except Exception as e:
            logger.error(f"Microphone acquisition failed: {e}", exc_info=True)
            return self._abort_start(exchange, str(e))

        if exchange.cancelled or exchange is not self._exchange:
            logger.info("Listening cancelled while acquiring microphone")
            self.microphone.release(exchange.source)
            return {"success": False, "error": "Cancelled"}

        try:
            exchange.visualizer_handle = self.visualizer.start(exchange.source, self._frame_callback(exchange))
            self.recognizer.start(exchange.source, self.locale)
        except CapabilityUnavailableError as e:
            logger.warning(f"Cannot start speech capture: {e}")
            self._release_capture(exchange)
            return self._abort_start(exchange, str(e))
        except Exception as e:
            logger.error(f"Speech capture failed to start: {e}", exc_info=True)
            self._release_capture(exchange)
            return self._abort_start(exchange, str(e))

        self._set_state(VoiceSessionState.LISTENING)
        exchange.task = asyncio.get_running_loop().create_task(
            self._run_exchange(exchange), name=f"voice-exchange-{exchange.number}")
        logger.info(f"Listening started (exchange {exchange.number}, locale {self.locale})")
        return {"success": True, "exchange": exchange.number, "state": self.state.value}

    def stop_listening(self) -> bool:
        """Cancel the capture in progress.

        Returns:
            True if a capture was cancelled, False if nothing was listening
        """
        exchange = self._exchange
        if exchange is None or self.state not in (VoiceSessionState.IDLE, VoiceSessionState.LISTENING):
            logger.debug(f"Stop listening ignored in state {self.state.value}")
            return False

        logger.info(f"Listening cancelled (exchange {exchange.number})")
        exchange.cancelled = True
        self.recognizer.abort()
        self._release_capture(exchange)
        if exchange.task is not None and not exchange.task.done():
            exchange.task.cancel()
        self._finish(exchange)
        return True

    async def toggle(self) -> Dict[str, Any]:
        """Microphone button: start when idle, cancel while acquiring or listening."""
        if self._exchange is not None and self.state in (VoiceSessionState.IDLE, VoiceSessionState.LISTENING):
            return {"success": self.stop_listening(), "state": self.state.value}
        return await self.start_listening()

    async def close(self) -> None:
        """Cancel any exchange and release all resources."""
        if self._closed:
            return
        self._closed = True
        exchange = self._exchange
        if exchange is None:
            return
        exchange.cancelled = True
        self.recognizer.abort()
        self._release_capture(exchange)
        task = exchange.task
        self._finish(exchange)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _is_current(self, exchange: _Exchange) -> bool:
        return exchange is self._exchange and not exchange.cancelled

    async def _run_exchange(self, exchange: _Exchange) -> None:
        try:
            result = await self.recognizer.result()
        except NoSpeechDetectedError as e:
            self._on_recognition_failed(exchange, f"No speech detected: {e}")
            return
        except RecognitionError as e:
            self._on_recognition_failed(exchange, f"Recognition error: {e}")
            return
        except Exception as e:
            logger.error(f"Speech recognizer failed: {e}", exc_info=True)
            self._on_recognition_failed(exchange, f"Recognition error: {e}")
            return

        if not self._is_current(exchange):
            logger.debug(f"Dropping late transcript for exchange {exchange.number}")
            return

        self._release_capture(exchange)
        transcript = result.transcript.strip()
        if not transcript:
            self._on_recognition_failed(exchange, "Empty transcript")
            return

        self.last_transcript = transcript
        self._set_state(VoiceSessionState.PROCESSING)
        self._emit(VoiceEvent("transcript", self.state, transcript=transcript))

        try:
            reply = self.command_handler(transcript)
        except Exception as e:
            logger.error(f"Command handler failed for '{transcript}': {e}", exc_info=True)
            self._emit(VoiceEvent("error", self.state, error=str(e)))
            self._finish(exchange)
            return

        self.last_reply = reply
        self._emit(VoiceEvent("reply", self.state, transcript=transcript, reply=reply))
        logger.info(f"Voice command '{transcript}' -> '{reply}'")

        if self.synthesizer is None or not self.synthesizer.is_available():
            logger.debug("Speech output unavailable, skipping spoken reply")
            self._finish(exchange)
            return

        self._set_state(VoiceSessionState.SPEAKING)
        try:
            await self.synthesizer.speak(reply, self.speech_options)
        except SpeechSynthesisError as e:
            logger.warning(f"Spoken reply failed: {e}")
            self._emit(VoiceEvent("error", self.state, error=str(e)))
        except Exception as e:
            logger.error(f"Speech synthesizer failed: {e}", exc_info=True)
            self._emit(VoiceEvent("error", self.state, error=str(e)))
        finally:
            if self._is_current(exchange):
                self._finish(exchange)

    def _on_recognition_failed(self, exchange: _Exchange, message: str) -> None:
        if not self._is_current(exchange):
            return
        logger.info(message)
        self._release_capture(exchange)
        self._emit(VoiceEvent("error", self.state, error=message))
        self._finish(exchange)

    def _frame_callback(self, exchange: _Exchange) -> Callable[[AmplitudeFrame], None]:
        def on_frame(frame: AmplitudeFrame) -> None:
            if not self._is_current(exchange) or exchange.capture_released:
                return
            self.current_frame = frame
            self._emit(VoiceEvent("frame", self.state, frame=frame))
        return on_frame

    def _release_capture(self, exchange: _Exchange) -> None:
        """Stop the visualizer and release the microphone. Idempotent."""
        if exchange.capture_released:
            return
        exchange.capture_released = True
        self.visualizer.stop(exchange.visualizer_handle)
        if exchange.source is not None:
            self.microphone.release(exchange.source)
        self.current_frame = silent_frame(self.visualizer.frame_size)
        self._emit(VoiceEvent("frame", self.state, frame=self.current_frame))

    def _abort_start(self, exchange: _Exchange, error: str) -> Dict[str, Any]:
        self._emit(VoiceEvent("error", self.state, error=error))
        self._finish(exchange)
        return {"success": False, "error": error, "state": self.state.value}

    def _finish(self, exchange: _Exchange) -> None:
        if exchange is self._exchange:
            self._exchange = None
        self._set_state(VoiceSessionState.IDLE)

    def _set_state(self, state: VoiceSessionState) -> None:
        if state is self.state:
            return
        logger.info(f"Voice session {self.state.value} -> {state.value}")
        self.state = state
        self._emit(VoiceEvent("state_changed", state))

    def _emit(self, event: VoiceEvent) -> None:
        if self.callback is None:
            return
        try:
            self.callback(event)
        except Exception as e:
            logger.error(f"Voice event callback failed: {e}", exc_info=True)
