"""PyAudio microphone capability."""

import asyncio
import logging
from typing import Optional

import pyaudio

from ..voice.base import AbstractMicrophone, MicrophoneUnavailableError
from .source import AudioSource

logger = logging.getLogger(__name__)


class PyAudioMicrophone(AbstractMicrophone):
    """Opens the default input device with a callback-driven PyAudio stream."""

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        input_device_index: Optional[int] = None,
    ):
        """Initialize microphone with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz for speech recognition)
            chunk_size: Size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            input_device_index: PyAudio device index, None for the default device
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self.input_device_index = input_device_index

    async def acquire(self) -> AudioSource:
        """Open an input stream in a worker thread and return its source."""
        try:
            return await asyncio.to_thread(self._open_source)
        except (OSError, IOError, ValueError) as e:
            # PyAudio reports bad device indexes and formats as ValueError
            raise MicrophoneUnavailableError(f"Microphone not available: {e}") from e

    def _open_source(self) -> AudioSource:
        pyaudio_instance = pyaudio.PyAudio()
        source = AudioSource(sample_rate=self.sample_rate, channels=self.channels)

        def stream_callback(in_data, frame_count, time_info, status):
            source.feed(in_data)
            return (None, pyaudio.paContinue)

        try:
            stream = pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=stream_callback,
            )
        except Exception:
            pyaudio_instance.terminate()
            raise

        def shutdown_stream() -> None:
            # Clean up audio resources
            try:
                stream.stop_stream()
                stream.close()
            except (OSError, IOError) as e:
                logger.warning(f"Error closing microphone stream: {e}")
            finally:
                pyaudio_instance.terminate()
            logger.info("Microphone stream closed")

        def close_stream(_source: AudioSource) -> None:
            # stop_stream() blocks until the device drains, keep it off the event loop
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                shutdown_stream()
                return
            loop.run_in_executor(None, shutdown_stream)

        source.on_close = close_stream
        stream.start_stream()
        logger.info(f"Microphone stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")
        return source

    def is_available(self) -> bool:
        """Check if an input device exists without opening it."""
        pyaudio_instance = pyaudio.PyAudio()
        try:
            pyaudio_instance.get_default_input_device_info()
            return True
        except (OSError, IOError) as e:
            logger.debug(f"Microphone not available: {e}")
            return False
        finally:
            pyaudio_instance.terminate()
