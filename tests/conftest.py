"""Pytest configuration and fixtures for JARVIS tests."""

import asyncio
import json
import logging
from datetime import datetime, timezone

import aiohttp
import pytest
from pubsub import pub

from jarvis.audio.scheduler import ManualScheduler
from jarvis.audio.source import AudioSource
from jarvis.audio.visualizer import AudioVisualizer
from jarvis.models.voice import RecognitionResult
from jarvis.telemetry.channels import ChannelConnection, TelemetryChannel
from jarvis.voice.base import (
    AbstractMicrophone,
    AbstractSpeechRecognizer,
    AbstractSpeechSynthesizer,
    MicrophoneUnavailableError,
    SpeechEngineUnavailableError,
)


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: tests that use a local network server")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.001)


def telemetry_payload(**overrides) -> dict:
    payload = {
        "memory_total_gb": 16.0,
        "memory_used_gb": 11.02,
        "memory_available_gb": 4.98,
        "memory_usage_percent": 68.9,
        "cpu_usage": 42.37,
        "cpu_count": 8,
        "timestamp": datetime(2026, 1, 15, 12, 30, 45).isoformat(),
    }
    payload.update(overrides)
    return payload


def telemetry_message(**overrides) -> str:
    return json.dumps(telemetry_payload(**overrides))


class FakeConnection(ChannelConnection):
    """Connection fed by the test; None closes it, an exception is raised."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, item) -> None:
        self.queue.put_nowait(item)

    async def receive(self):
        item = await self.queue.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeChannel(TelemetryChannel):
    """Hands out scripted connections; refuses once the script runs out."""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.open_calls = 0
        self.closed = False

    async def open(self) -> ChannelConnection:
        self.open_calls += 1
        await asyncio.sleep(0)
        if not self.outcomes:
            raise aiohttp.ClientConnectionError("connection refused")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    """Stand-in for asyncio.sleep that records reconnect delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeMicrophone(AbstractMicrophone):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.acquire_calls = 0
        self.sources = []
        self.released = []
        self.gate = None  # asyncio.Event to hold acquisition open

    async def acquire(self) -> AudioSource:
        self.acquire_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise MicrophoneUnavailableError("Permission denied")
        source = AudioSource(sample_rate=16000)
        self.sources.append(source)
        return source

    def release(self, source: AudioSource) -> None:
        self.released.append(source)
        source.close()


class FakeRecognizer(AbstractSpeechRecognizer):
    """Recognizer whose result is delivered by the test."""

    def __init__(self, available: bool = True):
        super().__init__("en-US")
        self.available = available
        self.start_calls = 0
        self.abort_calls = 0
        self.locales = []
        self.future = None

    def start(self, source, locale="en-US") -> None:
        if not self.available:
            raise SpeechEngineUnavailableError("Speech recognition not supported")
        self.start_calls += 1
        self.locales.append(locale)
        self.future = asyncio.get_running_loop().create_future()

    async def result(self) -> RecognitionResult:
        return await self.future

    def abort(self) -> None:
        self.abort_calls += 1

    def deliver(self, transcript: str) -> None:
        if not self.future.done():
            self.future.set_result(RecognitionResult(transcript=transcript, confidence=0.9))

    def fail(self, error: Exception) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class FakeSynthesizer(AbstractSpeechSynthesizer):
    def __init__(self, available: bool = True):
        self.available = available
        self.spoken = []
        self.options = []
        self.gate = None  # asyncio.Event to hold playback open
        self.error = None

    def is_available(self) -> bool:
        return self.available

    async def speak(self, text, options) -> None:
        self.spoken.append(text)
        self.options.append(options)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def visualizer(manual_scheduler):
    return AudioVisualizer(frame_size=50, fft_size=128, scheduler=manual_scheduler)


@pytest.fixture
def fake_microphone():
    return FakeMicrophone()


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()


@pytest.fixture
def fake_synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def sine_chunk():
    """Generate 1024 samples of a 440 Hz tone as 16-bit PCM."""
    import numpy as np

    t = np.arange(1024) / 16000
    wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
    return (wave_data * 32767).astype(np.int16).tobytes()


@pytest.fixture
def utc_timestamp():
    return datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop all pub/sub listeners between tests."""
    yield
    pub.unsubAll()
