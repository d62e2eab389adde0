"""Unit tests for VoiceSession."""

import asyncio

import pytest

from jarvis.models.voice import SpeechOptions, VoiceSessionState
from jarvis.voice.base import NoSpeechDetectedError, RecognitionError, SpeechSynthesisError
from jarvis.voice.commands import CPU_REPLY, GREETING_REPLY
from jarvis.voice.session import VoiceSession

from conftest import FakeMicrophone, FakeRecognizer, FakeSynthesizer, wait_until


IDLE = VoiceSessionState.IDLE
LISTENING = VoiceSessionState.LISTENING
PROCESSING = VoiceSessionState.PROCESSING
SPEAKING = VoiceSessionState.SPEAKING


class EventLog:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if e.event_type == event_type]

    @property
    def states(self):
        return [e.state for e in self.of_type("state_changed")]


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def session(fake_microphone, fake_recognizer, visualizer, fake_synthesizer, event_log):
    return VoiceSession(
        microphone=fake_microphone,
        recognizer=fake_recognizer,
        visualizer=visualizer,
        synthesizer=fake_synthesizer,
        callback=event_log,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestVoiceSessionFlow:
    """Test cases for a full capture -> reply exchange."""

    async def test_initial_state(self, session):
        assert session.state is IDLE
        assert not session.is_busy
        assert session.current_frame == (0.0,) * 50

    async def test_full_exchange(self, session, fake_microphone, fake_recognizer, fake_synthesizer, event_log):
        result = await session.start_listening()

        assert result == {"success": True, "exchange": 1, "state": "listening"}
        assert session.state is LISTENING
        assert fake_recognizer.locales == ["en-US"]

        fake_recognizer.deliver("What's my CPU?")
        await wait_until(lambda: session.state is IDLE)

        assert session.last_transcript == "What's my CPU?"
        assert session.last_reply == CPU_REPLY
        assert fake_synthesizer.spoken == [CPU_REPLY]
        assert event_log.states == [LISTENING, PROCESSING, SPEAKING, IDLE]
        assert [e.transcript for e in event_log.of_type("transcript")] == ["What's my CPU?"]
        assert [e.reply for e in event_log.of_type("reply")] == [CPU_REPLY]
        assert fake_microphone.released == fake_microphone.sources
        assert fake_microphone.sources[0].closed
        assert not session.is_busy

    async def test_frames_while_listening(self, session, manual_scheduler, event_log, sine_chunk):
        await session.start_listening()
        session._exchange.source.feed(sine_chunk)

        await manual_scheduler.advance(2)

        frames = [e for e in event_log.of_type("frame") if e.state is LISTENING]
        assert len(frames) == 2
        assert all(len(e.frame) == 50 for e in frames)
        assert max(session.current_frame) > 0.0

        session.stop_listening()
        assert session.current_frame == (0.0,) * 50
        assert event_log.of_type("frame")[-1].frame == (0.0,) * 50

    async def test_session_is_reusable(self, session, fake_recognizer, fake_synthesizer):
        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        result = await session.start_listening()
        fake_recognizer.deliver("cpu")
        await wait_until(lambda: session.state is IDLE)

        assert result["exchange"] == 2
        assert fake_synthesizer.spoken == [GREETING_REPLY, CPU_REPLY]

    async def test_speech_options_and_locale(self, fake_microphone, fake_recognizer, visualizer,
                                             fake_synthesizer):
        options = SpeechOptions(rate=1.3, pitch=0.9, volume=0.5)
        session = VoiceSession(fake_microphone, fake_recognizer, visualizer, fake_synthesizer,
                               locale="en-GB", speech_options=options)

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert fake_recognizer.locales == ["en-GB"]
        assert fake_synthesizer.options == [options]

    async def test_custom_command_handler(self, fake_microphone, fake_recognizer, visualizer):
        session = VoiceSession(fake_microphone, fake_recognizer, visualizer,
                               command_handler=lambda transcript: transcript.upper())

        await session.start_listening()
        fake_recognizer.deliver("shout")
        await wait_until(lambda: session.state is IDLE)

        assert session.last_reply == "SHOUT"


@pytest.mark.unit
@pytest.mark.asyncio
class TestVoiceSessionConcurrency:
    """Test cases for re-entrancy and cancellation."""

    async def test_second_start_rejected_while_listening(self, session, fake_microphone):
        await session.start_listening()

        result = await session.start_listening()

        assert result == {"success": False, "error": "Already active", "state": "listening"}
        assert fake_microphone.acquire_calls == 1
        session.stop_listening()

    async def test_start_rejected_while_speaking(self, session, fake_recognizer, fake_synthesizer,
                                                 fake_microphone):
        fake_synthesizer.gate = asyncio.Event()
        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is SPEAKING)

        result = await session.start_listening()
        stopped = session.stop_listening()

        assert result["success"] is False
        assert result["state"] == "speaking"
        assert stopped is False
        assert fake_microphone.acquire_calls == 1

        fake_synthesizer.gate.set()
        await wait_until(lambda: session.state is IDLE)

    async def test_cancel_is_silent(self, session, fake_recognizer, fake_synthesizer, fake_microphone,
                                    event_log):
        await session.start_listening()

        assert session.stop_listening() is True
        fake_recognizer.deliver("hello")
        await asyncio.sleep(0.01)

        assert session.state is IDLE
        assert fake_recognizer.abort_calls == 1
        assert event_log.of_type("transcript") == []
        assert event_log.of_type("reply") == []
        assert fake_synthesizer.spoken == []
        assert session.last_transcript is None
        assert fake_microphone.sources[0].closed
        assert event_log.states == [LISTENING, IDLE]

    async def test_late_result_after_cancel_is_ignored(self, fake_microphone, visualizer, fake_synthesizer,
                                                       event_log):
        class ShieldedRecognizer(FakeRecognizer):
            """Result keeps arriving even though the session stopped waiting."""

            async def result(self):
                return await asyncio.shield(self.future)

        recognizer = ShieldedRecognizer()
        session = VoiceSession(fake_microphone, recognizer, visualizer, fake_synthesizer, callback=event_log)

        await session.start_listening()
        session.stop_listening()
        recognizer.deliver("What's my CPU?")
        await asyncio.sleep(0.01)

        assert event_log.of_type("reply") == []
        assert fake_synthesizer.spoken == []
        assert session.state is IDLE

    async def test_stop_when_idle(self, session):
        assert session.stop_listening() is False

    async def test_toggle(self, session, fake_recognizer):
        started = await session.toggle()
        stopped = await session.toggle()

        assert started["success"] is True
        assert stopped == {"success": True, "state": "idle"}
        assert fake_recognizer.abort_calls == 1

    async def test_toggle_cancels_while_acquiring(self, session, fake_microphone, fake_recognizer):
        fake_microphone.gate = asyncio.Event()

        pending = asyncio.create_task(session.start_listening())
        await wait_until(lambda: fake_microphone.acquire_calls == 1)
        toggled = await session.toggle()
        fake_microphone.gate.set()
        result = await pending

        assert toggled == {"success": True, "state": "idle"}
        assert result == {"success": False, "error": "Cancelled"}
        assert fake_recognizer.start_calls == 0
        assert not session.is_busy

    async def test_cancel_during_microphone_acquisition(self, session, fake_microphone, fake_recognizer,
                                                        event_log):
        fake_microphone.gate = asyncio.Event()

        pending = asyncio.create_task(session.start_listening())
        await wait_until(lambda: fake_microphone.acquire_calls == 1)
        assert session.is_busy
        assert session.state is IDLE

        assert session.stop_listening() is True
        fake_microphone.gate.set()
        result = await pending

        assert result == {"success": False, "error": "Cancelled"}
        assert fake_recognizer.start_calls == 0
        assert fake_microphone.released == fake_microphone.sources
        assert fake_microphone.sources[0].closed
        assert session.state is IDLE
        assert not session.is_busy
        assert LISTENING not in event_log.states

    async def test_close_releases_everything(self, session, fake_microphone):
        await session.start_listening()

        await session.close()

        assert session.state is IDLE
        assert fake_microphone.sources[0].closed
        result = await session.start_listening()
        assert result["success"] is False


@pytest.mark.unit
@pytest.mark.asyncio
class TestVoiceSessionFailures:
    """Test cases for capability and recognition failures."""

    async def test_microphone_denied(self, fake_recognizer, visualizer, event_log):
        session = VoiceSession(FakeMicrophone(fail=True), fake_recognizer, visualizer, callback=event_log)

        result = await session.start_listening()

        assert result == {"success": False, "error": "Permission denied", "state": "idle"}
        assert session.state is IDLE
        assert not session.is_busy
        assert fake_recognizer.start_calls == 0
        assert [e.error for e in event_log.of_type("error")] == ["Permission denied"]

    async def test_unexpected_microphone_error_returns_to_idle(self, fake_recognizer, visualizer, event_log):
        class BrokenMicrophone(FakeMicrophone):
            async def acquire(self):
                self.acquire_calls += 1
                raise ValueError("Invalid input device")

        microphone = BrokenMicrophone()
        session = VoiceSession(microphone, fake_recognizer, visualizer, callback=event_log)

        result = await session.start_listening()

        assert result == {"success": False, "error": "Invalid input device", "state": "idle"}
        assert session.state is IDLE
        assert not session.is_busy
        assert [e.error for e in event_log.of_type("error")] == ["Invalid input device"]

        retry = await session.toggle()
        assert retry["success"] is False
        assert retry["error"] == "Invalid input device"
        assert microphone.acquire_calls == 2

    async def test_unexpected_recognizer_start_error_releases_capture(self, fake_microphone, visualizer,
                                                                       event_log):
        class BrokenRecognizer(FakeRecognizer):
            def start(self, source, locale="en-US"):
                raise RuntimeError("client closed")

        session = VoiceSession(fake_microphone, BrokenRecognizer(), visualizer, callback=event_log)

        result = await session.start_listening()

        assert result["success"] is False
        assert result["error"] == "client closed"
        assert session.state is IDLE
        assert not session.is_busy
        assert fake_microphone.released == fake_microphone.sources
        assert fake_microphone.sources[0].closed
        assert LISTENING not in event_log.states

    async def test_unexpected_recognition_error_returns_to_idle(self, session, fake_recognizer,
                                                                fake_microphone, fake_synthesizer, event_log):
        await session.start_listening()

        fake_recognizer.fail(RuntimeError("auth refresh failed"))
        await wait_until(lambda: session.state is IDLE)

        assert not session.is_busy
        assert fake_microphone.sources[0].closed
        assert fake_synthesizer.spoken == []
        assert len(event_log.of_type("error")) == 1
        assert "auth refresh failed" in event_log.of_type("error")[0].error

        result = await session.start_listening()
        assert result["success"] is True
        session.stop_listening()

    async def test_unexpected_synthesis_error_returns_to_idle(self, session, fake_recognizer,
                                                              fake_synthesizer, event_log):
        fake_synthesizer.error = RuntimeError("audio driver crashed")

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert not session.is_busy
        assert [e.error for e in event_log.of_type("error")] == ["audio driver crashed"]
        assert event_log.states == [LISTENING, PROCESSING, SPEAKING, IDLE]

    async def test_recognition_unsupported(self, fake_microphone, visualizer, event_log):
        session = VoiceSession(fake_microphone, FakeRecognizer(available=False), visualizer, callback=event_log)

        result = await session.start_listening()

        assert result["success"] is False
        assert result["error"] == "Speech recognition not supported"
        assert session.state is IDLE
        assert fake_microphone.released == fake_microphone.sources
        assert fake_microphone.sources[0].closed
        assert LISTENING not in event_log.states

    @pytest.mark.parametrize("error", [
        NoSpeechDetectedError("silence"),
        RecognitionError("network"),
    ])
    async def test_recognition_failure_returns_to_idle(self, session, fake_recognizer, fake_synthesizer,
                                                        fake_microphone, event_log, error):
        await session.start_listening()

        fake_recognizer.fail(error)
        await wait_until(lambda: session.state is IDLE)

        assert fake_synthesizer.spoken == []
        assert len(event_log.of_type("error")) == 1
        assert event_log.of_type("reply") == []
        assert fake_microphone.sources[0].closed
        assert not session.is_busy

    async def test_empty_transcript(self, session, fake_recognizer, event_log):
        await session.start_listening()

        fake_recognizer.deliver("   ")
        await wait_until(lambda: session.state is IDLE)

        assert event_log.of_type("reply") == []
        assert PROCESSING not in event_log.states

    @pytest.mark.parametrize("synthesizer", [None, FakeSynthesizer(available=False)])
    async def test_no_speech_output(self, fake_microphone, fake_recognizer, visualizer, event_log, synthesizer):
        session = VoiceSession(fake_microphone, fake_recognizer, visualizer, synthesizer, callback=event_log)

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert session.last_reply == GREETING_REPLY
        assert event_log.states == [LISTENING, PROCESSING, IDLE]
        if synthesizer is not None:
            assert synthesizer.spoken == []

    async def test_synthesis_error(self, session, fake_recognizer, fake_synthesizer, event_log):
        fake_synthesizer.error = SpeechSynthesisError("audio device busy")

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert [e.error for e in event_log.of_type("error")] == ["audio device busy"]
        assert event_log.states == [LISTENING, PROCESSING, SPEAKING, IDLE]

    async def test_command_handler_error(self, fake_microphone, fake_recognizer, visualizer, event_log):
        def broken(transcript):
            raise KeyError(transcript)

        session = VoiceSession(fake_microphone, fake_recognizer, visualizer,
                               command_handler=broken, callback=event_log)

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert session.last_reply is None
        assert len(event_log.of_type("error")) == 1

    async def test_callback_errors_are_isolated(self, fake_microphone, fake_recognizer, visualizer):
        def broken(event):
            raise RuntimeError("ui gone")

        session = VoiceSession(fake_microphone, fake_recognizer, visualizer, callback=broken)

        await session.start_listening()
        fake_recognizer.deliver("hello")
        await wait_until(lambda: session.state is IDLE)

        assert session.last_reply == GREETING_REPLY
