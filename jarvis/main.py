"""Main application entry point for JARVIS."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live

from . import __version__
from .audio.scheduler import RefreshRateScheduler
from .audio.visualizer import AudioVisualizer
from .config import JarvisConfig
from .telemetry.channels import create_channel
from .telemetry.health import check_health
from .telemetry.publisher import TelemetryPublisher
from .telemetry.stream_client import StreamClient
from .ui.dashboard_screen import DashboardScreen
from .ui.keyboard_input import KeyboardInputHandler
from .voice.publisher import VoicePublisher
from .voice.session import VoiceSession

logger = logging.getLogger(__name__)


class Server:
    """Composes the telemetry stream and the voice session behind one dashboard."""

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        # Load configuration
        self.config = JarvisConfig(config_path)
        # Set up logging (override config with command line if specified)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))

        self.stream_client: Optional[StreamClient] = None
        self.voice_session: Optional[VoiceSession] = None
        self.screen: Optional[DashboardScreen] = None
        self.stop_event: Optional[asyncio.Event] = None

    def init(self, voice_enabled: bool = True) -> None:
        logger.info("Initializing services...")

        channel = create_channel(self.config)
        self.stream_client = StreamClient(
            channel,
            history_capacity=self.config.get_history_capacity(),
            retry_policy=self.config.get_retry_policy(),
        )
        self.telemetry_publisher = TelemetryPublisher("telemetry.update")
        self.stream_client.subscribe(self.telemetry_publisher.get_callback())

        if voice_enabled and self.config.get('voice.enabled', True):
            self.voice_session = self._create_voice_session()
        else:
            logger.info("Voice session disabled")

        self.screen = DashboardScreen(
            telemetry_topic=self.telemetry_publisher.topic,
            voice_topic="voice.event",
            frame_size=self.config.get('visualizer.frame_size', 50),
            voice_enabled=self.voice_session is not None,
        )

    def _create_voice_session(self) -> VoiceSession:
        # Imported here so the dashboard runs on hosts without audio libraries configured
        from .audio.microphone import PyAudioMicrophone
        from .voice.google_backend import GoogleSpeechRecognizer
        from .voice.tts import Pyttsx3Synthesizer

        sample_rate = self.config.get('audio.sample_rate', 16000)
        microphone = PyAudioMicrophone(
            sample_rate=sample_rate,
            chunk_size=self.config.get('audio.chunk_size', 1024),
            channels=self.config.get('audio.channels', 1),
        )

        credentials_path = self.config.get_google_credentials_path()
        if not credentials_path:
            raise ValueError("google_cloud.credentials_path is required for the voice session "
                             "(use --no-voice to run the dashboard only)")

        recognizer = GoogleSpeechRecognizer(
            credentials_path=credentials_path,
            sample_rate=sample_rate,
            language=self.config.get('voice.locale', 'en-US'),
            use_enhanced=self.config.get('google_cloud.use_enhanced_model', False),
            enable_automatic_punctuation=self.config.get('google_cloud.enable_automatic_punctuation', True),
            max_listen_seconds=float(self.config.get('voice.max_listen_seconds', 8.0)),
            silence_seconds=float(self.config.get('voice.silence_seconds', 1.0)),
        )
        if not recognizer.initialize():
            logger.warning("Google Speech backend failed to initialize, listening will be rejected")

        synthesizer = Pyttsx3Synthesizer()
        if not synthesizer.initialize():
            logger.warning("Speech output unavailable, replies will be shown but not spoken")

        visualizer = AudioVisualizer(
            frame_size=self.config.get('visualizer.frame_size', 50),
            fft_size=self.config.get('visualizer.fft_size', 128),
            smoothing=self.config.get('visualizer.smoothing', 0.8),
            min_decibels=self.config.get('visualizer.min_decibels', -100.0),
            max_decibels=self.config.get('visualizer.max_decibels', -30.0),
            scheduler=RefreshRateScheduler(self.config.get('visualizer.fps', 60)),
        )
        self.voice_publisher = VoicePublisher("voice.event")
        return VoiceSession(
            microphone=microphone,
            recognizer=recognizer,
            visualizer=visualizer,
            synthesizer=synthesizer,
            callback=self.voice_publisher.get_callback(),
            locale=self.config.get('voice.locale', 'en-US'),
            speech_options=self.config.get_speech_options(),
        )

    async def run(self, duration: Optional[float] = None) -> None:
        loop = asyncio.get_running_loop()
        self.stop_event = asyncio.Event()

        health_url = self.config.get('telemetry.health_url')
        if health_url:
            await check_health(health_url)

        self.stream_client.start()
        keyboard = KeyboardInputHandler(lambda key: self._on_key(loop, key))
        keyboard.start()

        deadline = loop.time() + duration if duration else None
        try:
            with Live(self.screen.render(), console=Console(), refresh_per_second=10) as live:
                while not self.stop_event.is_set():
                    live.update(self.screen.render())
                    try:
                        await asyncio.wait_for(self.stop_event.wait(), timeout=0.1)
                    except asyncio.TimeoutError:
                        pass
                    if deadline is not None and loop.time() >= deadline:
                        break
        finally:
            keyboard.stop()
            await self.cleanup()

    def _on_key(self, loop: asyncio.AbstractEventLoop, key: str) -> bool:
        """Runs on the keyboard thread."""
        if key in ('q', '\x03'):
            loop.call_soon_threadsafe(self.stop_event.set)
            return False
        if key == ' ' and self.voice_session is not None:
            asyncio.run_coroutine_threadsafe(self._toggle_voice(), loop)
        return True

    async def _toggle_voice(self) -> None:
        try:
            result = await self.voice_session.toggle()
        except Exception as e:
            logger.error(f"Error toggling voice session: {e}", exc_info=True)
            return
        if not result.get("success"):
            logger.info(f"Voice toggle did not start listening: {result.get('error', 'stopped')}")

    async def cleanup(self) -> None:
        if self.stream_client is not None:
            await self.stream_client.aclose()
        if self.voice_session is not None:
            await self.voice_session.close()
        if self.screen is not None:
            self.screen.shutdown()
        logger.info("JARVIS shut down")


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'logs/jarvis.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only warnings, the dashboard owns the terminal
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("JARVIS starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for JARVIS."""
    parser = argparse.ArgumentParser(
        description="JARVIS - live system monitor with voice commands",
        epilog="Keys: space=start/stop listening, q=quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, INFO)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        help="Exit automatically after this many seconds"
    )

    parser.add_argument(
        "--no-voice",
        action="store_true",
        help="Run the telemetry dashboard without the voice session"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"JARVIS v{__version__}"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        server.init(voice_enabled=not args.no_voice)
        asyncio.run(server.run(args.duration))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
