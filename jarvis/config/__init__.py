"""YAML configuration loader for JARVIS."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from ..models.voice import SpeechOptions

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "telemetry": {
        "endpoint": "ws://localhost:8000/ws/metrics",
        "transport": "websocket",  # "websocket" | "polling"
        "poll_interval_seconds": 2.0,
        "retry_delay_ms": 3000,
        "retry_strategy": "fixed",  # "fixed" | "exponential"
        "max_retry_delay_ms": 30000,
        "history_capacity": 30,
        "health_url": "http://localhost:8000/health",
    },
    "voice": {
        "enabled": True,
        "locale": "en-US",
        "max_listen_seconds": 8.0,
        "silence_seconds": 1.0,
        "speech": {
            "rate": 1.0,
            "pitch": 1.0,
            "volume": 1.0,
        },
    },
    "visualizer": {
        "frame_size": 50,
        "fft_size": 128,
        "fps": 60,
        "smoothing": 0.8,
        "min_decibels": -100.0,
        "max_decibels": -30.0,
    },
    "audio": {
        "sample_rate": 16000,
        "chunk_size": 1024,
        "channels": 1,
    },
    "google_cloud": {
        "use_enhanced_model": False,
        "enable_automatic_punctuation": True,
    },
    "logging": {
        "level": "INFO",
        "file_path": "logs/jarvis.log",
        "console_output": True,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class JarvisConfig:
    """JARVIS configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used and relative paths resolve against the
                        current directory.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            self._resolve_paths(self.config, Path.cwd())
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _deep_merge(DEFAULT_CONFIG, loaded)
        self._resolve_paths(config, self.config_file.parent)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any], config_dir: Path) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        google = config.get('google_cloud', {})
        creds_path = google.get('credentials_path')
        if creds_path and not os.path.isabs(creds_path):
            google['credentials_path'] = str(config_dir / creds_path)

        log_path = config.get('logging', {}).get('file_path')
        if log_path and not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'telemetry.endpoint').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation."""
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_retry_policy(self):
        """Build the reconnect policy configured under ``telemetry``."""
        from ..telemetry.retry import ExponentialBackoffPolicy, FixedDelayPolicy

        strategy = self.get('telemetry.retry_strategy', 'fixed')
        delay = float(self.get('telemetry.retry_delay_ms', 3000)) / 1000.0
        if strategy == 'fixed':
            return FixedDelayPolicy(delay)
        if strategy == 'exponential':
            maximum = float(self.get('telemetry.max_retry_delay_ms', 30000)) / 1000.0
            return ExponentialBackoffPolicy(initial=delay, maximum=maximum)
        raise ValueError(f"Unknown telemetry.retry_strategy: {strategy}")

    def get_history_capacity(self) -> int:
        capacity = self.get('telemetry.history_capacity', 30)
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"telemetry.history_capacity must be a positive integer, got {capacity!r}")
        return capacity

    def get_speech_options(self) -> SpeechOptions:
        speech = self.get('voice.speech', {}) or {}
        return SpeechOptions(
            rate=float(speech.get('rate', 1.0)),
            pitch=float(speech.get('pitch', 1.0)),
            volume=float(speech.get('volume', 1.0)),
        )

    def get_google_credentials_path(self) -> Optional[str]:
        """Get Google credentials path, or None if voice recognition is not configured."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            return None

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())
