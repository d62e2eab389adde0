"""JARVIS - live system telemetry dashboard with a voice command session."""

__version__ = "0.1.0"
