"""Telemetry streaming module."""

from .history import HistoryBuffer
from .retry import RetryPolicy, FixedDelayPolicy, ExponentialBackoffPolicy
from .channels import TelemetryChannel, ChannelConnection, WebSocketChannel, PollingChannel, create_channel
from .stream_client import StreamClient
from .publisher import TelemetryPublisher
from .health import check_health

__all__ = [
    'HistoryBuffer',
    'RetryPolicy',
    'FixedDelayPolicy',
    'ExponentialBackoffPolicy',
    'TelemetryChannel',
    'ChannelConnection',
    'WebSocketChannel',
    'PollingChannel',
    'create_channel',
    'StreamClient',
    'TelemetryPublisher',
    'check_health',
]
