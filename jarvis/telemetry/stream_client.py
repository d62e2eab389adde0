"""Telemetry stream client with automatic reconnection and history tracking."""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Union

from ..models.events import TelemetryUpdate
from ..models.telemetry import (
    ConnectionState,
    HistoryPoint,
    TelemetryDecodeError,
    TelemetryRecord,
)
from .channels import TRANSPORT_ERRORS, ChannelConnection, TelemetryChannel
from .history import HistoryBuffer
from .retry import FixedDelayPolicy, RetryPolicy

logger = logging.getLogger(__name__)


TelemetryObserver = Callable[[TelemetryUpdate], None]


class StreamClient:
    """Keeps a telemetry channel eventually connected and fans out decoded records.

    Connection states move CONNECTING -> OPEN -> CLOSED -> CONNECTING ... for
    as long as the client lives. ``dispose()`` is the only way out: it cancels
    any pending retry, closes the live connection and silences observers.
    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        channel: TelemetryChannel,
        history_capacity: int = 30,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize stream client.

        Args:
            channel: Transport used to reach the telemetry source
            history_capacity: Number of chart points kept in the rolling window
            retry_policy: Reconnect delay policy (fixed 3s by default)
            sleep: Coroutine function used to wait between attempts
        """
        self.channel = channel
        self.history = HistoryBuffer(history_capacity)
        self.retry_policy = retry_policy or FixedDelayPolicy(3.0)
        self._sleep = sleep

        self.observers: List[TelemetryObserver] = []
        self.state = ConnectionState.CONNECTING
        self.latest_record: Optional[TelemetryRecord] = None

        self._task: Optional[asyncio.Task] = None
        self._connection: Optional[ChannelConnection] = None
        self._disposed = False

        # Statistics tracking
        self.connection_attempts = 0
        self.messages_received = 0
        self.decode_failures = 0
        self.consecutive_failures = 0

        logger.info(f"StreamClient initialized: {channel!r}, {self.retry_policy!r}, "
                    f"history capacity {history_capacity}")

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: TelemetryObserver) -> None:
        if callback not in self.observers:
            self.observers.append(callback)

    def unsubscribe(self, callback: TelemetryObserver) -> None:
        if callback in self.observers:
            self.observers.remove(callback)

    def start(self) -> None:
        """Start the connect/reconnect loop. Calling it again is a no-op."""
        if self._disposed:
            logger.warning("StreamClient already disposed, not starting")
            return
        if self.is_running:
            logger.debug("StreamClient already running")
            return

        logger.info("Starting telemetry stream")
        self._task = asyncio.get_running_loop().create_task(self._run(), name="telemetry-stream")

    def dispose(self) -> None:
        """Tear the client down.

        No observer callback fires after this returns. The socket close itself
        completes asynchronously inside the cancelled task.
        """
        if self._disposed:
            return
        logger.info("Disposing telemetry stream client")
        self._disposed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        """Dispose and wait for the background task to finish its teardown."""
        self.dispose()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.channel.close()

    async def _run(self) -> None:
        try:
            while not self._disposed:
                await self._connect_once()
                if self._disposed:
                    break
                self._set_state(ConnectionState.CLOSED)
                self.consecutive_failures += 1
                delay = self.retry_policy.next_delay(self.consecutive_failures)
                logger.info(f"Telemetry connection closed, reconnecting in {delay:.1f}s "
                            f"(attempt {self.connection_attempts + 1})")
                await self._sleep(delay)
                if self._disposed:
                    break
                self._set_state(ConnectionState.CONNECTING)
        except asyncio.CancelledError:
            logger.debug("Telemetry stream task cancelled")
            raise
        except Exception as e:
            logger.error(f"Unexpected error in telemetry stream loop: {e}", exc_info=True)
            raise

    async def _connect_once(self) -> None:
        """One CONNECTING -> OPEN -> (closed) cycle. Returns when the connection ends."""
        self.connection_attempts += 1
        try:
            connection = await self.channel.open()
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Telemetry handshake failed: {e}")
            return

        self._connection = connection
        try:
            if self._disposed:
                return
            self.consecutive_failures = 0
            self._set_state(ConnectionState.OPEN)
            while not self._disposed:
                raw = await connection.receive()
                if raw is None:
                    logger.info("Telemetry source closed the connection")
                    return
                self._on_message(raw)
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Telemetry connection lost: {e}")
        finally:
            self._connection = None
            await self._close_connection(connection)

    async def _close_connection(self, connection: ChannelConnection) -> None:
        try:
            await connection.close()
        except TRANSPORT_ERRORS as e:
            logger.debug(f"Error closing telemetry connection: {e}")

    def _on_message(self, raw: Union[str, bytes, dict]) -> None:
        """Decode one inbound message and notify observers; malformed payloads are dropped."""
        if self._disposed:
            return
        self.messages_received += 1
        try:
            record = TelemetryRecord.decode(raw)
        except TelemetryDecodeError as e:
            self.decode_failures += 1
            logger.warning(f"Dropping malformed telemetry message: {e}")
            return

        self.latest_record = record
        self.history.append(HistoryPoint.from_record(record))
        logger.debug(f"Telemetry record: cpu={record.cpu_usage:.1f}% mem={record.memory_usage_percent:.1f}%")
        self._notify("record")

    def _set_state(self, state: ConnectionState) -> None:
        if self._disposed or state == self.state:
            return
        logger.info(f"Telemetry connection {self.state.value} -> {state.value}")
        self.state = state
        self._notify("state_changed")

    def _notify(self, event_type: str) -> None:
        if self._disposed:
            return
        update = TelemetryUpdate(
            record=self.latest_record,
            history=self.history.snapshot(),
            state=self.state,
            event_type=event_type,
        )
        for observer in list(self.observers):
            try:
                observer(update)
            except Exception as e:
                logger.error(f"Telemetry observer {observer!r} failed: {e}", exc_info=True)

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "state": self.state.value,
            "connection_attempts": self.connection_attempts,
            "messages_received": self.messages_received,
            "decode_failures": self.decode_failures,
            "history_size": len(self.history),
            "history_capacity": self.history.capacity,
            "disposed": self._disposed,
        }
