"""Transport channels delivering raw telemetry messages over aiohttp."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

import aiohttp

logger = logging.getLogger(__name__)


# Errors that mean "the transport went away" rather than a programming error
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class ChannelConnection(ABC):
    """A live connection yielding raw messages until it ends."""

    @abstractmethod
    async def receive(self) -> Optional[Union[str, bytes]]:
        """Wait for the next message.

        Returns:
            Raw message, or None when the remote side closed the connection

        Raises:
            One of TRANSPORT_ERRORS on transport failure
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class TelemetryChannel(ABC):
    """Factory for connections to a telemetry source."""

    @abstractmethod
    async def open(self) -> ChannelConnection:
        """Perform the handshake and return a live connection."""
        pass

    async def close(self) -> None:
        """Release resources shared across connections."""
        pass


class _SessionOwner:
    """Lazily created aiohttp session shared by all connections of a channel."""

    def __init__(self, timeout: float):
        self.timeout = aiohttp.ClientTimeout(total=None, connect=timeout, sock_connect=timeout)
        self.session: Optional[aiohttp.ClientSession] = None

    def get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def close_session(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None


class WebSocketConnection(ChannelConnection):
    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self.ws = ws

    async def receive(self) -> Optional[Union[str, bytes]]:
        msg = await self.ws.receive()
        if msg.type == aiohttp.WSMsgType.TEXT:
            return msg.data
        if msg.type == aiohttp.WSMsgType.BINARY:
            return msg.data
        if msg.type == aiohttp.WSMsgType.ERROR:
            raise aiohttp.ClientError(f"WebSocket error: {self.ws.exception()}")
        # CLOSE, CLOSING, CLOSED
        logger.debug(f"WebSocket closed by remote ({msg.type.name})")
        return None

    async def close(self) -> None:
        if not self.ws.closed:
            await self.ws.close()


class WebSocketChannel(TelemetryChannel, _SessionOwner):
    """Streams telemetry records pushed over a WebSocket."""

    def __init__(self, url: str, connect_timeout: float = 10.0, heartbeat: Optional[float] = 30.0):
        _SessionOwner.__init__(self, connect_timeout)
        self.url = url
        self.heartbeat = heartbeat

    async def open(self) -> ChannelConnection:
        logger.debug(f"Opening WebSocket to {self.url}")
        ws = await self.get_session().ws_connect(self.url, heartbeat=self.heartbeat)
        return WebSocketConnection(ws)

    async def close(self) -> None:
        await self.close_session()

    def __repr__(self) -> str:
        return f"WebSocketChannel({self.url!r})"


class PollingConnection(ChannelConnection):
    def __init__(self, channel: "PollingChannel", first_payload: str):
        self.channel = channel
        self.pending: Optional[str] = first_payload
        self.closed = False

    async def receive(self) -> Optional[Union[str, bytes]]:
        if self.closed:
            return None
        if self.pending is not None:
            payload, self.pending = self.pending, None
            return payload
        await asyncio.sleep(self.channel.interval)
        if self.closed:
            return None
        return await self.channel.fetch()

    async def close(self) -> None:
        self.closed = True


class PollingChannel(TelemetryChannel, _SessionOwner):
    """Polls an HTTP metrics endpoint at a fixed interval."""

    def __init__(self, url: str, interval: float = 2.0, request_timeout: float = 10.0):
        _SessionOwner.__init__(self, request_timeout)
        self.url = url
        self.interval = interval
        self.request_timeout = request_timeout

    async def fetch(self) -> str:
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with self.get_session().get(self.url, timeout=timeout) as response:
            # raise_for_status raises ClientResponseError, a ClientError
            response.raise_for_status()
            return await response.text()

    async def open(self) -> ChannelConnection:
        logger.debug(f"Polling {self.url} every {self.interval}s")
        return PollingConnection(self, await self.fetch())

    async def close(self) -> None:
        await self.close_session()

    def __repr__(self) -> str:
        return f"PollingChannel({self.url!r}, interval={self.interval})"


def create_channel(config) -> TelemetryChannel:
    """Build the channel configured under ``telemetry``."""
    transport = config.get('telemetry.transport', 'websocket')
    endpoint = config.get('telemetry.endpoint')
    if not endpoint:
        raise ValueError("telemetry.endpoint is not configured")
    if transport == 'websocket':
        return WebSocketChannel(endpoint)
    if transport == 'polling':
        return PollingChannel(endpoint, interval=float(config.get('telemetry.poll_interval_seconds', 2.0)))
    raise ValueError(f"Unknown telemetry.transport: {transport}")
