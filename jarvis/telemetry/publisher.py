"""Telemetry publisher module for pub/sub event publishing."""

import logging
from typing import Callable

from pubsub import pub

from ..models.events import TelemetryUpdate

logger = logging.getLogger(__name__)


class TelemetryPublisher:
    """Publishes telemetry updates using pubsub.pub for the presentation layer."""

    def __init__(self, topic: str = "telemetry.update"):
        """Initialize telemetry publisher.

        Args:
            topic: Pub/sub topic name for telemetry updates
        """
        self.topic = topic
        logger.info(f"TelemetryPublisher initialized with topic: {topic}")

    def publish_update(self, update: TelemetryUpdate) -> None:
        """Publish a telemetry update to the pub/sub topic."""
        pub.sendMessage(self.topic, update=update)

    def get_callback(self) -> Callable[[TelemetryUpdate], None]:
        """Get callback function for StreamClient.subscribe."""
        return self.publish_update
