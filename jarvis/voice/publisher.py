"""Voice event publisher module for pub/sub event publishing."""

import logging
from typing import Callable

from pubsub import pub

from ..models.events import VoiceEvent

logger = logging.getLogger(__name__)


class VoicePublisher:
    """Publishes voice session events using pubsub.pub for the presentation layer."""

    def __init__(self, topic: str = "voice.event"):
        """Initialize voice publisher.

        Args:
            topic: Pub/sub topic name for voice events
        """
        self.topic = topic
        logger.info(f"VoicePublisher initialized with topic: {topic}")

    def publish_voice_event(self, event: VoiceEvent) -> None:
        """Publish a voice event to the pub/sub topic."""
        pub.sendMessage(self.topic, event=event)
        if event.event_type != "frame":
            logger.debug(f"Published voice event: {event.event_type} ({event.state.value})")

    def get_callback(self) -> Callable[[VoiceEvent], None]:
        """Get callback function for VoiceSession to use."""
        return self.publish_voice_event
