"""Audio publisher module for pub/sub frame distribution."""

import logging
from pubsub import pub
from ..models.events import AudioEvent

logger = logging.getLogger(__name__)

AUDIO_FRAME_TOPIC = "audio.frame"


class AudioPublisher:
    """Publishes captured audio frames using pubsub.pub."""

    def __init__(self, topic: str = AUDIO_FRAME_TOPIC):
        """Initialize audio publisher.

        Args:
            topic: Pub/sub topic name for audio frames
        """
        self.topic = topic
        logger.info(f"AudioPublisher initialized with topic: {topic}")

    def publish_audio_event(self, audio_event: AudioEvent) -> None:
        """Publish an audio frame to the pub/sub topic."""
        pub.sendMessage(self.topic, event=audio_event)
