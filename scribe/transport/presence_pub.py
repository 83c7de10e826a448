"""Presence publisher module for pub/sub event publishing."""

import logging
from pubsub import pub
from ..models.events import PresenceEvent

logger = logging.getLogger(__name__)

PRESENCE_TOPIC = "voice.presence"


class PresencePublisher:
    """Publishes the target user's presence changes using pubsub.pub."""

    def __init__(self, topic: str = PRESENCE_TOPIC):
        """Initialize presence publisher.

        Args:
            topic: Pub/sub topic name for presence events
        """
        self.topic = topic
        logger.info(f"PresencePublisher initialized with topic: {topic}")

    def publish_presence_event(self, event: PresenceEvent) -> None:
        """Publish a presence event to the pub/sub topic.

        Args:
            event: PresenceEvent to publish
        """
        logger.info(f"{event.user_name} {event.kind.value} "
                    f"(group={event.group_id}, from={event.old_room_id}, to={event.new_room_id})")
        pub.sendMessage(self.topic, event=event)
