"""Device id -> topic set bookkeeping with at most one active subscription."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple

from agrolive.models.events import SensorEvent
from agrolive.models.topics import TopicScheme
from agrolive.protocols.base_transport import Frame, FrameType

Consumer = Callable[[SensorEvent], None]


class Connection(Protocol):
    def is_connected(self) -> bool: ...

    def send(self, frame: Frame) -> bool: ...


@dataclass
class Subscription:
    device_id: str
    consumer: Consumer
    topics: Tuple[str, ...]
    armed: bool = False                 # subscribe frames issued on the current link


class SubscriptionRegistry:
    def __init__(self, connection: Connection, scheme: Optional[TopicScheme] = None, qos: int = 0):
        self.connection = connection
        self.scheme = scheme or TopicScheme()
        self.qos = qos
        self.log = logging.getLogger(self.__class__.__name__)

        self._active: Optional[Subscription] = None
        self._wire: Dict[str, str] = {}     # topic -> device id, current link only

    # --------------------------------------------------------------------- #
    #  Introspection
    # --------------------------------------------------------------------- #
    @property
    def active_device(self) -> Optional[str]:
        return self._active.device_id if self._active else None

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._active

    @property
    def topics(self) -> Dict[str, str]:
        return dict(self._wire)

    # --------------------------------------------------------------------- #
    #  Subscribe / unsubscribe
    # --------------------------------------------------------------------- #
    def subscribe_device(self, device_id: str, consumer: Consumer) -> Subscription:
        current = self._active
        if current is not None and current.device_id == device_id:
            self.log.debug(f"Already subscribed to {device_id}; consumer replaced")
            current.consumer = consumer
            return current

        if current is not None:
            self.unsubscribe_device(current.device_id)

        subscription = Subscription(device_id, consumer, self.scheme.topics_for(device_id))
        self._active = subscription

        if self.connection.is_connected():
            self._arm(subscription)
        else:
            self.log.info(f"Not connected; subscription to {device_id} pending until connect")
        return subscription

    def unsubscribe_device(self, device_id: str) -> bool:
        current = self._active
        if current is None or current.device_id != device_id:
            return False

        # bookkeeping first so dispatch stops before any frame goes out
        self._active = None
        for topic in current.topics:
            self._wire.pop(topic, None)

        if current.armed and self.connection.is_connected():
            for topic in current.topics:
                if not self.connection.send(Frame(FrameType.UNSUBSCRIBE, topic)):
                    self.log.warning(f"Unsubscribe frame for '{topic}' not sent")
        current.armed = False
        self.log.info(f"Unsubscribed from device {device_id}")
        return True

    def rearm(self) -> int:
        """Issue subscribe frames for a pending subscription; run on entry into CONNECTED."""
        current = self._active
        if current is None or current.armed:
            return 0
        return self._arm(current)

    def mark_disconnected(self) -> None:
        self._wire.clear()
        if self._active is not None:
            self._active.armed = False

    def _arm(self, subscription: Subscription) -> int:
        sent = 0
        for topic in subscription.topics:
            if self.connection.send(Frame(FrameType.SUBSCRIBE, topic, qos=self.qos)):
                self._wire[topic] = subscription.device_id
                sent += 1
            else:
                self.log.warning(f"Subscribe frame for '{topic}' not sent")
        subscription.armed = sent == len(subscription.topics)
        self.log.info(f"Subscribed to {sent}/{len(subscription.topics)} topics for {subscription.device_id}")
        return sent

    # --------------------------------------------------------------------- #
    #  Delivery
    # --------------------------------------------------------------------- #
    def dispatch(self, events: Iterable[SensorEvent]) -> int:
        delivered = 0
        for event in events:
            current = self._active
            if current is None or event.device_id != current.device_id:
                continue
            prefix = self.scheme.device_prefix(current.device_id)
            if event.source_topic and not event.source_topic.startswith(prefix):
                self.log.debug(f"Event on '{event.source_topic}' outside {prefix}*, dropped")
                continue
            try:
                current.consumer(event)
                delivered += 1
            except Exception as e:
                self.log.error(f"Consumer for {current.device_id} failed: {e}", exc_info=True)
        return delivered
