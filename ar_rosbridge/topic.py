"""Topics and the per-connection topic registry.

rosbridge only accepts `publish` frames for a topic that has been advertised
first. `Topic.publish()` takes care of that: it advertises on demand, so a
topic that was torn down (disconnect, rename) just works again on the next
publish.

Topics never own a lock; every method is called with the owning connection's
lock held (the connection's public methods and `Topic.publish` take it).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator

from . import messages
from .errors import TopicNameCollision

if TYPE_CHECKING:
    from .connection import Connection

log = logging.getLogger(__name__)


class Topic:
    """One named, typed topic on a connection."""

    def __init__(self, connection: Connection, name: str, type_name: str) -> None:
        self._connection = connection
        self.name = name
        self.type = type_name
        self.advertised = False
        # Set once the topic is removed from its connection.
        self.retired = False
        # Publish sequence number, reset on every (re-)advertise.
        self.sequence = 0

    def __repr__(self) -> str:
        return f"Topic(name={self.name!r}, type={self.type!r}, advertised={self.advertised})"

    def advertise(self) -> bool:
        with self._connection.lock:
            if self.retired:
                return False
            if self.advertised:
                return True
            log.debug("advertising %s", self.name)
            if not self._connection.send(messages.advertise(self.name, self.type)):
                return False
            self.advertised = True
            self.sequence = 0
            return True

    def unadvertise(self) -> bool:
        with self._connection.lock:
            if not self.advertised:
                return True
            log.debug("unadvertising %s", self.name)
            if not self._connection.send(messages.unadvertise(self.name)):
                return False
            self.advertised = False
            return True

    def publish(self, msg: Any) -> bool:
        with self._connection.lock:
            if not self.advertised and not self.advertise():
                return False
            self.sequence += 1
            log.debug("publishing %s #%d", self.name, self.sequence)
            return self._connection.send(messages.publish(self.name, self.sequence, msg))

    def mark_unadvertised(self) -> None:
        """Forget the advertisement without sending anything (transport is gone)."""
        self.advertised = False


class TopicRegistry:
    """Live topics of one connection, keyed by name."""

    def __init__(self) -> None:
        self._topics: dict[str, Topic] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._topics

    def __len__(self) -> int:
        return len(self._topics)

    def __iter__(self) -> Iterator[Topic]:
        return iter(list(self._topics.values()))

    def get(self, name: str) -> Topic | None:
        return self._topics.get(name)

    def add(self, topic: Topic) -> None:
        if topic.name in self._topics:
            raise TopicNameCollision(f"topic already exists: {topic.name}")
        self._topics[topic.name] = topic

    def remove(self, topic: Topic) -> bool:
        """Remove `topic` if it is the registered instance for its name."""
        if self._topics.get(topic.name) is not topic:
            return False
        del self._topics[topic.name]
        return True

    def advertise_all(self) -> None:
        for topic in self:
            if not topic.advertise():
                log.warning("could not advertise %s", topic.name)

    def unadvertise_all(self) -> None:
        for topic in self:
            if not topic.unadvertise():
                log.warning("could not unadvertise %s", topic.name)

    def reset(self) -> None:
        for topic in self:
            topic.mark_unadvertised()
