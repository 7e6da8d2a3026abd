"""Controlled publishers: one topic slot per logical data stream.

A controlled publisher can be enabled/disabled and pointed at another topic
without touching the other streams. Publishing on a disabled publisher (or
one without a topic yet) is a silent success.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .connection import Connection
    from .topic import Topic

log = logging.getLogger(__name__)


class ControlledPublisher:
    def __init__(self, connection: Connection, type_name: str) -> None:
        self._connection = connection
        self.type = type_name
        self._enabled = False
        self._topic: Topic | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(topic={self.topic_name!r}, enabled={self._enabled})"

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def topic(self) -> Topic | None:
        return self._topic

    @property
    def topic_name(self) -> str | None:
        return self._topic.name if self._topic is not None else None

    def enable(self, topic_name: str | None = None) -> bool:
        """Enable publishing, optionally on a new topic.

        Without a name, keeps the current topic; fails if there is none.
        """
        log.debug("enable %s", topic_name or self.topic_name)
        self._enabled = True
        if topic_name is None:
            return self._topic is not None
        return self.update_topic(topic_name)

    def disable(self) -> None:
        # The topic stays registered so re-enabling is cheap.
        log.debug("disable %s", self.topic_name)
        self._enabled = False

    def update_topic(self, topic_name: str | None) -> bool:
        if not topic_name:
            return False
        current = self.topic_name
        if current == topic_name:
            return True

        log.debug("replacing publisher: changing topic from %s to %s", current or "(none)", topic_name)
        with self._connection.lock:
            if self._topic is not None:
                self._connection.destroy_topic(self._topic)
                self._topic = None
            # On failure the stream is left without a topic.
            self._topic = self._connection.create_topic(topic_name, self.type)
        return self._topic is not None

    def publish(self, msg: Any) -> bool:
        if not self._enabled:
            return True
        topic = self._topic
        if topic is None:
            return True
        return topic.publish(msg)


class ControlledStaticPublisher(ControlledPublisher):
    """Controlled publisher whose topic name is fixed at construction."""

    def __init__(self, connection: Connection, type_name: str, topic_name: str) -> None:
        super().__init__(connection, type_name)
        self.fixed_topic_name = topic_name

    def enable(self, topic_name: str | None = None) -> bool:
        return super().enable(self.fixed_topic_name)

    def update_topic(self, topic_name: str | None = None) -> bool:
        return super().update_topic(self.fixed_topic_name)
