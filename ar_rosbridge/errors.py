"""Shared error taxonomy.

Leaf helpers raise these; the public operations of the connection, publishers
and controller translate them into boolean/None results and a log line.
`ErrorResponse` gives the CLI one consistent shape to report them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BridgeError(Exception):
    code = "bridge_error"


class InvalidEndpoint(BridgeError, ValueError):
    code = "invalid_endpoint"


class TopicNameCollision(BridgeError):
    code = "topic_name_collision"


class NotConnected(BridgeError):
    code = "not_connected"


class TransportSendFailure(BridgeError):
    code = "transport_send_failure"


class StreamKeyUnknown(BridgeError, KeyError):
    code = "stream_key_unknown"

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return Exception.__str__(self)


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorResponse:
        code = getattr(exc, "code", "internal_error")
        return cls(code=code, message=str(exc))

    def to_message(self, *, endpoint: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if endpoint is not None:
            msg["endpoint"] = endpoint
        return msg
