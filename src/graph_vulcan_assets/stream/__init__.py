"""Stream processing interfaces shared by the Kafka adapter and test helpers."""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Callable, Protocol


@dataclass(frozen=True)
class MetadataEntry:
    key: bytes
    value: bytes


@dataclass(frozen=True)
class Message:
    key: bytes | None
    value: bytes | None
    metadata: tuple[MetadataEntry, ...] = ()


MsgHandler = Callable[[Message], None]


class StreamError(RuntimeError):
    """Raised when a stream processor stops because of an error."""


class StreamProcessor(Protocol):
    def process(self, cancel: threading.Event, entity: str, handler: MsgHandler) -> None:
        ...


__all__ = [
    "Message",
    "MetadataEntry",
    "MsgHandler",
    "StreamError",
    "StreamProcessor",
]
