"""In-memory stream helpers for tests (message fixtures + mock processor)."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Iterable

from . import Message, MetadataEntry, MsgHandler, StreamError


def parse_messages(path: Path | str) -> list[Message]:
    """Load messages from a JSON fixture file.

    The file holds a list of objects::

        [{"key": "k0", "value": "v0", "metadata": [{"key": "h0", "value": "v"}]}]

    ``key`` and ``value`` may be null. An object ``value`` is JSON encoded.
    Raises ``ValueError`` on malformed input and ``OSError`` if the file
    cannot be read.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("message fixture must be a JSON list")
    return [_message_from_fixture(item, index) for index, item in enumerate(raw)]


def _message_from_fixture(item: Any, index: int) -> Message:
    if not isinstance(item, dict):
        raise ValueError(f"message {index} must be an object")
    metadata: list[MetadataEntry] = []
    for entry in item.get("metadata") or []:
        if not isinstance(entry, dict):
            raise ValueError(f"message {index} metadata entries must be objects")
        key = entry.get("key")
        value = entry.get("value")
        if key is None or value is None:
            raise ValueError(f"message {index} metadata entries need a key and a value")
        metadata.append(MetadataEntry(key=_encode(key), value=_encode(value)))
    key = item.get("key")
    value = item.get("value")
    return Message(
        key=None if key is None else _encode(key),
        value=None if value is None else _encode(value),
        metadata=tuple(metadata),
    )


def _encode(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return json.dumps(value, ensure_ascii=True, separators=(",", ":")).encode("utf-8")


class MockProcessor:
    """Stream processor over a predefined list of messages.

    Tracks the offset of the next message to deliver, so calling ``process``
    again after an error redelivers the failed message, like a broker resuming
    from the last stored offset.
    """

    def __init__(self, messages: Iterable[Message]) -> None:
        self.messages = list(messages)
        self.next_offset = 0
        self.entities: list[str] = []

    def process(self, cancel: threading.Event, entity: str, handler: MsgHandler) -> None:
        self.entities.append(entity)
        while self.next_offset < len(self.messages):
            if cancel.is_set():
                return
            try:
                handler(self.messages[self.next_offset])
            except Exception as exc:
                raise StreamError(f"error processing message: {exc}") from exc
            self.next_offset += 1
