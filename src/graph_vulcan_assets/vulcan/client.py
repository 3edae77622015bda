"""Vulcan async API consumer: metadata validation, version gate, payload decoding."""

from __future__ import annotations

import json
import logging
import re
import threading
from typing import Callable

from graph_vulcan_assets.stream import Message, StreamProcessor

from .contracts import (
    AssetDecodeError,
    AssetEvent,
    AssetMetadata,
    AssetPayload,
    InvalidMessageKeyError,
    MissingMetadataError,
    Team,
)

logger = logging.getLogger("graph_vulcan_assets.vulcan")

# Major version of the Vulcan async API supported by VulcanClient.
VULCAN_MAJOR_VERSION = 0

# Name of the stream entity carrying asset events.
ASSETS_ENTITY_NAME = "assets-v0"

METADATA_VERSION_KEY = "version"
METADATA_TYPE_KEY = "type"
METADATA_IDENTIFIER_KEY = "identifier"

_MAJOR_RE = re.compile(r"^[0-9]+$")

AssetHandler = Callable[[AssetEvent], None]


class VulcanClient:
    def __init__(
        self,
        processor: StreamProcessor,
        *,
        major_version: int = VULCAN_MAJOR_VERSION,
        entity_name: str = ASSETS_ENTITY_NAME,
    ) -> None:
        self.processor = processor
        self.major_version = major_version
        self.entity_name = entity_name

    def process_assets(self, cancel: threading.Event, handler: AssetHandler) -> None:
        """Decode the asset events of the stream and pass them to ``handler``.

        Blocks until ``cancel`` is set or an error is raised by the processor.
        Events with an unsupported schema version are skipped.
        """

        def _handle(msg: Message) -> None:
            event = self.decode(msg)
            if event is None:
                return
            handler(event)

        self.processor.process(cancel, self.entity_name, _handle)

    def decode(self, msg: Message) -> AssetEvent | None:
        """Return the asset event carried by ``msg``, or None if it must be skipped."""
        metadata = parse_metadata(msg)
        if not supported_version(metadata.version, self.major_version):
            logger.debug(
                "Vulcan asset skipped: unsupported version=%s type=%s identifier=%s",
                metadata.version,
                metadata.type,
                metadata.identifier,
            )
            return None

        key = _decode_key(msg.key)
        if msg.value is not None:
            return AssetEvent(key=key, payload=_decode_payload(key, msg.value), is_nil=False)

        team_id, asset_id = parse_message_key(key)
        payload = AssetPayload(
            id=asset_id,
            team=Team(id=team_id),
            asset_type=metadata.type,
            identifier=metadata.identifier,
        )
        return AssetEvent(key=key, payload=payload, is_nil=True)


def parse_metadata(msg: Message) -> AssetMetadata:
    values = {
        METADATA_VERSION_KEY: "",
        METADATA_TYPE_KEY: "",
        METADATA_IDENTIFIER_KEY: "",
    }
    for entry in msg.metadata:
        key = entry.key.decode("utf-8", errors="replace")
        if key in values:
            values[key] = entry.value.decode("utf-8", errors="replace")
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise MissingMetadataError(f"missing metadata entry: {','.join(missing)}")
    return AssetMetadata(
        version=values[METADATA_VERSION_KEY],
        type=values[METADATA_TYPE_KEY],
        identifier=values[METADATA_IDENTIFIER_KEY],
    )


def supported_version(version: str, major_version: int = VULCAN_MAJOR_VERSION) -> bool:
    """Return True if the semantic ``version`` has the supported major version."""
    if not version:
        return False
    if version[0] == "v":
        version = version[1:]
    parts = version.split(".")
    if len(parts) < 3:
        return False
    if not _MAJOR_RE.fullmatch(parts[0]):
        return False
    return int(parts[0]) == major_version


def parse_message_key(key: str) -> tuple[str, str]:
    """Split a message key into its team ID and asset ID."""
    parts = key.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidMessageKeyError(f"invalid message key: {key!r}")
    return parts[0], parts[1]


def _decode_key(raw: bytes | None) -> str:
    try:
        return (raw or b"").decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidMessageKeyError(f"invalid message key: {raw!r}") from exc


def _decode_payload(key: str, value: bytes) -> AssetPayload:
    try:
        raw = json.loads(value.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise AssetDecodeError(f"could not decode asset with key {key}: {exc}") from exc
    try:
        return AssetPayload.from_payload(raw)
    except AssetDecodeError as exc:
        raise AssetDecodeError(f"could not decode asset with key {key}: {exc}") from exc

