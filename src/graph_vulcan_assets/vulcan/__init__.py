"""Vulcan async API asset stream consumer."""

from .client import (
    ASSETS_ENTITY_NAME,
    VULCAN_MAJOR_VERSION,
    AssetHandler,
    VulcanClient,
    parse_message_key,
    parse_metadata,
    supported_version,
)
from .contracts import (
    Annotation,
    AssetDecodeError,
    AssetEvent,
    AssetMetadata,
    AssetPayload,
    InvalidMessageKeyError,
    MissingMetadataError,
    Team,
    VulcanError,
)

__all__ = [
    "ASSETS_ENTITY_NAME",
    "VULCAN_MAJOR_VERSION",
    "Annotation",
    "AssetDecodeError",
    "AssetEvent",
    "AssetHandler",
    "AssetMetadata",
    "AssetPayload",
    "InvalidMessageKeyError",
    "MissingMetadataError",
    "Team",
    "VulcanClient",
    "VulcanError",
    "parse_message_key",
    "parse_metadata",
    "supported_version",
]
