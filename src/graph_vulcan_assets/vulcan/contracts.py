"""Vulcan async API asset contracts (assetPayload, team, annotation, metadata)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


class VulcanError(ValueError):
    """Raised when a Vulcan asset event cannot be decoded."""


class MissingMetadataError(VulcanError):
    """Raised when a required metadata entry is absent."""


class InvalidMessageKeyError(VulcanError):
    """Raised when a message key is not ``<team_id>/<asset_id>``."""


class AssetDecodeError(VulcanError):
    """Raised when a message value is not a valid asset payload."""


@dataclass(frozen=True)
class Team:
    id: str
    name: str = ""
    description: str = ""
    tag: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "Team":
        mapped = _as_mapping(payload, "team")
        return cls(
            id=_require_non_empty_string(mapped.get("id"), "team.id"),
            name=_optional_string(mapped.get("name"), "team.name"),
            description=_optional_string(mapped.get("description"), "team.description"),
            tag=_optional_string(mapped.get("tag"), "team.tag"),
        )


@dataclass(frozen=True)
class Annotation:
    key: str
    value: str

    @classmethod
    def from_payload(cls, payload: Any) -> "Annotation":
        mapped = _as_mapping(payload, "annotations[]")
        return cls(
            key=_optional_string(mapped.get("key"), "annotations[].key"),
            value=_optional_string(mapped.get("value"), "annotations[].value"),
        )


@dataclass(frozen=True)
class AssetPayload:
    """The ``assetPayload`` model as defined by the Vulcan async API."""

    id: str
    team: Team
    asset_type: str
    identifier: str
    alias: str = ""
    rolfp: str = ""
    scannable: bool = False
    annotations: tuple[Annotation, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: Any) -> "AssetPayload":
        mapped = _as_mapping(payload, "asset")
        annotations_raw = mapped.get("annotations")
        if annotations_raw is None:
            annotations_raw = []
        if not isinstance(annotations_raw, list):
            raise AssetDecodeError("annotations must be a list")
        scannable = mapped.get("scannable", False)
        if not isinstance(scannable, bool):
            raise AssetDecodeError("scannable must be a boolean")
        return cls(
            id=_optional_string(mapped.get("id"), "id"),
            team=Team.from_payload(mapped.get("team")),
            asset_type=_require_non_empty_string(mapped.get("asset_type"), "asset_type"),
            identifier=_require_non_empty_string(mapped.get("identifier"), "identifier"),
            alias=_optional_string(mapped.get("alias"), "alias"),
            rolfp=_optional_string(mapped.get("rolfp"), "rolfp"),
            scannable=scannable,
            annotations=tuple(Annotation.from_payload(item) for item in annotations_raw),
        )


@dataclass(frozen=True)
class AssetMetadata:
    version: str
    type: str
    identifier: str


@dataclass(frozen=True)
class AssetEvent:
    """A decoded asset event.

    ``is_nil`` is true for tombstones. In that case ``payload`` only carries
    the asset type and identifier taken from the message metadata, and the
    asset and team IDs taken from the message key.
    """

    key: str
    payload: AssetPayload
    is_nil: bool = False


def _as_mapping(payload: Any, field_name: str) -> dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise AssetDecodeError(f"{field_name} must be a mapping")
    return dict(payload)


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise AssetDecodeError(f"{field_name} must be a non-empty string")
    return value


def _optional_string(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise AssetDecodeError(f"{field_name} must be a string")
    return value
