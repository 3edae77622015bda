"""Graph Asset Inventory REST API models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import re
from typing import Any, Mapping


_FRACTION_RE = re.compile(r"\.([0-9]+)")


class InventoryError(RuntimeError):
    """Raised when a Graph Asset Inventory call fails."""


class NotFoundError(InventoryError):
    """Raised when an entity cannot be found in the Asset Inventory."""


class AlreadyExistsError(InventoryError):
    """Raised when trying to create an entity that already exists."""


class InvalidStatusError(InventoryError):
    """Raised when an endpoint does not return one of the expected status codes."""

    def __init__(self, expected: tuple[int, ...], returned: int) -> None:
        self.expected = expected
        self.returned = returned
        super().__init__(f"invalid status response code {returned}, expected {list(expected)}")


def parse_timestamp(value: Any, field_name: str) -> datetime:
    raw = str(value or "").strip()
    if not raw:
        raise InventoryError(f"invalid response: {field_name} is required")
    parse_input = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    # The API may send nanosecond precision; datetime keeps microseconds.
    parse_input = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], parse_input)
    try:
        parsed = datetime.fromisoformat(parse_input)
    except ValueError as exc:
        raise InventoryError(f"invalid response: {field_name} must be an RFC 3339 timestamp") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Expiration assigned to unexpired entities.
UNEXPIRED = datetime(9999, 12, 12, 23, 59, 59, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Pagination:
    """Pagination parameters. A zero ``size`` disables pagination."""

    page: int = 0
    size: int = 0

    def query(self) -> dict[str, str]:
        if self.size == 0:
            return {}
        return {"page": str(self.page), "size": str(self.size)}


@dataclass(frozen=True)
class TeamResp:
    id: str
    identifier: str
    name: str

    @classmethod
    def from_payload(cls, payload: Any) -> "TeamResp":
        mapped = _as_mapping(payload, "team")
        return cls(
            id=str(mapped.get("id") or ""),
            identifier=str(mapped.get("identifier") or ""),
            name=str(mapped.get("name") or ""),
        )


@dataclass(frozen=True)
class AssetResp:
    id: str
    type: str
    identifier: str
    first_seen: datetime
    last_seen: datetime
    expiration: datetime

    @classmethod
    def from_payload(cls, payload: Any) -> "AssetResp":
        mapped = _as_mapping(payload, "asset")
        return cls(
            id=str(mapped.get("id") or ""),
            type=str(mapped.get("type") or ""),
            identifier=str(mapped.get("identifier") or ""),
            first_seen=parse_timestamp(mapped.get("first_seen"), "asset.first_seen"),
            last_seen=parse_timestamp(mapped.get("last_seen"), "asset.last_seen"),
            expiration=parse_timestamp(mapped.get("expiration"), "asset.expiration"),
        )

    @property
    def expired(self) -> bool:
        return self.expiration != UNEXPIRED


@dataclass(frozen=True)
class ParentOfResp:
    id: str
    parent_id: str
    child_id: str
    first_seen: datetime
    last_seen: datetime
    expiration: datetime

    @classmethod
    def from_payload(cls, payload: Any) -> "ParentOfResp":
        mapped = _as_mapping(payload, "parent_of")
        return cls(
            id=str(mapped.get("id") or ""),
            parent_id=str(mapped.get("parent_id") or ""),
            child_id=str(mapped.get("child_id") or ""),
            first_seen=parse_timestamp(mapped.get("first_seen"), "parent_of.first_seen"),
            last_seen=parse_timestamp(mapped.get("last_seen"), "parent_of.last_seen"),
            expiration=parse_timestamp(mapped.get("expiration"), "parent_of.expiration"),
        )


@dataclass(frozen=True)
class OwnsResp:
    id: str
    team_id: str
    asset_id: str
    start_time: datetime
    end_time: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "OwnsResp":
        mapped = _as_mapping(payload, "owns")
        end_time = mapped.get("end_time")
        return cls(
            id=str(mapped.get("id") or ""),
            team_id=str(mapped.get("team_id") or ""),
            asset_id=str(mapped.get("asset_id") or ""),
            start_time=parse_timestamp(mapped.get("start_time"), "owns.start_time"),
            end_time=None if end_time in (None, "") else parse_timestamp(end_time, "owns.end_time"),
        )


def _as_mapping(payload: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise InventoryError(f"invalid response: {field_name} must be an object")
    return payload
