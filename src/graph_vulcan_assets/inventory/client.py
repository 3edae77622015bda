"""Graph Asset Inventory REST API client (requests)."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Callable, Protocol, TypeVar
from urllib.parse import quote

import requests

from .models import (
    AlreadyExistsError,
    AssetResp,
    InvalidStatusError,
    InventoryError,
    NotFoundError,
    OwnsResp,
    Pagination,
    ParentOfResp,
    TeamResp,
    format_timestamp,
)

logger = logging.getLogger("graph_vulcan_assets.inventory")

T = TypeVar("T")

_OK = (200,)
_CREATED = (201,)
_UPSERTED = (200, 201)


class Inventory(Protocol):
    """Graph store operations used by the reconciler."""

    def teams(self, identifier: str = "", pagination: Pagination = Pagination()) -> list[TeamResp]:
        ...

    def create_team(self, identifier: str, name: str) -> TeamResp:
        ...

    def update_team(self, team_id: str, identifier: str, name: str) -> TeamResp:
        ...

    def assets(
        self,
        asset_type: str = "",
        identifier: str = "",
        valid_at: datetime | None = None,
        pagination: Pagination = Pagination(),
    ) -> list[AssetResp]:
        ...

    def create_asset(
        self, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        ...

    def update_asset(
        self, asset_id: str, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        ...

    def parents(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        ...

    def children(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        ...

    def upsert_parent(
        self, child_id: str, parent_id: str, timestamp: datetime | None, expiration: datetime
    ) -> ParentOfResp:
        ...

    def owners(self, asset_id: str, pagination: Pagination = Pagination()) -> list[OwnsResp]:
        ...

    def upsert_owner(
        self, asset_id: str, team_id: str, start_time: datetime, end_time: datetime | None = None
    ) -> OwnsResp:
        ...


class InventoryClient:
    """Client of the Graph Asset Inventory REST API.

    ``endpoint`` is the API root, for instance
    ``https://security-graph-asset-inventory/``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        insecure_skip_verify: bool = False,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not str(endpoint or "").strip():
            raise InventoryError("INVENTORY_ENDPOINT_MISSING")
        self.endpoint = endpoint.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        if insecure_skip_verify:
            self._session.verify = False

    def teams(self, identifier: str = "", pagination: Pagination = Pagination()) -> list[TeamResp]:
        params = dict(pagination.query())
        if identifier:
            params["team_identifier"] = identifier
        body = self._request("GET", "/v1/teams", params=params, expected=_OK)
        return _parse_list(body, TeamResp.from_payload)

    def create_team(self, identifier: str, name: str) -> TeamResp:
        payload = {"identifier": identifier, "name": name}
        body = self._request("POST", "/v1/teams", json_body=payload, expected=_CREATED)
        return TeamResp.from_payload(body)

    def update_team(self, team_id: str, identifier: str, name: str) -> TeamResp:
        payload = {"identifier": identifier, "name": name}
        body = self._request("PUT", _path("v1", "teams", team_id), json_body=payload, expected=_OK)
        return TeamResp.from_payload(body)

    def assets(
        self,
        asset_type: str = "",
        identifier: str = "",
        valid_at: datetime | None = None,
        pagination: Pagination = Pagination(),
    ) -> list[AssetResp]:
        """List assets filtered by type, identifier and validity time.

        Empty filters are not applied.
        """
        params = dict(pagination.query())
        if asset_type:
            params["asset_type"] = asset_type
        if identifier:
            params["asset_identifier"] = identifier
        if valid_at is not None:
            params["valid_at"] = format_timestamp(valid_at)
        body = self._request("GET", "/v1/assets", params=params, expected=_OK)
        return _parse_list(body, AssetResp.from_payload)

    def create_asset(
        self, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        payload = _asset_req(asset_type, identifier, timestamp, expiration)
        body = self._request("POST", "/v1/assets", json_body=payload, expected=_CREATED)
        return AssetResp.from_payload(body)

    def update_asset(
        self, asset_id: str, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        """Update the time attributes of an asset.

        The type and identifier must match the asset ID. A None ``timestamp``
        leaves ``last_seen`` untouched.
        """
        payload = _asset_req(asset_type, identifier, timestamp, expiration)
        body = self._request("PUT", _path("v1", "assets", asset_id), json_body=payload, expected=_OK)
        return AssetResp.from_payload(body)

    def parents(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        """Return the ParentOf edges where ``asset_id`` is the child."""
        body = self._request(
            "GET", _path("v1", "assets", asset_id, "parents"), params=pagination.query(), expected=_OK
        )
        return _parse_list(body, ParentOfResp.from_payload)

    def children(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        """Return the ParentOf edges where ``asset_id`` is the parent."""
        body = self._request(
            "GET", _path("v1", "assets", asset_id, "children"), params=pagination.query(), expected=_OK
        )
        return _parse_list(body, ParentOfResp.from_payload)

    def upsert_parent(
        self, child_id: str, parent_id: str, timestamp: datetime | None, expiration: datetime
    ) -> ParentOfResp:
        payload: dict[str, Any] = {"expiration": format_timestamp(expiration)}
        if timestamp is not None:
            payload["timestamp"] = format_timestamp(timestamp)
        body = self._request(
            "PUT",
            _path("v1", "assets", child_id, "parents", parent_id),
            json_body=payload,
            expected=_UPSERTED,
        )
        return ParentOfResp.from_payload(body)

    def owners(self, asset_id: str, pagination: Pagination = Pagination()) -> list[OwnsResp]:
        body = self._request(
            "GET", _path("v1", "assets", asset_id, "owners"), params=pagination.query(), expected=_OK
        )
        return _parse_list(body, OwnsResp.from_payload)

    def upsert_owner(
        self, asset_id: str, team_id: str, start_time: datetime, end_time: datetime | None = None
    ) -> OwnsResp:
        """Create or update the Owns edge between a team and an asset.

        A None ``end_time`` marks the edge as active.
        """
        payload: dict[str, Any] = {"start_time": format_timestamp(start_time)}
        if end_time is not None:
            payload["end_time"] = format_timestamp(end_time)
        body = self._request(
            "PUT",
            _path("v1", "assets", asset_id, "owners", team_id),
            json_body=payload,
            expected=_UPSERTED,
        )
        return OwnsResp.from_payload(body)

    def _request(
        self,
        method: str,
        path: str,
        *,
        expected: tuple[int, ...],
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        url = self.endpoint + path
        try:
            response = self._session.request(
                method,
                url,
                params=params or None,
                json=json_body,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise InventoryError(f"HTTP request error: {str(exc)[:256]}") from exc

        status = response.status_code
        logger.debug("Inventory %s %s status=%s", method, path, status)
        if status not in expected:
            if status == 404 and method != "POST":
                raise NotFoundError(f"not found: {method} {path}")
            if status == 409 and method == "POST":
                raise AlreadyExistsError(f"already exists: {method} {path}")
            raise InvalidStatusError(expected, status)
        try:
            return response.json()
        except ValueError as exc:
            raise InventoryError(f"invalid response: {exc}") from exc


def _asset_req(
    asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": asset_type,
        "identifier": identifier,
        "expiration": format_timestamp(expiration),
    }
    if timestamp is not None:
        payload["timestamp"] = format_timestamp(timestamp)
    return payload


def _path(*segments: str) -> str:
    return "/" + "/".join(quote(str(segment), safe="") for segment in segments)


def _parse_list(body: Any, parse: Callable[[Any], T]) -> list[T]:
    if body is None:
        return []
    if not isinstance(body, list):
        raise InventoryError("invalid response: expected a list")
    return [parse(item) for item in body]
