from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
import itertools

import pytest

from graph_vulcan_assets.inventory import (
    AlreadyExistsError,
    AssetResp,
    NotFoundError,
    OwnsResp,
    Pagination,
    ParentOfResp,
    TeamResp,
)


class FakeInventory:
    """In-memory Graph Asset Inventory with the InventoryClient surface."""

    def __init__(self) -> None:
        self.assets_by_id: dict[str, AssetResp] = {}
        self.teams_by_id: dict[str, TeamResp] = {}
        self.owns: dict[tuple[str, str], OwnsResp] = {}
        self.parent_of: dict[tuple[str, str], ParentOfResp] = {}
        self.mutations: list[tuple[object, ...]] = []
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def teams(self, identifier: str = "", pagination: Pagination = Pagination()) -> list[TeamResp]:
        return [t for t in self.teams_by_id.values() if not identifier or t.identifier == identifier]

    def create_team(self, identifier: str, name: str) -> TeamResp:
        if self.teams(identifier=identifier):
            raise AlreadyExistsError(f"team {identifier}")
        team = TeamResp(id=self._next_id("team"), identifier=identifier, name=name)
        self.teams_by_id[team.id] = team
        self.mutations.append(("create_team", identifier, name))
        return team

    def update_team(self, team_id: str, identifier: str, name: str) -> TeamResp:
        if team_id not in self.teams_by_id:
            raise NotFoundError(f"team {team_id}")
        team = TeamResp(id=team_id, identifier=identifier, name=name)
        self.teams_by_id[team_id] = team
        self.mutations.append(("update_team", team_id, name))
        return team

    def assets(
        self,
        asset_type: str = "",
        identifier: str = "",
        valid_at: datetime | None = None,
        pagination: Pagination = Pagination(),
    ) -> list[AssetResp]:
        return [
            a
            for a in self.assets_by_id.values()
            if (not asset_type or a.type == asset_type) and (not identifier or a.identifier == identifier)
        ]

    def create_asset(
        self, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        if self.assets(asset_type=asset_type, identifier=identifier):
            raise AlreadyExistsError(f"asset {asset_type}/{identifier}")
        assert timestamp is not None
        asset = AssetResp(
            id=self._next_id("asset"),
            type=asset_type,
            identifier=identifier,
            first_seen=timestamp,
            last_seen=timestamp,
            expiration=expiration,
        )
        self.assets_by_id[asset.id] = asset
        self.mutations.append(("create_asset", asset_type, identifier))
        return asset

    def update_asset(
        self, asset_id: str, asset_type: str, identifier: str, timestamp: datetime | None, expiration: datetime
    ) -> AssetResp:
        current = self.assets_by_id.get(asset_id)
        if current is None:
            raise NotFoundError(f"asset {asset_id}")
        updated = replace(
            current,
            last_seen=timestamp if timestamp is not None else current.last_seen,
            expiration=expiration,
        )
        self.assets_by_id[asset_id] = updated
        self.mutations.append(("update_asset", asset_id, expiration))
        return updated

    def parents(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        self._require_asset(asset_id)
        return [e for e in self.parent_of.values() if e.child_id == asset_id]

    def children(self, asset_id: str, pagination: Pagination = Pagination()) -> list[ParentOfResp]:
        self._require_asset(asset_id)
        return [e for e in self.parent_of.values() if e.parent_id == asset_id]

    def upsert_parent(
        self, child_id: str, parent_id: str, timestamp: datetime | None, expiration: datetime
    ) -> ParentOfResp:
        self._require_asset(child_id)
        self._require_asset(parent_id)
        assert timestamp is not None
        current = self.parent_of.get((child_id, parent_id))
        if current is None:
            edge = ParentOfResp(
                id=self._next_id("parent_of"),
                parent_id=parent_id,
                child_id=child_id,
                first_seen=timestamp,
                last_seen=timestamp,
                expiration=expiration,
            )
        else:
            edge = replace(current, last_seen=timestamp, expiration=expiration)
        self.parent_of[(child_id, parent_id)] = edge
        self.mutations.append(("upsert_parent", child_id, parent_id, expiration))
        return edge

    def owners(self, asset_id: str, pagination: Pagination = Pagination()) -> list[OwnsResp]:
        self._require_asset(asset_id)
        return [e for e in self.owns.values() if e.asset_id == asset_id]

    def upsert_owner(
        self, asset_id: str, team_id: str, start_time: datetime, end_time: datetime | None = None
    ) -> OwnsResp:
        self._require_asset(asset_id)
        if team_id not in self.teams_by_id:
            raise NotFoundError(f"team {team_id}")
        current = self.owns.get((asset_id, team_id))
        edge = OwnsResp(
            id=current.id if current else self._next_id("owns"),
            team_id=team_id,
            asset_id=asset_id,
            start_time=start_time,
            end_time=end_time,
        )
        self.owns[(asset_id, team_id)] = edge
        self.mutations.append(("upsert_owner", asset_id, team_id, end_time))
        return edge

    def _require_asset(self, asset_id: str) -> None:
        if asset_id not in self.assets_by_id:
            raise NotFoundError(f"asset {asset_id}")

    def asset_by_identifier(self, asset_type: str, identifier: str) -> AssetResp:
        found = self.assets(asset_type=asset_type, identifier=identifier)
        assert len(found) == 1
        return found[0]

    def team_by_identifier(self, identifier: str) -> TeamResp:
        found = self.teams(identifier=identifier)
        assert len(found) == 1
        return found[0]


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 60.0) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def inventory_factory() -> type[FakeInventory]:
    return FakeInventory
