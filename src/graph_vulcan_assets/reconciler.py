"""Reconciles Vulcan asset events into the Graph Asset Inventory."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import re
from typing import Callable

from graph_vulcan_assets.inventory import (
    UNEXPIRED,
    AssetResp,
    Inventory,
    NotFoundError,
    TeamResp,
)
from graph_vulcan_assets.vulcan import AssetEvent, AssetPayload

logger = logging.getLogger("graph_vulcan_assets.reconciler")

# Type of the synthetic assets that represent AWS accounts.
AWS_ACCOUNT_ASSET_TYPE = "AWSAccount"

_AWS_ACCOUNT_ID_RE = re.compile(r"^[0-9]{12}$")
_AWS_ACCOUNT_ARN_RE = re.compile(r"^arn:aws:iam::([0-9]{12}):root$")


class ReconcileError(RuntimeError):
    """Raised when an asset event cannot be applied to the inventory."""


class DuplicatedEntityError(ReconcileError):
    """Raised when the inventory holds more than one entity for a unique key."""


class InvalidAWSAccountError(ReconcileError):
    """Raised when an AWS account annotation has an unknown format."""


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def normalize_aws_account_id(value: str) -> str:
    """Return the AWS account ``value`` as an IAM root ARN.

    Accepts a bare 12 digit account ID or its ``arn:aws:iam::<id>:root``
    form.
    """
    raw = str(value or "").strip()
    if _AWS_ACCOUNT_ID_RE.fullmatch(raw):
        return f"arn:aws:iam::{raw}:root"
    if _AWS_ACCOUNT_ARN_RE.fullmatch(raw):
        return raw
    raise InvalidAWSAccountError(f"invalid AWS account: {raw!r}")


class AssetReconciler:
    def __init__(
        self,
        inventory: Inventory,
        *,
        aws_account_annotation: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not str(aws_account_annotation or "").strip():
            raise ValueError("aws_account_annotation is required")
        self.inventory = inventory
        self.aws_account_annotation = aws_account_annotation
        self.clock = clock

    def handle(self, event: AssetEvent) -> None:
        """Apply ``event`` to the inventory. Tombstones retire the asset."""
        now = self.clock()
        if event.is_nil:
            logger.debug(
                "Reconciler expire key=%s type=%s identifier=%s",
                event.key,
                event.payload.asset_type,
                event.payload.identifier,
            )
            self.expire_asset(event.payload, now)
            return
        logger.debug(
            "Reconciler refresh key=%s type=%s identifier=%s",
            event.key,
            event.payload.asset_type,
            event.payload.identifier,
        )
        self.refresh_asset(event.payload, now)

    def refresh_asset(self, payload: AssetPayload, now: datetime) -> None:
        asset = self.upsert_asset(payload.asset_type, payload.identifier, now)
        team = self.upsert_team(payload.team.id, payload.team.name)
        self.set_owner(asset, team, now)

        for annotation in payload.annotations:
            if annotation.key != self.aws_account_annotation:
                continue
            self.set_aws_account(asset, annotation.value, now)

    def upsert_asset(self, asset_type: str, identifier: str, now: datetime) -> AssetResp:
        """Create the asset or refresh its last_seen, marking it unexpired."""
        found = self.inventory.assets(asset_type=asset_type, identifier=identifier)
        if len(found) > 1:
            raise DuplicatedEntityError(
                f"duplicated asset type={asset_type} identifier={identifier} count={len(found)}"
            )
        if found:
            return self.inventory.update_asset(found[0].id, asset_type, identifier, now, UNEXPIRED)
        return self.inventory.create_asset(asset_type, identifier, now, UNEXPIRED)

    def upsert_team(self, identifier: str, name: str) -> TeamResp:
        found = self.inventory.teams(identifier=identifier)
        if len(found) > 1:
            raise DuplicatedEntityError(f"duplicated team identifier={identifier} count={len(found)}")
        if found:
            return self.inventory.update_team(found[0].id, identifier, name)
        return self.inventory.create_team(identifier, name)

    def set_owner(self, asset: AssetResp, team: TeamResp, now: datetime) -> None:
        # An existing edge keeps its start time and is reactivated if ended.
        start_time = now
        for owner in self.inventory.owners(asset.id):
            if owner.team_id == team.id:
                start_time = owner.start_time
                break
        self.inventory.upsert_owner(asset.id, team.id, start_time, None)

    def set_aws_account(self, asset: AssetResp, account: str, now: datetime) -> None:
        identifier = normalize_aws_account_id(account)
        account_asset = self.upsert_asset(AWS_ACCOUNT_ASSET_TYPE, identifier, now)
        self.inventory.upsert_parent(asset.id, account_asset.id, now, UNEXPIRED)

    def expire_asset(self, payload: AssetPayload, now: datetime) -> None:
        """Withdraw the team's ownership and expire the asset if it is unowned.

        Expiring an asset also expires the live ParentOf edges where it is
        the child or the parent.
        """
        try:
            self._expire_asset(payload, now)
        except NotFoundError as exc:
            logger.info(
                "Reconciler expire skipped: not found type=%s identifier=%s team=%s: %s",
                payload.asset_type,
                payload.identifier,
                payload.team.id,
                exc,
            )

    def _expire_asset(self, payload: AssetPayload, now: datetime) -> None:
        assets = self.inventory.assets(asset_type=payload.asset_type, identifier=payload.identifier)
        if not assets:
            logger.info(
                "Reconciler expire skipped: unknown asset type=%s identifier=%s",
                payload.asset_type,
                payload.identifier,
            )
            return
        if len(assets) > 1:
            raise DuplicatedEntityError(
                f"duplicated asset type={payload.asset_type} identifier={payload.identifier} count={len(assets)}"
            )
        asset = assets[0]

        teams = self.inventory.teams(identifier=payload.team.id)
        if not teams:
            logger.info("Reconciler expire skipped: unknown team identifier=%s", payload.team.id)
            return
        if len(teams) > 1:
            raise DuplicatedEntityError(f"duplicated team identifier={payload.team.id} count={len(teams)}")
        team = teams[0]

        still_owned = False
        ended_owner = False
        for owner in self.inventory.owners(asset.id):
            if owner.end_time is not None:
                continue
            if owner.team_id == team.id:
                self.inventory.upsert_owner(asset.id, team.id, owner.start_time, now)
                ended_owner = True
            else:
                still_owned = True
        if still_owned:
            logger.debug("Reconciler asset still owned id=%s", asset.id)
            return
        # A redelivered tombstone must not move the expiration of a retired asset.
        if asset.expired and not ended_owner:
            logger.debug("Reconciler asset already expired id=%s", asset.id)
            return

        self.inventory.update_asset(asset.id, asset.type, asset.identifier, now, now)
        edges = list(self.inventory.parents(asset.id)) + list(self.inventory.children(asset.id))
        expired_edges = 0
        for edge in edges:
            if edge.expiration <= now:
                continue
            self.inventory.upsert_parent(edge.child_id, edge.parent_id, now, now)
            expired_edges += 1
        logger.info("Reconciler asset expired id=%s edges=%d", asset.id, expired_edges)
