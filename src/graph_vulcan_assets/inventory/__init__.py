"""Graph Asset Inventory client + models."""

from .client import Inventory, InventoryClient
from .models import (
    UNEXPIRED,
    AlreadyExistsError,
    AssetResp,
    InvalidStatusError,
    InventoryError,
    NotFoundError,
    OwnsResp,
    Pagination,
    ParentOfResp,
    TeamResp,
)

__all__ = [
    "UNEXPIRED",
    "AlreadyExistsError",
    "AssetResp",
    "InvalidStatusError",
    "Inventory",
    "InventoryClient",
    "InventoryError",
    "NotFoundError",
    "OwnsResp",
    "Pagination",
    "ParentOfResp",
    "TeamResp",
]
