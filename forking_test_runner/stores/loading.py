"""Runtime store lookup through the ``forking_test_runner.stores`` entry points."""

from collections.abc import Sequence
from importlib.metadata import entry_points
from typing import Any

from forking_test_runner.stores.manifest import StoreManifest

ENTRY_POINT_GROUP = "forking_test_runner.stores"


class StoreNotFoundError(LookupError):
    """No installed distribution registers a store under the requested key."""


def available_stores() -> Sequence[str]:
    """Keys of all installed runtime stores, sorted."""
    return sorted({entry.name for entry in entry_points(group=ENTRY_POINT_GROUP)})


def load_store_manifest(key: str) -> StoreManifest[Any]:
    """Import the manifest registered for key (e.g., "http").

    Raises:
        StoreNotFoundError: If key is not registered

    """
    matches = entry_points(group=ENTRY_POINT_GROUP, name=key)
    if not matches:
        raise StoreNotFoundError(
            f"Runtime store '{key}' not found. Available stores: {available_stores()}"
        )
    manifest: StoreManifest[Any] = matches[key].load()
    return manifest
