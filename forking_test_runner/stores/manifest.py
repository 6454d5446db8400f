"""Manifest tying a runtime store key to its config and factory."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from forking_test_runner.stores.base import RuntimeStore


@dataclass(frozen=True, kw_only=True)
class StoreManifest[ConfigT: BaseModel]:
    """Registered under a key in the stores entry point group.

    ``store_factory`` receives a validated ``config_cls`` instance and yields
    a ready store for the duration of the ``async with`` block.
    """

    config_cls: type[ConfigT]
    store_factory: Callable[[ConfigT], AbstractAsyncContextManager[RuntimeStore]]
