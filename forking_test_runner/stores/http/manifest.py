"""HTTP runtime store manifest."""

from forking_test_runner.stores.http.config import HttpStoreConfig
from forking_test_runner.stores.http.store import HttpRuntimeStore
from forking_test_runner.stores.manifest import StoreManifest

http_store_manifest = StoreManifest(
    config_cls=HttpStoreConfig,
    store_factory=HttpRuntimeStore.from_config,
)
