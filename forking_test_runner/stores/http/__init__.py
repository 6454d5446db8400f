"""HTTP runtime store module."""

from forking_test_runner.stores.http.config import HttpStoreConfig
from forking_test_runner.stores.http.manifest import http_store_manifest
from forking_test_runner.stores.http.store import HttpRuntimeStore

__all__ = ["HttpRuntimeStore", "HttpStoreConfig", "http_store_manifest"]
