"""HTTP runtime store implementation."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import quote

import aiohttp

from forking_test_runner.models.runtime import MalformedRuntimeLogError, RuntimeLog
from forking_test_runner.stores.base import RuntimeStore
from forking_test_runner.stores.http.config import HttpStoreConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class HttpRuntimeStore(RuntimeStore):
    """Runtime store that GETs and PUTs plain-text logs at ``{base_url}/{key}``."""

    config: HttpStoreConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: HttpStoreConfig
    ) -> AsyncGenerator["HttpRuntimeStore", None]:
        """Create store with managed session lifecycle."""
        headers = {"Accept": "text/plain"}
        if config.token is not None:
            headers["Authorization"] = f"Bearer {config.token.get_secret_value()}"
        async with aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=config.timeout),
        ) as session:
            yield cls(config=config, session=session)

    def record_url(self, key: str) -> str:
        """Return the URL a record is stored at."""
        return f"{self.config.base_url.rstrip('/')}/{quote(key, safe='/')}"

    async def fetch(self, key: str) -> RuntimeLog | None:
        """Fetch the stored record, None if the store has none yet."""
        url = self.record_url(key)
        log.info("Fetching runtime log: url=%s", url)

        async with self.session.get(url) as response:
            if response.status == 404:
                return None
            if response.status != 200:
                text = await response.text(errors="replace")
                raise RuntimeError(
                    f"Failed to fetch runtime log: {response.status} {text}"
                )
            body = await response.read()

        try:
            text = body.decode()
        except UnicodeDecodeError as exc:
            raise MalformedRuntimeLogError(
                f"Runtime log at {url} is not valid UTF-8: {exc}"
            ) from exc
        return RuntimeLog.parse(text)

    async def publish(self, key: str, runtime_log: RuntimeLog) -> str:
        """Upload the record and return its URL."""
        url = self.record_url(key)
        log.info("Publishing runtime log: url=%s, entries=%d", url, len(runtime_log))

        async with self.session.put(
            url,
            data=runtime_log.dumps(),
            headers={"Content-Type": "text/plain"},
        ) as response:
            if response.status not in {200, 201, 204}:
                text = await response.text(errors="replace")
                raise RuntimeError(
                    f"Failed to publish runtime log: {response.status} {text}"
                )

        return url
