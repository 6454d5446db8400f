"""Abstract base class for remote runtime log stores."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from forking_test_runner.models.runtime import MalformedRuntimeLogError, RuntimeLog

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class RuntimeStore(ABC):
    """Abstract base for stores that keep runtime logs outside the workspace.

    Records are scoped by a key, usually derived from the CI build, so that
    all groups of one build amend the same record.
    """

    @abstractmethod
    async def fetch(self, key: str) -> RuntimeLog | None:
        """Fetch the record stored under key.

        Args:
            key: Record key (e.g., "org/repo/build-42")

        Returns:
            The stored runtime log, or None if nothing is stored yet

        Raises:
            MalformedRuntimeLogError: If the stored record cannot be parsed

        """

    @abstractmethod
    async def publish(self, key: str, runtime_log: RuntimeLog) -> str:
        """Store a record under key, replacing any previous one.

        Args:
            key: Record key
            runtime_log: Record to store

        Returns:
            Handle (e.g., a URL) for retrieving the record later

        """

    async def amend(self, key: str, runtime_log: RuntimeLog) -> str:
        """Merge a record into the stored one and publish the result.

        Entries of runtime_log overwrite stored entries for the same path;
        stored entries for other paths are kept. A stored record that cannot
        be parsed is replaced by runtime_log.

        Returns:
            Handle for retrieving the merged record

        """
        try:
            existing = await self.fetch(key)
        except MalformedRuntimeLogError as exc:
            log.warning("Replacing unreadable runtime log %s: %s", key, exc)
            existing = None
        merged = existing.merged(runtime_log) if existing is not None else runtime_log
        return await self.publish(key, merged)
