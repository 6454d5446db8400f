"""Load, save and update the runtime log used to balance groups."""

import logging
from collections.abc import Sequence
from pathlib import Path

import aiohttp
from pydantic import ValidationError

from forking_test_runner.models.result import ForkResult
from forking_test_runner.models.runtime import MalformedRuntimeLogError, RuntimeLog

log = logging.getLogger(__name__)

DEFAULT_RUNTIME_LOG = Path("runtime.log")


def is_remote(source: str) -> bool:
    """Check if a runtime log source is an HTTP(S) URL."""
    return source.startswith(("http://", "https://"))


def load_runtime_log(path: Path) -> RuntimeLog:
    """Load a runtime log from disk.

    A missing, unreadable or malformed file yields an empty log and a
    warning; it never prevents the run from starting.
    """
    try:
        text = path.read_text()
    except FileNotFoundError:
        log.warning("Runtime log %s not found, using default durations", path)
        return RuntimeLog()
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("Could not read runtime log %s: %s", path, exc)
        return RuntimeLog()

    try:
        return RuntimeLog.parse(text)
    except (MalformedRuntimeLogError, ValidationError) as exc:
        log.warning("Ignoring malformed runtime log %s: %s", path, exc)
        return RuntimeLog()


def save_runtime_log(runtime_log: RuntimeLog, path: Path) -> None:
    """Write a runtime log sorted by path."""
    path.write_text(runtime_log.dumps())
    log.info("Runtime log with %d entries written to %s", len(runtime_log), path)


async def fetch_runtime_log(url: str, session: aiohttp.ClientSession) -> RuntimeLog:
    """Download a runtime log, falling back to an empty log on any failure."""
    try:
        async with session.get(url) as response:
            if response.status != 200:
                text = await response.text(errors="replace")
                log.warning(
                    "Failed to fetch runtime log %s: %s %s", url, response.status, text
                )
                return RuntimeLog()
            body = await response.read()
    except (aiohttp.ClientError, TimeoutError) as exc:
        log.warning("Failed to fetch runtime log %s: %s", url, exc)
        return RuntimeLog()

    try:
        return RuntimeLog.parse(body.decode())
    except (UnicodeDecodeError, MalformedRuntimeLogError, ValidationError) as exc:
        log.warning("Ignoring malformed runtime log from %s: %s", url, exc)
        return RuntimeLog()


def record_measured(existing: RuntimeLog, results: Sequence[ForkResult]) -> RuntimeLog:
    """Merge measured durations over an existing log.

    New measurements overwrite old ones for the same path; paths that were
    not run this time keep their recorded duration.
    """
    measured = RuntimeLog(
        durations={result.path: round(result.duration, 3) for result in results}
    )
    return existing.merged(measured)
