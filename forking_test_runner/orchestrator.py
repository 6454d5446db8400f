"""Test orchestrator running every test file in its own child process."""

import asyncio
import contextlib
import logging
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from forking_test_runner.adapters import TestAdapter
from forking_test_runner.child import child_environment
from forking_test_runner.coverage_aggregator import CoverageAggregator
from forking_test_runner.models.result import (
    ForkResult,
    ForkStatus,
    RunSummary,
    TestCounts,
)
from forking_test_runner.output import OutputController

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def classify(
    adapter: TestAdapter, returncode: int, counts: TestCounts | None
) -> ForkStatus:
    """Decide the outcome of a child from its exit status and parsed counts.

    A child killed by a signal, or one exiting non-zero without reporting
    any counts its framework should have reported, crashed.
    """
    if returncode < 0:
        return "crash"
    clean = counts is None or (counts.failures == 0 and counts.errors == 0)
    if returncode in adapter.success_codes and clean:
        return "success"
    if counts is None and adapter.reports_counts:
        return "crash"
    return "failure"


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Runs test files one after another, each in a fresh interpreter.

    No state is shared between files: every child is a new process that only
    receives the file path and the run configuration.
    """

    __test__ = False

    adapter: TestAdapter
    output: OutputController
    group: int = 1
    groups: int = 1
    passthrough: Sequence[str] = ()
    coverage: CoverageAggregator | None = None
    cwd: Path | None = None
    python: str = sys.executable

    async def run_tests(
        self, files: Sequence[str], expected: Mapping[str, float]
    ) -> RunSummary:
        """Run all files sequentially and fold their results.

        Args:
            files: Test file paths in execution order
            expected: Expected duration per path, for the timing report

        Returns:
            Summary of all fork results

        """
        if not files:
            log.info("No test files assigned to this group")

        results: list[ForkResult] = []
        for path in files:
            results.append(await self.run_file(path))
        self.output.close()
        log.info("Test execution completed")

        return RunSummary.from_results(results, dict(expected))

    def command(self, path: str) -> Sequence[str]:
        """Command line of the child running path."""
        args = self.adapter.interpreter_args(path, self.passthrough)
        if self.coverage is not None:
            args = self.coverage.wrap(args)
        return [self.python, *args]

    async def run_file(self, path: str) -> ForkResult:
        """Run a single file in a child and wait for it to exit.

        A child that cannot be started or dies abnormally is recorded as a
        crash; it never aborts the run.
        """
        self.output.begin(path)
        start = time.monotonic()

        try:
            returncode, output = await self._run_child(path)
        except OSError as exc:
            log.error("Could not start child for %s: %s", path, exc)
            output = f"Could not start child: {exc}\n".encode()
            self.output.write(output)
            result = ForkResult(
                path=path,
                status="crash",
                returncode=None,
                duration=time.monotonic() - start,
                output=output,
            )
        else:
            counts = self.adapter.parse_counts(output.decode(errors="replace"))
            result = ForkResult(
                path=path,
                status=classify(self.adapter, returncode, counts),
                returncode=returncode,
                duration=time.monotonic() - start,
                output=output,
                counts=counts,
            )

        self.output.finish(path, succeeded=result.succeeded)
        log.info(
            "Test completed: file=%s status=%s returncode=%s duration=%.2fs",
            result.path,
            result.status,
            result.returncode,
            result.duration,
        )
        return result

    async def _run_child(self, path: str) -> tuple[int, bytes]:
        """Start the child, relay its output and return exit code and output."""
        process = await asyncio.create_subprocess_exec(
            *self.command(path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self.cwd,
            env=child_environment(path, self.group, self.groups),
        )

        captured = bytearray()
        try:
            if process.stdout is not None:
                while chunk := await process.stdout.read(CHUNK_SIZE):
                    captured.extend(chunk)
                    self.output.write(chunk)
            returncode = await process.wait()
        except asyncio.CancelledError:
            log.warning("Run cancelled, killing child %d (%s)", process.pid, path)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise

        return returncode, bytes(captured)
