"""CLI entry point for the forking test runner."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import Coroutine, Sequence
from pathlib import Path
from typing import Any, BinaryIO

import aiohttp
from pydantic import BaseModel, ValidationError

from forking_test_runner.adapters import ADAPTERS, TestAdapter
from forking_test_runner.config import RunConfig, default_runtime_key
from forking_test_runner.coverage_aggregator import CoverageAggregator
from forking_test_runner.models.result import RunSummary
from forking_test_runner.models.runtime import MalformedRuntimeLogError, RuntimeLog
from forking_test_runner.orchestrator import TestOrchestrator
from forking_test_runner.output import create_output_controller
from forking_test_runner.partitioner import (
    DEFAULT_DURATION,
    expected_durations,
    log_timing_report,
    select_group,
)
from forking_test_runner.runtime_log import (
    fetch_runtime_log,
    is_remote,
    load_runtime_log,
    record_measured,
    save_runtime_log,
)
from forking_test_runner.stores.loading import StoreNotFoundError, load_store_manifest
from forking_test_runner.stores.manifest import StoreManifest

STATUS_SYMBOLS = {
    "success": "✓",
    "failure": "✗",
    "crash": "!",
}

EXIT_CANCELLED = 130


def log_results_summary(log: logging.Logger, summary: RunSummary) -> None:
    """Log a formatted summary of the run."""
    log.info("=" * 80)
    log.info("Test Results Summary:")
    log.info("=" * 80)

    for result in summary.results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s: %s (%.2fs)", symbol, result.path, result.status, result.duration
        )

    counts = summary.counts
    log.info(
        "%d file(s): %d passed, %d failed, %d crashed",
        len(summary.results),
        summary.passed,
        summary.failed,
        summary.crashed,
    )
    log.info(
        "%d tests, %d failures, %d errors, %d skipped",
        counts.tests,
        counts.failures,
        counts.errors,
        counts.skipped,
    )


def format_output(summary: RunSummary) -> dict[str, Any]:
    """Format a run summary for JSON output."""
    timings = {timing.path: timing for timing in summary.timings}
    return {
        "total": len(summary.results),
        "passed": summary.passed,
        "failed": summary.failed,
        "crashed": summary.crashed,
        "tests": summary.counts.tests,
        "failures": summary.counts.failures,
        "errors": summary.counts.errors,
        "skipped": summary.counts.skipped,
        "diff_to_expected": summary.total_diff,
        "results": [
            {
                "file": result.path,
                "status": result.status,
                "returncode": result.returncode,
                "duration": result.duration,
                "expected": timings[result.path].expected,
            }
            for result in summary.results
        ],
    }


def discover_files(paths: Sequence[str], adapter: TestAdapter) -> Sequence[str]:
    """Expand directories with the adapter's file patterns, keeping file order.

    Raises:
        FileNotFoundError: If a path does not exist

    """
    files: dict[str, None] = {}
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            matches = {
                match
                for pattern in adapter.file_patterns
                for match in path.rglob(pattern)
            }
            files.update(dict.fromkeys(str(m) for m in sorted(matches)))
        elif path.exists():
            files[raw] = None
        else:
            raise FileNotFoundError(f"Test path '{raw}' does not exist")
    return list(files)


def resolve_store(config: RunConfig) -> tuple[StoreManifest[Any], BaseModel] | None:
    """Load and configure the remote store when runtime is amended remotely.

    Raises:
        StoreNotFoundError: If the store key is unknown
        ValidationError: If the store configuration is invalid

    """
    if config.record_runtime != "amend" or config.runtime_store_config is None:
        return None
    manifest = load_store_manifest(config.runtime_store)
    store_config = manifest.config_cls.model_validate_json(config.runtime_store_config)
    return manifest, store_config


async def load_expected_runtime(config: RunConfig) -> RuntimeLog | None:
    """Load the runtime log used for grouping, None when none was given."""
    if config.runtime_log is None:
        return None
    if is_remote(config.runtime_log):
        async with aiohttp.ClientSession() as session:
            return await fetch_runtime_log(config.runtime_log, session)
    return load_runtime_log(Path(config.runtime_log))


async def record_runtime(
    log: logging.Logger,
    config: RunConfig,
    summary: RunSummary,
    store: tuple[StoreManifest[Any], BaseModel] | None,
) -> None:
    """Persist measured durations according to the recording mode."""
    if config.record_runtime == "simple":
        path = config.local_runtime_log
        existing = load_runtime_log(path) if path.exists() else RuntimeLog()
        save_runtime_log(record_measured(existing, summary.results), path)

    elif config.record_runtime == "amend" and store is not None and config.runtime_key:
        manifest, store_config = store
        measured = record_measured(RuntimeLog(), summary.results)
        try:
            async with manifest.store_factory(store_config) as runtime_store:
                handle = await runtime_store.amend(config.runtime_key, measured)
        except (
            RuntimeError,
            aiohttp.ClientError,
            TimeoutError,
            MalformedRuntimeLogError,
            UnicodeDecodeError,
            ValidationError,
        ) as exc:
            log.warning("Failed to record runtime remotely: %s", exc)
            return
        log.info("Runtime log recorded, fetch it with: curl %s", handle)


async def run(
    config: RunConfig,
    files: Sequence[str],
    passthrough: Sequence[str] = (),
    store: tuple[StoreManifest[Any], BaseModel] | None = None,
    stream: BinaryIO | None = None,
) -> int:
    """Run the files of the configured group and return exit code."""
    log = logging.getLogger("forking_test_runner")
    adapter = ADAPTERS[config.adapter]

    runtime_log = await load_expected_runtime(config)
    durations = expected_durations(
        files, runtime_log or RuntimeLog(), config.default_duration
    )
    group = select_group(files, durations, config.group_index, config.group_count)
    log.info("Running tests %s", " ".join(group.files))

    aggregator = (
        CoverageAggregator.create(
            config.coverage_dir, config.group_index, config.group_count
        )
        if config.coverage
        else None
    )

    orchestrator = TestOrchestrator(
        adapter=adapter,
        output=create_output_controller(
            stream or sys.stdout.buffer, quiet=config.quiet
        ),
        group=config.group_index,
        groups=config.group_count,
        passthrough=passthrough,
        coverage=aggregator,
    )
    summary = await orchestrator.run_tests(group.files, durations)

    if aggregator is not None:
        aggregator.aggregate()

    log_results_summary(log, summary)
    if runtime_log is not None or config.record_runtime is not None:
        log_timing_report(log, summary)

    await record_runtime(log, config, summary, store)

    if config.summary_file is not None:
        config.summary_file.write_text(json.dumps(format_output(summary), indent=2))

    return 0 if summary.success else 1


async def cancel_on_sigterm[T](coro: Coroutine[Any, Any, T]) -> T:
    """Await coro, cancelling it (and killing its running child) on SIGTERM."""
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(coro)
    loop.add_signal_handler(signal.SIGTERM, task.cancel)
    try:
        return await task
    finally:
        loop.remove_signal_handler(signal.SIGTERM)


def split_passthrough(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split arguments at the first ``--``; the rest goes to every child."""
    argv = list(argv)
    if "--" in argv:
        index = argv.index("--")
        return argv[:index], argv[index + 1 :]
    return argv, []


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        allow_abbrev=False,
        description="Run each test file in its own process, balanced across groups",
        epilog="Unknown options and everything after -- are passed to every child.",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        default=["tests"],
        help="Test files or directories (default: tests)",
    )
    parser.add_argument(
        "--adapter",
        choices=sorted(ADAPTERS),
        default="pytest",
        help="Framework used to run each file (default: pytest)",
    )
    parser.add_argument("--group", type=int, help="1-based group to run")
    parser.add_argument("--groups", type=int, help="Total number of groups")
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only show output of failing files",
    )
    parser.add_argument(
        "--coverage",
        action="store_true",
        help="Collect coverage in every child and merge it",
    )
    parser.add_argument(
        "--coverage-dir",
        type=Path,
        default=Path("coverage"),
        help="Directory for the merged coverage report (default: coverage)",
    )
    parser.add_argument(
        "--runtime-log",
        help="Runtime log path or URL used to balance groups",
    )
    parser.add_argument(
        "--record-runtime",
        choices=["simple", "amend"],
        help="Record durations to the local runtime log or amend a remote one",
    )
    parser.add_argument(
        "--runtime-store",
        default="http",
        help="Remote runtime store key (default: http)",
    )
    parser.add_argument(
        "--runtime-store-config",
        help="JSON configuration for the remote runtime store",
    )
    parser.add_argument(
        "--runtime-key",
        help="Key of the remote runtime log (default: derived from CI variables)",
    )
    parser.add_argument(
        "--default-duration",
        type=float,
        default=DEFAULT_DURATION,
        help=(
            "Duration assumed for files missing from the runtime log "
            f"(default: {DEFAULT_DURATION})"
        ),
    )
    parser.add_argument(
        "--summary-file",
        type=Path,
        help="Write a JSON summary of the run to this file",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    own_args, passthrough = split_passthrough(
        sys.argv[1:] if argv is None else argv
    )
    args, unknown = parser.parse_known_args(own_args)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = RunConfig(
            adapter=args.adapter,
            group=args.group,
            groups=args.groups,
            quiet=args.quiet,
            coverage=args.coverage,
            coverage_dir=args.coverage_dir,
            runtime_log=args.runtime_log,
            record_runtime=args.record_runtime,
            runtime_store=args.runtime_store,
            runtime_store_config=args.runtime_store_config,
            runtime_key=args.runtime_key or default_runtime_key(os.environ),
            default_duration=args.default_duration,
            summary_file=args.summary_file,
        )
        store = resolve_store(config)
        files = discover_files(args.paths, ADAPTERS[config.adapter])
    except (ValidationError, StoreNotFoundError, FileNotFoundError) as exc:
        parser.error(str(exc))

    try:
        exit_code = asyncio.run(
            cancel_on_sigterm(
                run(config, files, passthrough=[*unknown, *passthrough], store=store)
            )
        )
    except (KeyboardInterrupt, asyncio.CancelledError):
        logging.getLogger("forking_test_runner").warning("Run cancelled")
        exit_code = EXIT_CANCELLED
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
