"""Integration tests for coverage collection across child processes."""

import io
import json
import logging
import textwrap
from pathlib import Path

import pytest
from coverage import CoverageData

from forking_test_runner.adapters import ScriptAdapter
from forking_test_runner.coverage_aggregator import (
    CoverageAggregator,
    load_partial,
    report_from_coverage,
)
from forking_test_runner.orchestrator import TestOrchestrator
from forking_test_runner.output import StreamingOutput

LIB_SOURCE = """\
def f():
    return 1


def g():
    return 2
"""


@pytest.fixture
def lib_path(tmp_path: Path) -> Path:
    """Module imported by the test files."""
    path = tmp_path / "lib.py"
    path.write_text(LIB_SOURCE)
    return path


@pytest.fixture
def aggregator(tmp_path: Path) -> CoverageAggregator:
    """Aggregator writing into tmp_path/coverage."""
    return CoverageAggregator.create(tmp_path / "coverage", 1, 1)


def hits_for(files: dict[str, list[int | None]], name: str) -> list[int | None]:
    """Look up a file's hits by basename."""
    (hits,) = [hits for path, hits in files.items() if Path(path).name == name]
    return hits


def test_create_makes_unique_partials_dir(tmp_path: Path) -> None:
    """Two invocations never share a partials directory."""
    first = CoverageAggregator.create(tmp_path / "coverage", 1, 2)
    second = CoverageAggregator.create(tmp_path / "coverage", 1, 2)

    assert first.partials_dir != second.partials_dir
    assert first.partials_dir.parent == tmp_path / "coverage"
    assert first.partials_dir.name.startswith("partials-1-of-2-")


def test_load_partial(tmp_path: Path, lib_path: Path) -> None:
    """Converts executed and missed statements into hit counts."""
    data = CoverageData(basename=str(tmp_path / ".coverage.one"))
    data.add_lines({str(lib_path): [1, 2, 5]})
    data.write()

    report = report_from_coverage(load_partial(tmp_path / ".coverage.one"))

    assert hits_for(dict(report.files), "lib.py") == [1, 1, None, None, 1, 0]


def test_aggregate_skips_unusable_partial(
    aggregator: CoverageAggregator, lib_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """A corrupt partial is reported and the others are still merged."""
    data = CoverageData(basename=str(aggregator.partials_dir / ".coverage.good"))
    data.add_lines({str(lib_path): [1, 5]})
    data.write()
    (aggregator.partials_dir / ".coverage.bad").write_bytes(b"not a database")

    with caplog.at_level(logging.WARNING):
        report = aggregator.aggregate()

    assert hits_for(dict(report.files), "lib.py") == [1, 0, None, None, 1, 0]
    assert "Skipping coverage partial" in caplog.text


def test_aggregate_without_partials_writes_empty_report(
    aggregator: CoverageAggregator,
) -> None:
    """No children ran, the report is still written."""
    report = aggregator.aggregate()

    assert report.files == {}
    assert json.loads(aggregator.report_path.read_text()) == {"files": {}}


async def test_coverage_from_children_is_summed(
    tmp_path: Path, lib_path: Path, aggregator: CoverageAggregator
) -> None:
    """Lines run by both children count twice, lines run by one count once."""
    (tmp_path / "test_a.py").write_text(
        textwrap.dedent(
            """
            import lib
            lib.f()
            lib.g()
            """
        )
    )
    (tmp_path / "test_b.py").write_text("import lib\nlib.f()\n")
    orchestrator = TestOrchestrator(
        adapter=ScriptAdapter(),
        output=StreamingOutput(stream=io.BytesIO()),
        coverage=aggregator,
        cwd=tmp_path,
    )

    summary = await orchestrator.run_tests(["test_a.py", "test_b.py"], {})
    assert summary.success
    assert len(aggregator.partial_paths()) == 2

    report = aggregator.aggregate()

    assert hits_for(dict(report.files), "lib.py") == [2, 2, None, None, 2, 1]
    written = json.loads(aggregator.report_path.read_text())
    assert hits_for(written["files"], "lib.py") == [2, 2, None, None, 2, 1]
    assert list(written["files"]) == sorted(written["files"])
    assert aggregator.combined_path.exists()
    assert not aggregator.partials_dir.exists()
