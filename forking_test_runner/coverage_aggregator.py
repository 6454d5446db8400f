"""Per-child coverage collection and merging.

Coverage state does not survive the process boundary, so every child runs
under ``coverage run --parallel-mode`` and writes its own partial data file.
Once all children exited the partials are read back and merged additively:
a merged hit count is the number of children that executed the line.
"""

import json
import logging
import shutil
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from coverage import Coverage, CoverageData
from coverage.exceptions import CoverageException

from forking_test_runner.models.coverage import CoverageReport, merge_reports

log = logging.getLogger(__name__)

PARTIAL_BASENAME = ".coverage"
REPORT_FILENAME = "coverage.json"
COMBINED_FILENAME = ".coverage"


def report_from_coverage(cov: Coverage) -> CoverageReport:
    """Convert loaded coverage.py data into per-line hit counts.

    Executed statements count 1, missed statements 0, other lines None.
    Files whose source can no longer be analysed are skipped.
    """
    files: dict[str, list[int | None]] = {}
    for filename in sorted(cov.get_data().measured_files()):
        try:
            _, statements, _, missing, _ = cov.analysis2(filename)
        except CoverageException as exc:
            log.warning("Skipping coverage of %s: %s", filename, exc)
            continue
        missed = set(missing)
        hits: list[int | None] = [None] * max(statements, default=0)
        for line in statements:
            hits[line - 1] = 0 if line in missed else 1
        files[filename] = hits
    return CoverageReport(files=files)


def load_partial(path: Path) -> Coverage:
    """Load one child's partial data file.

    Raises:
        CoverageException: If the file is not usable coverage data

    """
    cov = Coverage(data_file=str(path))
    cov.load()
    return cov


@dataclass(frozen=True, kw_only=True)
class CoverageAggregator:
    """Partial coverage files of one invocation and their merge."""

    output_dir: Path
    partials_dir: Path

    @classmethod
    def create(cls, output_dir: Path, group: int, groups: int) -> "CoverageAggregator":
        """Create a partials directory unique to this invocation."""
        output_dir.mkdir(parents=True, exist_ok=True)
        partials_dir = Path(
            tempfile.mkdtemp(prefix=f"partials-{group}-of-{groups}-", dir=output_dir)
        )
        log.info("Collecting coverage partials in %s", partials_dir)
        return cls(output_dir=output_dir, partials_dir=partials_dir)

    @property
    def report_path(self) -> Path:
        return self.output_dir / REPORT_FILENAME

    @property
    def combined_path(self) -> Path:
        return self.output_dir / COMBINED_FILENAME

    def wrap(self, interpreter_args: Sequence[str]) -> Sequence[str]:
        """Run a child's interpreter arguments under coverage."""
        return [
            "-m",
            "coverage",
            "run",
            "--parallel-mode",
            f"--data-file={self.partials_dir / PARTIAL_BASENAME}",
            *interpreter_args,
        ]

    def partial_paths(self) -> Sequence[Path]:
        """Partial data files written so far, sorted by name."""
        return sorted(self.partials_dir.glob(f"{PARTIAL_BASENAME}.*"))

    def aggregate(self) -> CoverageReport:
        """Merge all partials and write the JSON report and combined data file.

        Unusable partials are skipped with a warning.
        """
        partials = self.partial_paths()
        log.info("Merging %d coverage partial(s)", len(partials))

        combined = CoverageData(basename=str(self.combined_path))
        combined.erase()
        reports: list[CoverageReport] = []
        for path in partials:
            try:
                cov = load_partial(path)
                partial = report_from_coverage(cov)
                combined.update(cov.get_data())
            except CoverageException as exc:
                log.warning("Skipping coverage partial %s: %s", path, exc)
                continue
            reports.append(partial)

        report = merge_reports(reports)
        self.report_path.write_text(
            json.dumps(report.to_json_dict(), indent=2, sort_keys=True) + "\n"
        )
        combined.write()
        shutil.rmtree(self.partials_dir, ignore_errors=True)

        log.info(
            "Coverage of %d file(s) written to %s", len(report.files), self.report_path
        )
        return report
