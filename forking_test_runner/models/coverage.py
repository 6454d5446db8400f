"""Models for per-line coverage reports."""

from collections.abc import Iterable, Mapping, Sequence
from itertools import zip_longest

from pydantic import Field, NonNegativeInt

from forking_test_runner.models.base import Model

type LineHits = Sequence[NonNegativeInt | None]


def merge_line_hits(left: LineHits, right: LineHits) -> list[int | None]:
    """Sum hit counts line by line; None only where neither side has a value."""
    merged: list[int | None] = []
    for a, b in zip_longest(left, right):
        if a is None:
            merged.append(b)
        elif b is None:
            merged.append(a)
        else:
            merged.append(a + b)
    return merged


class CoverageReport(Model):
    """Hit counts per line for each measured source file.

    Index ``i`` of a file's sequence holds line ``i + 1``. None marks a line
    that is not executable.
    """

    files: Mapping[str, LineHits] = Field(default_factory=dict)

    def merge(self, other: "CoverageReport") -> "CoverageReport":
        """Return the additive merge of two reports."""
        files: dict[str, LineHits] = dict(self.files)
        for path, hits in other.files.items():
            files[path] = merge_line_hits(files[path], hits) if path in files else hits
        return CoverageReport(files=files)

    def to_json_dict(self) -> dict[str, dict[str, list[int | None]]]:
        """Return a JSON-ready dict with files sorted by path."""
        return {"files": {path: list(self.files[path]) for path in sorted(self.files)}}


def merge_reports(reports: Iterable[CoverageReport]) -> CoverageReport:
    """Merge partial reports; the result does not depend on their order."""
    merged = CoverageReport()
    for report in reports:
        merged = merged.merge(report)
    return merged
