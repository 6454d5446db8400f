"""Models for test execution results."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

type ForkStatus = Literal["success", "failure", "crash"]


@dataclass(frozen=True, kw_only=True)
class TestCounts:
    """Counts reported by a test framework at the end of a run."""

    __test__ = False

    tests: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0

    def __add__(self, other: "TestCounts") -> "TestCounts":
        return TestCounts(
            tests=self.tests + other.tests,
            failures=self.failures + other.failures,
            errors=self.errors + other.errors,
            skipped=self.skipped + other.skipped,
        )


@dataclass(frozen=True, kw_only=True)
class ForkResult:
    """Outcome of running one test file in an isolated child process."""

    path: str
    status: ForkStatus
    returncode: int | None
    duration: float
    output: bytes = field(default=b"", repr=False)
    counts: TestCounts | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the file passed."""
        return self.status == "success"


@dataclass(frozen=True, kw_only=True)
class FileTiming:
    """Measured duration of a file next to the duration it was expected to take."""

    path: str
    actual: float
    expected: float

    @property
    def diff(self) -> float:
        """Absolute difference between actual and expected duration."""
        return abs(self.actual - self.expected)


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Aggregate of all fork results of one invocation."""

    results: Sequence[ForkResult]
    counts: TestCounts
    timings: Sequence[FileTiming]

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status == "success")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failure")

    @property
    def crashed(self) -> int:
        return sum(1 for r in self.results if r.status == "crash")

    @property
    def success(self) -> bool:
        """Whether every file of the run passed."""
        return all(r.succeeded for r in self.results)

    @property
    def total_diff(self) -> float:
        """Sum of absolute differences between expected and actual durations."""
        return sum(t.diff for t in self.timings)

    @classmethod
    def from_results(
        cls, results: Sequence[ForkResult], expected: dict[str, float]
    ) -> "RunSummary":
        """Fold fork results into a summary.

        Args:
            results: Fork results in execution order
            expected: Expected duration per path used for grouping

        """
        counts = TestCounts()
        for result in results:
            if result.counts is not None:
                counts += result.counts
        timings = [
            FileTiming(
                path=r.path, actual=r.duration, expected=expected.get(r.path, 0.0)
            )
            for r in results
        ]
        return cls(results=list(results), counts=counts, timings=timings)
