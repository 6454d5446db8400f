"""Adapters describing how a child runs one file of a given test framework."""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from forking_test_runner.models.result import TestCounts

PYTEST_SUMMARY = re.compile(
    r"^=*\s*(?P<body>\d+ (?:passed|failed|errors?|skipped|xfailed|xpassed|"
    r"deselected|warnings?)\b.*?) in [\d.]+s\b",
    re.MULTILINE,
)
PYTEST_COUNT = re.compile(r"(\d+) (passed|failed|errors?|skipped|xfailed|xpassed)\b")
UNITTEST_RAN = re.compile(r"^Ran (\d+) tests? in ", re.MULTILINE)
UNITTEST_OUTCOME = re.compile(
    r"^(?:OK|FAILED|NO TESTS RAN)(?: \((?P<details>[^)]*)\))?$", re.MULTILINE
)
UNITTEST_DETAIL = re.compile(r"(failures|errors|skipped)=(\d+)")


@dataclass(frozen=True, kw_only=True)
class TestAdapter(ABC):
    """How to run a single test file in a child interpreter."""

    __test__ = False

    file_patterns: Sequence[str]
    success_codes: frozenset[int] = frozenset({0})
    reports_counts: bool = True

    @abstractmethod
    def interpreter_args(self, path: str, passthrough: Sequence[str]) -> Sequence[str]:
        """Arguments following the Python interpreter to run one file."""

    @abstractmethod
    def parse_counts(self, output: str) -> TestCounts | None:
        """Extract counts from the child's output, None if none were reported."""


@dataclass(frozen=True, kw_only=True)
class PytestAdapter(TestAdapter):
    """Runs files with pytest."""

    file_patterns: Sequence[str] = ("test_*.py", "*_test.py")
    # 5: no tests collected
    success_codes: frozenset[int] = frozenset({0, 5})

    def interpreter_args(self, path: str, passthrough: Sequence[str]) -> Sequence[str]:
        return ["-m", "pytest", path, *passthrough]

    def parse_counts(self, output: str) -> TestCounts | None:
        """Parse the final ``=== 2 passed, 1 failed in 0.12s ===`` line."""
        summaries = PYTEST_SUMMARY.findall(output)
        if not summaries:
            if re.search(r"^=*\s*no tests ran in ", output, re.MULTILINE):
                return TestCounts()
            return None

        found: dict[str, int] = {}
        for number, outcome in PYTEST_COUNT.findall(summaries[-1]):
            key = "error" if outcome.startswith("error") else outcome
            found[key] = int(number)

        return TestCounts(
            tests=sum(
                found.get(outcome, 0)
                for outcome in ("passed", "failed", "skipped", "xfailed", "xpassed")
            ),
            failures=found.get("failed", 0),
            errors=found.get("error", 0),
            skipped=found.get("skipped", 0),
        )


@dataclass(frozen=True, kw_only=True)
class UnittestAdapter(TestAdapter):
    """Runs files with the standard library unittest runner."""

    file_patterns: Sequence[str] = ("test*.py",)
    # 5: no tests ran (Python 3.12+)
    success_codes: frozenset[int] = frozenset({0, 5})

    def interpreter_args(self, path: str, passthrough: Sequence[str]) -> Sequence[str]:
        return ["-m", "unittest", path, *passthrough]

    def parse_counts(self, output: str) -> TestCounts | None:
        """Parse the ``Ran N tests`` line and the ``OK``/``FAILED (...)`` line."""
        ran = UNITTEST_RAN.findall(output)
        if not ran:
            return None

        details: dict[str, int] = {}
        outcomes = list(UNITTEST_OUTCOME.finditer(output))
        if outcomes and outcomes[-1].group("details"):
            details = {
                name: int(number)
                for name, number in UNITTEST_DETAIL.findall(
                    outcomes[-1].group("details")
                )
            }

        return TestCounts(
            tests=int(ran[-1]),
            failures=details.get("failures", 0),
            errors=details.get("errors", 0),
            skipped=details.get("skipped", 0),
        )


@dataclass(frozen=True, kw_only=True)
class ScriptAdapter(TestAdapter):
    """Runs each file as a plain script; only the exit status counts."""

    file_patterns: Sequence[str] = ("test_*.py",)
    reports_counts: bool = False

    def interpreter_args(self, path: str, passthrough: Sequence[str]) -> Sequence[str]:
        return [path, *passthrough]

    def parse_counts(self, output: str) -> TestCounts | None:
        return None


ADAPTERS: Mapping[str, TestAdapter] = {
    "pytest": PytestAdapter(),
    "unittest": UnittestAdapter(),
    "script": ScriptAdapter(),
}
