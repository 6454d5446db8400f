"""Models for recorded test file runtimes."""

from collections.abc import Mapping

from pydantic import Field, NonNegativeFloat

from forking_test_runner.models.base import Model


class MalformedRuntimeLogError(ValueError):
    """Raised when runtime log text cannot be parsed."""


class RuntimeLog(Model):
    """Recorded duration in seconds for each test file path."""

    durations: Mapping[str, NonNegativeFloat] = Field(
        default_factory=dict, description="Test file path to duration in seconds"
    )

    def __len__(self) -> int:
        return len(self.durations)

    def get(self, path: str) -> float | None:
        """Return the recorded duration for a path, if any."""
        return self.durations.get(path)

    def merged(self, other: "RuntimeLog") -> "RuntimeLog":
        """Return a new log with entries of other overwriting ours.

        Paths only present in this log are kept.
        """
        return RuntimeLog(durations={**self.durations, **other.durations})

    def dumps(self) -> str:
        """Serialize as sorted ``path:seconds`` lines."""
        return "".join(
            f"{path}:{self.durations[path]!r}\n" for path in sorted(self.durations)
        )

    @classmethod
    def parse(cls, text: str) -> "RuntimeLog":
        """Parse the text produced by dumps.

        Raises:
            MalformedRuntimeLogError: If any non-blank line is not a valid entry

        """
        durations: dict[str, float] = {}
        for line_num, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            path, sep, value = line.rpartition(":")
            if not sep or not path:
                raise MalformedRuntimeLogError(
                    f"Line {line_num}: expected 'path:seconds', got {line!r}"
                )
            try:
                duration = float(value)
            except ValueError as exc:
                raise MalformedRuntimeLogError(
                    f"Line {line_num}: invalid duration {value!r}"
                ) from exc
            if duration < 0 or duration != duration:
                raise MalformedRuntimeLogError(
                    f"Line {line_num}: duration must be non-negative, got {value!r}"
                )
            durations[path] = duration
        return cls(durations=durations)
