"""Split test files into groups of balanced total runtime."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from forking_test_runner.models.result import RunSummary
from forking_test_runner.models.runtime import RuntimeLog

log = logging.getLogger(__name__)

DEFAULT_DURATION = 1.0


@dataclass(kw_only=True)
class Group:
    """Test files assigned to one group and their summed expected duration."""

    index: int
    files: list[str] = field(default_factory=list)
    total: float = 0.0


def expected_durations(
    files: Sequence[str],
    runtime_log: RuntimeLog,
    default_duration: float = DEFAULT_DURATION,
) -> dict[str, float]:
    """Map each file to its recorded duration, or the default when unknown."""
    durations: dict[str, float] = {}
    for path in files:
        recorded = runtime_log.get(path)
        durations[path] = default_duration if recorded is None else recorded
    return durations


def assign_groups(
    files: Sequence[str], durations: dict[str, float], groups: int
) -> Sequence[Group]:
    """Assign every file to one of the groups.

    Longest-processing-time greedy: files are taken by descending duration
    (discovery order on ties) and each goes to the group with the smallest
    total so far (lowest index on ties). Members keep discovery order.

    Args:
        files: Test file paths in discovery order
        durations: Expected duration per path
        groups: Number of groups

    Returns:
        The groups, indexed from 1

    """
    if groups < 1:
        raise ValueError(f"Group count must be at least 1, got {groups}")

    slots = [Group(index=i + 1) for i in range(groups)]
    order = {path: position for position, path in enumerate(files)}
    by_duration = sorted(files, key=lambda path: (-durations[path], order[path]))

    for path in by_duration:
        slot = min(slots, key=lambda group: (group.total, group.index))
        slot.files.append(path)
        slot.total += durations[path]

    for slot in slots:
        slot.files.sort(key=order.__getitem__)

    return slots


def select_group(
    files: Sequence[str], durations: dict[str, float], group: int, groups: int
) -> Group:
    """Return the files of the 1-based group out of groups.

    A group index beyond the number of files yields an empty group.
    """
    if not 1 <= group <= groups:
        raise ValueError(f"Group must be between 1 and {groups}, got {group}")

    selected = assign_groups(files, durations, groups)[group - 1]
    log.info(
        "Group %d of %d: %d of %d file(s), expected %.2fs",
        group,
        groups,
        len(selected.files),
        len(files),
        selected.total,
    )
    return selected


def log_timing_report(log: logging.Logger, summary: RunSummary) -> None:
    """Log expected and actual duration per file and the total drift."""
    for timing in summary.timings:
        log.info(
            "%s Time: expected %.1f, actual %.1f",
            timing.path,
            timing.expected,
            timing.actual,
        )
    log.info(
        "Time: %.1fs diff to expected over %d file(s)",
        summary.total_diff,
        len(summary.timings),
    )
