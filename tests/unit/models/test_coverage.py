"""Tests for CoverageReport merging."""

import itertools

from forking_test_runner.models.coverage import (
    CoverageReport,
    merge_line_hits,
    merge_reports,
)


def test_merge_line_hits_sums_values() -> None:
    """Lines recorded by both sides are summed."""
    assert merge_line_hits([1, 0, None], [1, 1, None]) == [2, 1, None]


def test_merge_line_hits_keeps_one_sided_values() -> None:
    """A value recorded on one side wins over None."""
    assert merge_line_hits([None, 3], [2, None]) == [2, 3]


def test_merge_line_hits_pads_shorter_side() -> None:
    """Sequences of different length merge to the longer length."""
    assert merge_line_hits([1], [None, 0, 1]) == [1, 0, 1]


def test_two_children_hitting_same_line_sum_to_two() -> None:
    """Two partials with hit count 1 on the same line merge to 2."""
    a = CoverageReport(files={"lib.py": [1, None]})
    b = CoverageReport(files={"lib.py": [1, None]})

    assert merge_reports([a, b]).files == {"lib.py": [2, None]}


def test_files_seen_by_one_partial_are_kept() -> None:
    """Files measured in only one partial appear unchanged."""
    a = CoverageReport(files={"a.py": [1]})
    b = CoverageReport(files={"b.py": [0, 1]})

    assert merge_reports([a, b]).files == {"a.py": [1], "b.py": [0, 1]}


def test_merge_is_order_independent() -> None:
    """Every order of merging yields the same report."""
    partials = [
        CoverageReport(files={"a.py": [1, None, 0], "b.py": [1]}),
        CoverageReport(files={"a.py": [None, None, 1, 1]}),
        CoverageReport(files={"b.py": [0, 2], "c.py": [None, 1]}),
    ]

    merged = {
        repr(merge_reports(order).to_json_dict())
        for order in itertools.permutations(partials)
    }

    assert len(merged) == 1


def test_merge_is_associative() -> None:
    """(A + B) + C equals A + (B + C)."""
    a = CoverageReport(files={"a.py": [1, None]})
    b = CoverageReport(files={"a.py": [None, 1, 0]})
    c = CoverageReport(files={"a.py": [2]})

    left = a.merge(b).merge(c)
    right = a.merge(b.merge(c))

    assert left.to_json_dict() == right.to_json_dict()


def test_merge_of_nothing_is_empty() -> None:
    """Merging no partials yields an empty report."""
    assert merge_reports([]).files == {}


def test_to_json_dict_sorts_files() -> None:
    """JSON output lists files sorted by path."""
    report = CoverageReport(files={"z.py": [1], "a.py": [None, 0]})

    assert list(report.to_json_dict()["files"]) == ["a.py", "z.py"]
