"""Helpers for code running inside a child process."""

import os
from collections.abc import Mapping

FILE_ENV = "FORKING_TEST_RUNNER_FILE"
GROUP_ENV = "FORKING_TEST_RUNNER_GROUP"
GROUPS_ENV = "FORKING_TEST_RUNNER_GROUPS"


def child_environment(
    path: str,
    group: int,
    groups: int,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment of the child that runs path."""
    env = dict(os.environ if base is None else base)
    env[FILE_ENV] = path
    env[GROUP_ENV] = str(group)
    env[GROUPS_ENV] = str(groups)
    return env


def current_test_file() -> str | None:
    """Return the test file this process was started for, if any.

    Rerun scripts and reporters use this to name the failing file.
    """
    return os.environ.get(FILE_ENV)
