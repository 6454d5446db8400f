"""Run every test file in its own process, balanced across CI groups."""

from forking_test_runner.child import current_test_file

__all__ = ["current_test_file"]
