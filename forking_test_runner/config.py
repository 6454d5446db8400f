"""Run configuration."""

from collections.abc import Mapping
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, PositiveFloat, PositiveInt, model_validator

from forking_test_runner.models.base import Model
from forking_test_runner.partitioner import DEFAULT_DURATION
from forking_test_runner.runtime_log import DEFAULT_RUNTIME_LOG, is_remote

# (repository slug variable, build identifier variable) per CI system
BUILD_KEY_VARIABLES = (
    ("GITHUB_REPOSITORY", "GITHUB_RUN_ID"),
    ("CI_PROJECT_PATH", "CI_PIPELINE_ID"),
    ("TRAVIS_REPO_SLUG", "TRAVIS_BUILD_NUMBER"),
)


def default_runtime_key(environ: Mapping[str, str]) -> str | None:
    """Derive the remote runtime log key from CI build variables."""
    for slug_var, build_var in BUILD_KEY_VARIABLES:
        slug, build = environ.get(slug_var), environ.get(build_var)
        if slug and build:
            return f"{slug}/{build}"
    return None


class RunConfig(Model):
    """Validated options of one invocation."""

    adapter: Literal["pytest", "unittest", "script"] = "pytest"
    group: PositiveInt | None = None
    groups: PositiveInt | None = None
    quiet: bool = False
    coverage: bool = False
    coverage_dir: Path = Path("coverage")
    runtime_log: str | None = Field(
        default=None, description="Runtime log path or HTTP(S) URL"
    )
    record_runtime: Literal["simple", "amend"] | None = None
    runtime_store: str = "http"
    runtime_store_config: str | None = Field(
        default=None, description="JSON configuration for the runtime store"
    )
    runtime_key: str | None = None
    default_duration: PositiveFloat = DEFAULT_DURATION
    summary_file: Path | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> Self:
        """Reject conflicting options before anything runs."""
        if (self.group is None) != (self.groups is None):
            raise ValueError("--group and --groups must be given together")
        if self.group is not None and self.groups is not None:
            if self.group > self.groups:
                raise ValueError(
                    f"--group {self.group} is larger than --groups {self.groups}"
                )
        if self.record_runtime == "simple" and self.runtime_log is not None:
            if is_remote(self.runtime_log):
                raise ValueError(
                    "--record-runtime simple writes a local file, "
                    "--runtime-log must not be a URL"
                )
        if self.record_runtime == "amend":
            if not self.runtime_key:
                raise ValueError(
                    "--record-runtime amend needs --runtime-key or CI build variables"
                )
            if self.runtime_store_config is None:
                raise ValueError(
                    "--record-runtime amend needs --runtime-store-config"
                )
        return self

    @property
    def group_index(self) -> int:
        return self.group or 1

    @property
    def group_count(self) -> int:
        return self.groups or 1

    @property
    def local_runtime_log(self) -> Path:
        """Runtime log file that simple recording writes to."""
        if self.runtime_log is not None and not is_remote(self.runtime_log):
            return Path(self.runtime_log)
        return DEFAULT_RUNTIME_LOG
