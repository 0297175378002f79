"""Host job and build models consumed by the copy pipeline.

Jobs and builds are host records: they are mutable (results land, fingerprint
summaries grow) and are never cached across copy executions.  A build's
fan-out shape is a tagged variant resolved once from its metadata:

* ``PlainBuild`` — a single build archiving its own artifacts.
* ``ModuleAggregate`` — a top-level run that triggered per-module builds.
* ``AxisFanOut`` — a matrix build with one run per axis combination.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from artifactrelay.core.environment import EnvRecord


class BuildResult(str, Enum):
    """Completed build status, ordered best to worst."""

    SUCCESS = "success"
    UNSTABLE = "unstable"
    FAILURE = "failure"
    NOT_BUILT = "not_built"
    ABORTED = "aborted"

    @property
    def ordinal(self) -> int:
        return list(BuildResult).index(self)

    def is_better_or_equal(self, other: BuildResult) -> bool:
        return self.ordinal <= other.ordinal


class ProjectType(str, Enum):
    """Kind of job, as far as artifact copying cares."""

    FREESTYLE = "freestyle"
    MODULE_SET = "module_set"
    MATRIX = "matrix"


class BuildRef(BaseModel):
    """Stable identity of a build: owning job full name plus build number."""

    model_config = ConfigDict(frozen=True)

    job_name: str
    number: int

    def __str__(self) -> str:
        return f"{self.job_name}#{self.number}"


class PlainBuild(BaseModel):
    kind: Literal["plain"] = "plain"


class ModuleAggregate(BaseModel):
    """Module-set run; maps module name to that module's last build."""

    kind: Literal["module_aggregate"] = "module_aggregate"
    module_last_builds: dict[str, BuildHandle] = Field(default_factory=dict)


class AxisFanOut(BaseModel):
    """Matrix run; one sub-build per axis combination."""

    kind: Literal["axis_fan_out"] = "axis_fan_out"
    axis_runs: list[BuildHandle] = Field(default_factory=list)


Composite = Annotated[
    Union[PlainBuild, ModuleAggregate, AxisFanOut],
    Field(discriminator="kind"),
]


class BuildHandle(BaseModel):
    """One execution of a job.

    ``result`` is ``None`` while the build is still running.  ``env_record``
    holds the copy-step environment contributions for the life of this
    object only and is excluded from every serialization path.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    job_name: str
    number: int
    result: BuildResult | None = None
    parameters: dict[str, str] = Field(default_factory=dict)
    axis_combination: str | None = None  # e.g. "jdk=7" for an axis run
    workspace: Path | None = None
    composite: Composite = Field(default_factory=PlainBuild)
    carries_fingerprints: bool = True
    fingerprint_summary: dict[str, str] | None = None
    env_record: EnvRecord | None = Field(default=None, exclude=True)

    @property
    def ref(self) -> BuildRef:
        return BuildRef(job_name=self.job_name, number=self.number)

    @property
    def display_name(self) -> str:
        return f"{self.job_name} #{self.number}"

    @property
    def is_completed(self) -> bool:
        return self.result is not None

    @property
    def axis_values(self) -> dict[str, str]:
        """Axis name to value for an axis run, parsed from ``axis_combination``."""
        values: dict[str, str] = {}
        for item in (self.axis_combination or "").split(","):
            name, sep, value = item.partition("=")
            if sep and name.strip():
                values[name.strip()] = value.strip()
        return values

    def environment(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Environment visible to a build step of this build.

        Copy-step contributions come first; the build's own parameters and
        axis values override everything.
        """
        env = dict(base or {})
        env["JOB_NAME"] = self.job_name
        env["BUILD_NUMBER"] = str(self.number)
        if self.env_record is not None:
            self.env_record.contribute(env)
        env.update(self.parameters)
        return env


class JobHandle(BaseModel):
    """A configured job and its build history."""

    full_name: str
    project_type: ProjectType = ProjectType.FREESTYLE
    parameter_names: list[str] = Field(default_factory=list)
    axes: dict[str, list[str]] = Field(default_factory=dict)
    readers: list[str] = Field(default_factory=lambda: ["authenticated"])
    builds: list[BuildHandle] = Field(default_factory=list)

    def builds_newest_first(self) -> list[BuildHandle]:
        return sorted(self.builds, key=lambda b: b.number, reverse=True)

    def get_build(self, number: int) -> BuildHandle | None:
        for build in self.builds:
            if build.number == number:
                return build
        return None

    @property
    def last_build(self) -> BuildHandle | None:
        ordered = self.builds_newest_first()
        return ordered[0] if ordered else None


ModuleAggregate.model_rebuild()
AxisFanOut.model_rebuild()
BuildHandle.model_rebuild()
