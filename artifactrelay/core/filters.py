"""Build filters derived from the sub-filter suffix of a project name.

``Matrix/jdk=7`` resolves to job ``Matrix`` with a filter selecting only
builds whose ``jdk`` parameter is ``7`` or, for a matrix build, only its
``jdk=7`` axis run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from artifactrelay.core.environment import expand_vars
from artifactrelay.models.builds import AxisFanOut

if TYPE_CHECKING:
    from artifactrelay.models.builds import BuildHandle, JobHandle


class InvalidFilterError(ValueError):
    """Raised when sub-filter text is not a ``K=V[,K=V...]`` list."""


def parse_parameter_filter(spec: str) -> dict[str, str]:
    """Parse ``"K=V,K2=V2"`` into an ordered mapping.

    Raises ``InvalidFilterError`` for empty text, items without ``=``,
    empty names, or a name given twice.
    """
    if not spec.strip():
        raise InvalidFilterError("empty parameter filter")
    pairs: dict[str, str] = {}
    for item in spec.split(","):
        name, sep, value = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise InvalidFilterError(f"malformed parameter filter item: {item!r}")
        if name in pairs:
            raise InvalidFilterError(f"parameter {name!r} given more than once")
        pairs[name] = value.strip()
    return pairs


class BuildFilter:
    """Match-all filter; the default when a name has no sub-filter."""

    def is_valid(self, job: JobHandle) -> bool:
        return True

    def is_selectable(self, build: BuildHandle, env: dict[str, str]) -> bool:
        return True

    def accepts_axis_run(self, parent: BuildHandle, run: BuildHandle, env: dict[str, str]) -> bool:
        """Whether *run* of the matrix build *parent* should be copied."""
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ParametersBuildFilter(BuildFilter):
    """Select builds whose recorded parameters or axis values match ``K=V`` pairs.

    Values may reference the environment (``jdk=$JDK``) and are expanded at
    selection time.  Malformed text yields a filter that is never valid.

    For a matrix build the pairs are checked per axis run, against the run's
    axis values layered over the parent's parameters: the parent is
    selectable if any completed run matches, and only matching runs are
    copied.
    """

    def __init__(self, spec: str) -> None:
        self.spec = spec
        try:
            self._pairs: dict[str, str] | None = parse_parameter_filter(spec)
        except InvalidFilterError:
            self._pairs = None

    @property
    def pairs(self) -> dict[str, str]:
        return dict(self._pairs or {})

    def is_valid(self, job: JobHandle) -> bool:
        """Every named parameter must be a job parameter or matrix axis."""
        if self._pairs is None:
            return False
        known = set(job.parameter_names) | set(job.axes)
        return all(name in known for name in self._pairs)

    def is_selectable(self, build: BuildHandle, env: dict[str, str]) -> bool:
        if self._pairs is None:
            return False
        expected = self._expected(env)
        if isinstance(build.composite, AxisFanOut):
            return any(
                _matches(expected, build, run)
                for run in build.composite.axis_runs
                if run.is_completed
            )
        return _matches(expected, build, None)

    def accepts_axis_run(self, parent: BuildHandle, run: BuildHandle, env: dict[str, str]) -> bool:
        if self._pairs is None:
            return False
        return _matches(self._expected(env), parent, run)

    def _expected(self, env: dict[str, str]) -> dict[str, str]:
        return {name: expand_vars(value, env) for name, value in (self._pairs or {}).items()}

    def __repr__(self) -> str:
        return f"ParametersBuildFilter({self.spec!r})"


def _matches(expected: dict[str, str], build: BuildHandle, run: BuildHandle | None) -> bool:
    actual = dict(build.parameters)
    if run is not None:
        actual.update(run.parameters)
        actual.update(run.axis_values)
    return all(actual.get(name) == value for name, value in expected.items())
