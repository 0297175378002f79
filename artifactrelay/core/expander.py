"""Composite-build expansion into copy units.

The fan-out shape of a source build decides what gets copied:

* module aggregate — the aggregate build itself plus each module's last
  build, all into the base target directory;
* axis fan-out — one unit per completed axis run the build filter accepts,
  each into a subdirectory named after its axis combination so same-named
  artifacts never collide;
* plain — exactly one unit into the base target directory.
"""

from __future__ import annotations

from artifactrelay.core.filters import BuildFilter
from artifactrelay.models.artifacts import CopyUnit
from artifactrelay.models.builds import AxisFanOut, BuildHandle, ModuleAggregate, PlainBuild


def expand_copy_units(
    source: BuildHandle,
    build_filter: BuildFilter | None = None,
    env: dict[str, str] | None = None,
) -> list[CopyUnit]:
    """Return the ordered copy units for *source*.

    *build_filter* narrows an axis fan-out to the runs it accepts, so
    ``Matrix/jdk=7`` copies the ``jdk=7`` run only.
    """
    composite = source.composite
    if isinstance(composite, ModuleAggregate):
        return _expand_modules(source, composite)
    if isinstance(composite, AxisFanOut):
        return _expand_axes(source, composite, build_filter or BuildFilter(), env or {})
    if isinstance(composite, PlainBuild):
        return [CopyUnit(source_build=source)]
    raise TypeError(f"Unsupported build composite: {composite!r}")


def _expand_modules(source: BuildHandle, composite: ModuleAggregate) -> list[CopyUnit]:
    units = [CopyUnit(source_build=source)]
    for module in sorted(composite.module_last_builds):
        units.append(CopyUnit(source_build=composite.module_last_builds[module]))
    return units


def _expand_axes(
    source: BuildHandle,
    composite: AxisFanOut,
    build_filter: BuildFilter,
    env: dict[str, str],
) -> list[CopyUnit]:
    runs = [
        run
        for run in composite.axis_runs
        if run.is_completed and build_filter.accepts_axis_run(source, run, env)
    ]
    runs.sort(key=_axis_name)
    return [CopyUnit(source_build=run, target_subdir=_axis_name(run)) for run in runs]


def _axis_name(run: BuildHandle) -> str:
    if run.axis_combination:
        return run.axis_combination
    # Axis runs without an explicit combination are named like "Matrix/jdk=7".
    return run.job_name.rsplit("/", 1)[-1]
