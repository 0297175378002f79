"""Build selection strategies.

A selector picks exactly one build from a job's history, or ``None``.  It
must be deterministic for a given host snapshot and must not mutate host
state.  "No build" is not an error; the copy step decides what it means.

Selectors are Pydantic models so they persist inside a step configuration
as ``{"kind": ..., **fields}``.  New strategies register with
``@register_selector``.
"""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict

from artifactrelay.core.environment import expand_vars
from artifactrelay.models.builds import BuildResult

if TYPE_CHECKING:
    from artifactrelay.core.filters import BuildFilter
    from artifactrelay.models.builds import BuildHandle, JobHandle

logger = logging.getLogger(__name__)


class UnknownSelectorError(KeyError):
    """Raised when a selector spec names an unregistered kind."""


class BuildSelector(BaseModel, abc.ABC):
    """Base strategy: walk the job's history newest-first.

    Subclasses implement ``is_selectable``; the walk skips builds still in
    progress and the destination build itself.
    """

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str]
    display_name: ClassVar[str]

    def select(
        self,
        job: JobHandle,
        env: dict[str, str],
        build_filter: BuildFilter,
        destination: BuildHandle,
    ) -> BuildHandle | None:
        for build in job.builds_newest_first():
            if not build.is_completed or build.ref == destination.ref:
                continue
            if self.is_selectable(build, env) and build_filter.is_selectable(build, env):
                logger.debug("%s selected %s", self.kind, build.display_name)
                return build
        return None

    @abc.abstractmethod
    def is_selectable(self, build: BuildHandle, env: dict[str, str]) -> bool:
        ...

    def to_spec(self) -> dict[str, Any]:
        return {"kind": self.kind, **self.model_dump()}


_REGISTRY: dict[str, type[BuildSelector]] = {}


def register_selector(cls: type[BuildSelector]) -> type[BuildSelector]:
    """Class decorator adding a selector to the registry under ``cls.kind``."""
    _REGISTRY[cls.kind] = cls
    return cls


def selector_from_spec(spec: dict[str, Any]) -> BuildSelector:
    """Rebuild a selector from its persisted ``{"kind": ...}`` form."""
    data = dict(spec)
    kind = data.pop("kind", StatusBuildSelector.kind)
    try:
        cls = _REGISTRY[kind]
    except KeyError:
        raise UnknownSelectorError(
            f"Unknown build selector {kind!r}. Known: {sorted(_REGISTRY)}"
        ) from None
    return cls.model_validate(data)


def available_selectors() -> dict[str, str]:
    """Registered selector kinds mapped to their display names."""
    return {kind: cls.display_name for kind, cls in sorted(_REGISTRY.items())}


@register_selector
class StatusBuildSelector(BuildSelector):
    """Most recent build that is successful or, unless ``stable_only``, unstable."""

    kind: ClassVar[str] = "status"
    display_name: ClassVar[str] = "Latest successful build"

    stable_only: bool = False

    def is_selectable(self, build: BuildHandle, env: dict[str, str]) -> bool:
        threshold = BuildResult.SUCCESS if self.stable_only else BuildResult.UNSTABLE
        return build.result is not None and build.result.is_better_or_equal(threshold)


@register_selector
class SpecificBuildSelector(BuildSelector):
    """A build by number; the number may be a ``$PARAM`` reference."""

    kind: ClassVar[str] = "specific"
    display_name: ClassVar[str] = "Specific build"

    build_number: str

    def select(
        self,
        job: JobHandle,
        env: dict[str, str],
        build_filter: BuildFilter,
        destination: BuildHandle,
    ) -> BuildHandle | None:
        expanded = expand_vars(self.build_number, env).strip()
        try:
            number = int(expanded)
        except ValueError:
            logger.warning("Build number %r is not an integer", expanded)
            return None
        build = job.get_build(number)
        if build is None or not build.is_completed or build.ref == destination.ref:
            return None
        return build if build_filter.is_selectable(build, env) else None

    def is_selectable(self, build: BuildHandle, env: dict[str, str]) -> bool:
        return str(build.number) == expand_vars(self.build_number, env).strip()


def default_selector() -> BuildSelector:
    return StatusBuildSelector()
