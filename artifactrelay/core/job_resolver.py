"""Job reference resolution.

A project name is usually a job's full name.  When no job has that name
and it contains ``/``, the part before the first ``/`` may name a job and
the rest a parameter sub-filter (``Matrix/jdk=7``).  The sub-filter must be
valid for that job, otherwise the name does not resolve at all.
"""

from __future__ import annotations

import difflib
import logging
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from artifactrelay.core.filters import BuildFilter, ParametersBuildFilter
from artifactrelay.models.builds import JobHandle, ProjectType
from artifactrelay.models.step import NameCheck

logger = logging.getLogger(__name__)


@runtime_checkable
class JobLookup(Protocol):
    """Host job namespace."""

    def lookup_by_full_name(self, name: str) -> JobHandle | None:
        ...

    def all_job_names(self) -> list[str]:
        ...


@runtime_checkable
class AccessControl(Protocol):
    def has_read_permission(self, job: JobHandle, principal: str) -> bool:
        ...


class JobReference(BaseModel):
    """A project name resolved to a job plus build filter.

    An unresolved reference has ``job`` set to ``None`` and keeps the
    match-all filter.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    raw_name: str
    job: JobHandle | None = None
    build_filter: BuildFilter = Field(default_factory=BuildFilter)

    @property
    def resolved(self) -> bool:
        return self.job is not None


def resolve_job(name: str, lookup: JobLookup) -> JobReference:
    """Resolve *name* against the host's job namespace."""
    if not name.strip():
        return JobReference(raw_name=name)

    job = lookup.lookup_by_full_name(name)
    if job is not None:
        return JobReference(raw_name=name, job=job)

    slash = name.find("/")
    if slash > 0:
        candidate = lookup.lookup_by_full_name(name[:slash])
        if candidate is not None:
            build_filter = ParametersBuildFilter(name[slash + 1:])
            if build_filter.is_valid(candidate):
                return JobReference(raw_name=name, job=candidate, build_filter=build_filter)
            logger.debug("Sub-filter %r is not valid for job %s", name[slash + 1:], candidate.full_name)
    return JobReference(raw_name=name)


def resolve_for_execution(
    configured_name: str,
    expanded_name: str,
    lookup: JobLookup,
    access: AccessControl,
    principal: str = "authenticated",
) -> JobReference:
    """Resolve an expanded name at build time, failing closed on access.

    When the name came out of parameter expansion, the job must be readable
    by any authenticated user; otherwise build parameters could be used to
    reach jobs the configuring user cannot see.
    """
    reference = resolve_job(expanded_name, lookup)
    if (
        reference.job is not None
        and expanded_name != configured_name
        and not access.has_read_permission(reference.job, principal)
    ):
        logger.warning(
            "Parameterized project %r resolved to %s, which %r cannot read; refusing",
            configured_name,
            reference.job.full_name,
            principal,
        )
        return JobReference(raw_name=expanded_name)
    return reference


def sanitize_project_name(name: str, lookup: JobLookup) -> str:
    """Configuration-time clearing of a bad, non-parameterized name.

    Names containing ``$`` are kept untouched; they resolve at build time.
    """
    if "$" in name or resolve_job(name, lookup).resolved:
        return name
    if name:
        logger.info("Clearing unresolvable project name %r from configuration", name)
    return ""


def check_project_name(value: str, lookup: JobLookup, *, can_configure: bool = True) -> NameCheck:
    """Validate a project name typed into a copy-step configuration."""
    if not can_configure or not value.strip():
        return NameCheck()
    job = resolve_job(value, lookup).job
    if job is not None:
        if job.project_type is ProjectType.MODULE_SET:
            return NameCheck(
                level="warning",
                message="Module-set project: artifacts of the build and of every module's "
                "last build are copied.",
            )
        if job.project_type is ProjectType.MATRIX:
            return NameCheck(
                level="warning",
                message="Matrix project: artifacts of every configuration are copied into "
                "subdirectories named after the axis combination.",
            )
        return NameCheck()
    if "$" in value:
        return NameCheck(
            level="warning",
            message="Value references a build parameter, so it cannot be validated "
            "until the build runs.",
        )
    return NameCheck(level="error", message=_no_such_project(value, lookup))


def _no_such_project(value: str, lookup: JobLookup) -> str:
    nearest = difflib.get_close_matches(value, lookup.all_job_names(), n=1, cutoff=0.0)
    if nearest:
        return f"No such project '{value}'. Did you mean '{nearest[0]}'?"
    return f"No such project '{value}'."
