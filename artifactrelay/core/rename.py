"""Rename maintenance for stored copy-step configurations.

Invoked by the host's rename notification.  Every stored step whose
project name is the old job name, or the old name followed by a ``/``
sub-filter, is rewritten to the new name with the suffix preserved.
Failures to persist one owner's configuration are logged and skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from artifactrelay.models.step import CopyArtifactConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class StepConfigurations(Protocol):
    """Enumeration of stored copy-step configurations, by owning job."""

    def iter_copy_steps(self) -> Iterable[tuple[str, list[CopyArtifactConfig]]]:
        ...

    def replace_copy_steps(self, owner: str, steps: list[CopyArtifactConfig]) -> None:
        """Replace and persist *owner*'s steps; may raise ``OSError``."""
        ...


def renamed_reference(project_name: str, old_name: str, new_name: str) -> str | None:
    """The rewritten project name, or ``None`` if it does not refer to *old_name*.

    >>> renamed_reference("A/jdk=7", "A", "B")
    'B/jdk=7'
    >>> renamed_reference("AA/jdk=7", "A", "B") is None
    True
    """
    if project_name == old_name:
        return new_name
    if project_name.startswith(old_name + "/"):
        return new_name + project_name[len(old_name):]
    return None


def rename_job_references(
    configurations: StepConfigurations, old_name: str, new_name: str
) -> list[str]:
    """Rewrite references to *old_name*; returns the owners that were saved."""
    updated: list[str] = []
    for owner, steps in list(configurations.iter_copy_steps()):
        changed = False
        rewritten: list[CopyArtifactConfig] = []
        for step in steps:
            replacement = renamed_reference(step.project_name, old_name, new_name)
            if replacement is None:
                rewritten.append(step)
                continue
            rewritten.append(step.model_copy(update={"project_name": replacement}))
            changed = True
        if not changed:
            continue
        try:
            configurations.replace_copy_steps(owner, rewritten)
        except OSError:
            logger.warning(
                "Failed to resave project %s for project rename in copy artifact "
                "build step (%s => %s)",
                owner,
                old_name,
                new_name,
                exc_info=True,
            )
            continue
        updated.append(owner)
    if updated:
        logger.info("Renamed %s => %s in %d project(s)", old_name, new_name, len(updated))
    return updated
