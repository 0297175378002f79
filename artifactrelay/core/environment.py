"""Environment expansion and the per-build copy environment record.

Each copy step records which upstream build it actually used under
``COPYARTIFACT_BUILD_NUMBER_<PROJECT>`` so later steps of the same build can
read it.  The record lives only as long as the in-memory build object; it is
never written to the build's durable record.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable
from string import Template
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from artifactrelay.models.builds import BuildHandle
    from artifactrelay.models.step import CopyArtifactConfig

logger = logging.getLogger(__name__)

ENV_KEY_PREFIX = "COPYARTIFACT_BUILD_NUMBER_"

_NON_LETTERS = re.compile(r"[^A-Z]+")


def expand_vars(text: str, env: dict[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR}`` references; unknown names are left as-is."""
    if "$" not in text:
        return text
    return Template(text).safe_substitute(env)


def env_key_for(project_name: str) -> str:
    """Environment variable name recording the build used from *project_name*.

    Any ``/`` sub-filter is dropped, the rest upper-cased, and each run of
    non-letters collapsed to ``_``.

    >>> env_key_for("my-app.core/jdk=7")
    'COPYARTIFACT_BUILD_NUMBER_MY_APP_CORE'
    """
    slash = project_name.find("/")
    if slash > 0:
        project_name = project_name[:slash]
    return ENV_KEY_PREFIX + _NON_LETTERS.sub("_", project_name.upper())


class EnvRecord:
    """Build-scoped map of copy-step environment contributions.

    Safe for concurrent copy units of one build; no cross-build sharing.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, project_name: str, build_number: int) -> str:
        key = env_key_for(project_name)
        with self._lock:
            self._data[key] = str(build_number)
        return key

    def contribute(self, env: dict[str, str]) -> None:
        """Copy the recorded entries into *env*."""
        with self._lock:
            env.update(self._data)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


def attach_env_record(
    build: BuildHandle, steps: Iterable[CopyArtifactConfig]
) -> EnvRecord | None:
    """Attach an EnvRecord at build start if the job configures a copy step.

    Returns the attached record (an existing one is kept), or ``None`` when
    the job has no copy steps.
    """
    if build.env_record is not None:
        return build.env_record
    if not any(True for _ in steps):
        return None
    build.env_record = EnvRecord()
    logger.debug("Attached copy environment record to %s", build.display_name)
    return build.env_record


def record_selection(build: BuildHandle, project_name: str, build_number: int) -> str | None:
    """Record the upstream build number chosen for *project_name*.

    A build started without an EnvRecord gets nothing recorded.
    """
    if build.env_record is None:
        return None
    return build.env_record.add(project_name, build_number)
