"""Copy-step configuration and outcome models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from artifactrelay.core.selectors import (
    BuildSelector,
    default_selector,
    selector_from_spec,
)
from artifactrelay.models.artifacts import ArtifactRecord
from artifactrelay.models.builds import BuildRef


class CopyArtifactConfig(BaseModel):
    """Persisted configuration of one copy-artifact build step.

    ``project_name`` may carry a ``/K=V`` sub-filter suffix and ``$VAR``
    placeholders.  Use ``configure_copy_step()`` to build one from user
    input; it applies the configuration-time clearing of bad names.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    project_name: str
    selector: BuildSelector = Field(default_factory=default_selector)
    filter: str = ""
    target: str = ""
    flatten: bool = False
    optional: bool = False

    @field_validator("selector", mode="before")
    @classmethod
    def _coerce_selector(cls, value: Any) -> Any:
        if value is None:
            return default_selector()
        if isinstance(value, dict):
            return selector_from_spec(value)
        return value

    @field_validator("filter", "target", mode="before")
    @classmethod
    def _trim(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @field_serializer("selector")
    def _dump_selector(self, selector: BuildSelector) -> dict[str, Any]:
        return selector.to_spec()


class UnitStatus(str, Enum):
    """How a single copy unit ended."""

    COPIED = "copied"
    EMPTY = "empty"  # manifest present, nothing matched
    NO_MANIFEST = "no_manifest"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    DOWNLOAD_FAILED = "download_failed"


class UnitOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: BuildRef
    target_subdir: str = ""
    status: UnitStatus
    records: list[ArtifactRecord] = Field(default_factory=list)
    detail: str = ""

    @property
    def is_fault(self) -> bool:
        return self.status in (UnitStatus.STORAGE_UNAVAILABLE, UnitStatus.DOWNLOAD_FAILED)


class CopyOutcome(BaseModel):
    """Result of one copy-step execution at the step boundary."""

    model_config = ConfigDict(frozen=True)

    success: bool
    project: str
    source: BuildRef | None = None
    units: list[UnitOutcome] = Field(default_factory=list)
    message: str = ""

    @property
    def records(self) -> list[ArtifactRecord]:
        return [record for unit in self.units for record in unit.records]

    @property
    def copied_count(self) -> int:
        return sum(len(unit.records) for unit in self.units)


class NameCheck(BaseModel):
    """Configuration-time verdict on a project name."""

    model_config = ConfigDict(frozen=True)

    level: Literal["ok", "warning", "error"] = "ok"
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.level == "error"
