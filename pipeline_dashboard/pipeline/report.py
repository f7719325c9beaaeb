"""
Pydantic views over a raw pipeline report.

Reports are produced by an external automation tool and are stored verbatim;
these models only read the handful of fields ingestion derives data from,
and tolerate everything else.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ResourceType


class BranchReference(BaseModel):
    """Source and target branch of a repository-backed step."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: str = Field("", alias="Source")
    target: str = Field("", alias="Target")


class ScmReference(BaseModel):
    """Repository reference embedded in a target step."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str = Field("", alias="URL")
    branch: BranchReference = Field(default_factory=BranchReference, alias="Branch")

    @field_validator("branch", mode="before")
    @classmethod
    def _null_branch(cls, value: Any) -> Any:
        return {} if value is None else value


class StepReport(BaseModel):
    """One source, condition or target entry of a report."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field("", alias="Name")
    result: str = Field("", alias="Result")
    config: Any = Field(None, alias="Config")
    scm: ScmReference = Field(default_factory=ScmReference, alias="Scm")

    @field_validator("scm", mode="before")
    @classmethod
    def _null_scm(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def kind(self) -> Optional[str]:
        """Discriminator of the step configuration, if it carries one."""
        if not isinstance(self.config, dict):
            return None
        kind = self.config.get("Kind")
        if isinstance(kind, str) and kind:
            return kind
        return None


class PipelineReport(BaseModel):
    """Top-level pipeline execution report."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field("", alias="ID")
    pipeline_id: str = Field("", alias="PipelineID")
    name: str = Field("", alias="Name")
    result: str = Field("", alias="Result")
    sources: Dict[str, StepReport] = Field(default_factory=dict, alias="Sources")
    conditions: Dict[str, StepReport] = Field(default_factory=dict, alias="Conditions")
    targets: Dict[str, StepReport] = Field(default_factory=dict, alias="Targets")

    @field_validator("sources", "conditions", "targets", mode="before")
    @classmethod
    def _null_steps(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def effective_pipeline_id(self) -> str:
        """Pipeline identity used to group runs; falls back to the run ID."""
        return self.pipeline_id or self.id

    def steps(self, resource_type: ResourceType) -> Dict[str, StepReport]:
        return {
            ResourceType.SOURCE: self.sources,
            ResourceType.CONDITION: self.conditions,
            ResourceType.TARGET: self.targets,
        }[resource_type]

    def iter_steps(self) -> Iterator[Tuple[ResourceType, str, StepReport]]:
        for resource_type in ResourceType:
            for step_name, step in self.steps(resource_type).items():
                yield resource_type, step_name, step
