"""Pydantic models for design plan files.

A design plan declares the tasks of one feature (design system, pages,
components, navigation, validation) together with the run settings, so a
whole build can be described without writing Python.

Usage::

    from designflow.orchestration.plan import load_plan

    plan = load_plan("plans/shop.yaml")
    registry = plan.to_registry()

Example YAML::

    apiVersion: designflow.io/v1
    kind: DesignPlan
    metadata:
      name: shop
      feature: shop
    spec:
      max_concurrency: 4
      task_timeout_seconds: 600
      tasks:
        - id: design-system
          kind: design-system
          priority: 1
          files: [UI/shop/design-system.html]
        - id: page-home
          dependencies: [design-system]
          files: [UI/shop/pages/main/home.html]

JSON plans use the same structure.  Task entries accept snake_case or
camelCase keys (``estimated_effort`` / ``estimatedEffort``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from designflow.core.logging import get_logger
from designflow.orchestration.exceptions import InvalidPlanError
from designflow.orchestration.registry import TaskRegistry
from designflow.orchestration.task import TaskConfig

logger = get_logger(__name__)


class PlanMetadataSpec(BaseModel):
    """Metadata section of a design plan."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Plan name")
    feature: str = Field(default="", description="Feature the plan builds, e.g. 'shop'")
    description: str = Field(default="")
    tags: list[str] = Field(default_factory=list)


class PlanSpecSection(BaseModel):
    """The 'spec' section: run settings and tasks."""

    model_config = ConfigDict(extra="forbid")

    max_concurrency: int | None = Field(default=None, ge=1, description="Slot count for the run")
    task_timeout_seconds: float | None = Field(default=None, gt=0, description="Default per-task timeout")
    external: list[str] = Field(default_factory=list, description="Already-satisfied prerequisite ids")
    tasks: list[TaskConfig] = Field(default_factory=list)

    @field_validator("tasks")
    @classmethod
    def validate_unique_ids(cls, v: list[TaskConfig]) -> list[TaskConfig]:
        """Ensure task ids are unique."""
        ids = [task.id for task in v]
        if len(ids) != len(set(ids)):
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            raise ValueError(f"Duplicate task ids: {duplicates}")
        return v

    @model_validator(mode="after")
    def validate_dependencies(self) -> PlanSpecSection:
        """Ensure dependencies name a task of the plan or an external id."""
        known = {task.id for task in self.tasks} | set(self.external)
        for task in self.tasks:
            unknown = [dep for dep in task.dependencies if dep not in known]
            if unknown:
                raise ValueError(f"Task '{task.id}' depends on unknown tasks: {unknown}")
        return self


class DesignPlanSpec(BaseModel):
    """Complete design plan; the root model for plan files."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["designflow.io/v1"] = Field(default="designflow.io/v1")
    kind: Literal["DesignPlan"] = Field(default="DesignPlan")
    metadata: PlanMetadataSpec
    spec: PlanSpecSection = Field(default_factory=PlanSpecSection)

    @property
    def tasks(self) -> list[TaskConfig]:
        return self.spec.tasks

    def to_registry(self) -> TaskRegistry:
        """Build and validate a registry holding the plan's tasks.

        Raises:
            CyclicDependencyError: If the plan's dependencies form a cycle
        """
        registry = TaskRegistry(self.spec.tasks, external=self.spec.external)
        registry.validate()
        return registry

    @classmethod
    def from_yaml(cls, content: str) -> DesignPlanSpec:
        """Parse and validate YAML (or JSON) content.

        Raises:
            InvalidPlanError: If the content is not valid YAML or does not
                match the plan schema
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise InvalidPlanError(f"Invalid YAML: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> DesignPlanSpec:
        if not isinstance(data, dict):
            raise InvalidPlanError(
                f"Expected a mapping, got {type(data).__name__}", field="root"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or None
            raise InvalidPlanError(
                f"Invalid design plan ({e.error_count()} error(s)): {first['msg']}"
                + (f" at {location}" if location else ""),
                field=location,
            ) from e

    def to_yaml(self) -> str:
        """Serialise back to plan YAML."""
        data = self.model_dump(mode="json", exclude_defaults=True)
        data = {"apiVersion": self.apiVersion, "kind": self.kind, **data}
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_plan(path: Path | str) -> DesignPlanSpec:
    """
    Load a design plan from a YAML or JSON file.

    Args:
        path: Path to the plan file

    Returns:
        The validated DesignPlanSpec

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidPlanError: If the file cannot be read or its content is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Plan file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidPlanError(f"Cannot read plan file {path}: {e}", field="path") from e

    plan = DesignPlanSpec.from_yaml(content)
    logger.debug(
        "plan.loaded",
        path=str(path),
        name=plan.metadata.name,
        task_count=len(plan.tasks),
    )
    return plan
