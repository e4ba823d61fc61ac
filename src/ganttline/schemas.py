"""Pydantic schemas for instance, solution and project files."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .models import RelationType


def _alias(*names: str) -> Any:
    """Field accepting each name on input and emitting the first on output."""
    return Field(
        default=None,
        validation_alias=AliasChoices(*names),
        serialization_alias=names[0],
    )


class PayloadSchema(BaseModel):
    """An instance or solution payload.

    Keys are accepted in PascalCase or snake_case; output uses PascalCase.
    ``Data`` holds ``[machine, duration]`` pairs for an instance and
    ``[machine, duration, start]`` triples for a solution.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str | None = _alias("Name", "name")
    description: str | None = _alias("Description", "description")
    machine_count: int | None = _alias("MachineCount", "machine_count", "machines")
    job_count: int | None = _alias("JobCount", "job_count", "jobs")
    time_unit: str | None = _alias("TimeUnit", "time_unit")
    machine_names: list[str] | None = _alias("MachineNames", "machine_names")
    job_names: list[str] | None = _alias("JobNames", "job_names")
    data: list[list[list[int]]] | None = _alias("Data", "data")
    makespan: int | None = _alias("Makespan", "makespan")
    status: str | None = _alias("Status", "status")
    solver: str | None = _alias("Solver", "solver")

    @field_validator("machine_names", "job_names", mode="before")
    @classmethod
    def coerce_names(cls, v: Any) -> list[str] | None:
        """Names may be given as numbers; keep them as strings."""
        if v is None:
            return None
        if isinstance(v, list):
            return [str(item) for item in v]  # type: ignore[misc]
        return [str(v)]

    def dump(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProjectTaskSchema(BaseModel):
    """A calendar task in a project file."""

    id: str
    name: str = ""
    start: date
    duration: int = Field(ge=0)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)


class DependencySchema(BaseModel):
    """An edge in a project file: ``{from, to, type, lag}``."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(validation_alias=AliasChoices("from", "source"))
    target: str = Field(validation_alias=AliasChoices("to", "target"))
    type: RelationType = RelationType.FINISH_TO_START
    lag: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def parse_relation(cls, v: Any) -> RelationType:
        return RelationType.parse(v)

    @field_validator("source", "target", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> str:
        return str(v)


class ProjectSchema(BaseModel):
    """A CPM project file."""

    name: str = ""
    deadline: date | None = None
    tasks: list[ProjectTaskSchema] = Field(default_factory=list)
    dependencies: list[DependencySchema] = Field(default_factory=list)
