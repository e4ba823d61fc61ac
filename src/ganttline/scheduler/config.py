"""Configuration classes for the scheduling engines."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class DispatchRule(str, Enum):
    """Priority rules for the dispatch solver.

    Declaration order is the tie-break order used when comparing rules.
    """

    SPT = "SPT"  # Shortest next operation first
    LPT = "LPT"  # Longest next operation first
    FCFS = "FCFS"  # Job that became ready earliest
    MWR = "MWR"  # Most work remaining in the job
    LWR = "LWR"  # Least work remaining in the job

    @property
    def label(self) -> str:
        return _RULE_LABELS[self]


_RULE_LABELS = {
    DispatchRule.SPT: "Shortest Processing Time",
    DispatchRule.LPT: "Longest Processing Time",
    DispatchRule.FCFS: "First Come First Served",
    DispatchRule.MWR: "Most Work Remaining",
    DispatchRule.LWR: "Least Work Remaining",
}


class CompressionMode(str, Enum):
    """Direction used when compressing a single task."""

    EARLIEST = "earliest"
    LATEST = "latest"


def _all_rules() -> list[DispatchRule]:
    return list(DispatchRule)


class SolverConfig(BaseModel):
    """Configuration for dispatch solving."""

    default_rule: DispatchRule = DispatchRule.SPT
    # Rules tried by best-of solving, always run in declaration order
    rules: list[DispatchRule] = Field(default_factory=_all_rules)
    # Left-shift the result after dispatching
    compress: bool = False

    @field_validator("rules")
    @classmethod
    def validate_rules(cls, v: list[DispatchRule]) -> list[DispatchRule]:
        if not v:
            raise ValueError("rules must name at least one dispatch rule")
        ordered = [rule for rule in DispatchRule if rule in v]
        return ordered


class CompressionConfig(BaseModel):
    """Configuration for interactive compression."""

    mode: CompressionMode = CompressionMode.EARLIEST


class LayerConfig(BaseModel):
    """Configuration for the layer manager."""

    max_undo_steps: int = Field(default=50, ge=1)
    # Make a freshly created solver layer the active one
    activate_new_layers: bool = True


class SchedulingConfig(BaseModel):
    """Top-level scheduling configuration."""

    solver: SolverConfig = Field(default_factory=SolverConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    layers: LayerConfig = Field(default_factory=LayerConfig)
