"""Configuration file loading (ganttline.yaml).

Example::

    solver:
      default_rule: MWR
      rules: [SPT, MWR, LWR]
      compress: true
    compression:
      mode: latest
    layers:
      max_undo_steps: 20
    cpm:
      deadline: 2025-03-31
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .scheduler.config import CompressionConfig, LayerConfig, SchedulingConfig, SolverConfig

DEFAULT_CONFIG_NAME = "ganttline.yaml"


class CpmConfig(BaseModel):
    """Configuration for critical path analysis."""

    deadline: date | None = None


class GanttlineConfig(BaseModel):
    """Combined configuration for every ganttline command."""

    solver: SolverConfig = Field(default_factory=SolverConfig)
    compression: CompressionConfig = Field(default_factory=CompressionConfig)
    layers: LayerConfig = Field(default_factory=LayerConfig)
    cpm: CpmConfig = Field(default_factory=CpmConfig)

    @property
    def scheduling(self) -> SchedulingConfig:
        return SchedulingConfig(
            solver=self.solver, compression=self.compression, layers=self.layers
        )


def load_config(config_path: Path | str) -> GanttlineConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        The validated configuration

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data: dict[str, Any] = yaml.safe_load(f)

    if not data:
        raise ValueError("Empty configuration file")

    return GanttlineConfig.model_validate(data)


def discover_config(config_path: Path | None = None) -> GanttlineConfig:
    """Load an explicit config, else ./ganttline.yaml if present, else defaults."""
    if config_path is not None:
        return load_config(config_path)
    default = Path(DEFAULT_CONFIG_NAME)
    if default.exists():
        return load_config(default)
    return GanttlineConfig()
