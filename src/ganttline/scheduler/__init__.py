"""Scheduler package - job-shop dispatching and interactive timeline consistency.

Main entry points:
- solve / solve_multiple: dispatch-rule solving of job-shop instances
- validate: feasibility checks and quality metrics
- compress_earliest / compress_latest: move one task within its machine's gaps
- detect_conflicts / auto_fix: flag and repair precedence violations
- compute_cpm: critical path analysis over calendar tasks
- SchedulingService: run any of the above and store the result as a layer

Configuration:
- SchedulingConfig: solver, compression and layer settings
"""

# Interactive compression and conflicts
from .compression import compress, compress_earliest, compress_latest

# Configuration
from .config import (
    CompressionConfig,
    CompressionMode,
    DispatchRule,
    LayerConfig,
    SchedulingConfig,
    SolverConfig,
)
from .conflicts import (
    AutoFixResult,
    ConflictReport,
    MachineOverlap,
    PrecedenceConflict,
    auto_fix,
    detect_conflicts,
)

# Core dataclasses
from .core import Instance, Operation, ScheduledOperation, Solution, SolverResult

# Critical path
from .cpm import CpmResult, ProjectTask, compute_cpm, critical_path, early_schedule

# Solving
from .dispatch import compress_solution, solve, solve_multiple
from .graph import topological_sort

# Service
from .service import InstanceMapping, SchedulingService, apply_solution
from .timeline import MachineTimeline
from .validator import SolutionMetrics, SolutionValidator, ValidationResult, validate

__all__ = [
    "AutoFixResult",
    "CompressionConfig",
    "CompressionMode",
    "ConflictReport",
    "CpmResult",
    "DispatchRule",
    "Instance",
    "InstanceMapping",
    "LayerConfig",
    "MachineOverlap",
    "MachineTimeline",
    "Operation",
    "PrecedenceConflict",
    "ProjectTask",
    "ScheduledOperation",
    "SchedulingConfig",
    "SchedulingService",
    "Solution",
    "SolutionMetrics",
    "SolutionValidator",
    "SolverConfig",
    "SolverResult",
    "ValidationResult",
    "apply_solution",
    "auto_fix",
    "compress",
    "compress_earliest",
    "compress_latest",
    "compress_solution",
    "compute_cpm",
    "critical_path",
    "detect_conflicts",
    "early_schedule",
    "solve",
    "solve_multiple",
    "topological_sort",
    "validate",
]
