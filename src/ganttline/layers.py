"""Solution layers: named, sparse overlays on the base schedule.

A layer stores only the fields a solver run (or a user edit) changed. The
base schedule is never modified by layer operations; callers compose the
effective view of a task at read time.
"""

from __future__ import annotations

import copy
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, TypeVar

from .exceptions import LayerNotFoundError
from .logger import get_logger

logger = get_logger()

T = TypeVar("T")


@dataclass
class TaskOverride:
    """Field overrides for one task. None means "use the base value"."""

    start: int | None = None
    duration: int | None = None
    machine_id: str | None = None
    row_index: int | None = None
    job_id: str | None = None
    start_date: date | None = None
    duration_days: int | None = None

    def fields(self) -> dict[str, Any]:
        """The overridden fields only."""
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}

    def is_empty(self) -> bool:
        return not self.fields()

    def merge(self, **values: Any) -> None:
        for name, value in values.items():
            if name not in _OVERRIDE_FIELDS:
                raise ValueError(f"Field {name!r} cannot be overridden")
            setattr(self, name, value)


_OVERRIDE_FIELDS = frozenset(f.name for f in dataclasses.fields(TaskOverride))


def _now() -> datetime:
    return datetime.now()


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Layer:
    """A named candidate schedule expressed as overrides on the base."""

    name: str
    algorithm: str = ""
    description: str = ""
    overrides: dict[str, TaskOverride] = field(default_factory=dict)
    metrics: dict[str, float] = field(default_factory=dict)
    visible: bool = True
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    modified_at: datetime = field(default_factory=_now)

    def touch(self) -> None:
        self.modified_at = _now()


class LayerOperationType(Enum):
    CREATE = "create"
    DELETE = "delete"
    SWITCH = "switch"
    VISIBILITY = "visibility"


@dataclass
class LayerOperation:
    """One undoable change to the layer list, the active layer or visibility.

    ``layer`` keeps the layer object itself for create and delete so undo can
    put it back at ``index`` with its edit history. Switches record both ends.
    """

    type: LayerOperationType
    layer_id: str | None
    layer: Layer | None = None
    index: int = 0
    previous_active_id: str | None = None
    undo_history: list[dict[str, TaskOverride]] = field(default_factory=list)
    redo_history: list[dict[str, TaskOverride]] = field(default_factory=list)


def diff_snapshots(
    before: dict[str, dict[str, Any]], after: dict[str, dict[str, Any]]
) -> dict[str, TaskOverride]:
    """Build sparse overrides from two per-task field snapshots.

    Only fields whose value changed are kept, and tasks with no changes are
    omitted. Tasks missing from ``before`` are ignored.
    """
    overrides: dict[str, TaskOverride] = {}
    for task_id, new_fields in after.items():
        old_fields = before.get(task_id)
        if old_fields is None:
            continue
        changed = {
            name: value
            for name, value in new_fields.items()
            if name in _OVERRIDE_FIELDS and old_fields.get(name) != value and value is not None
        }
        if changed:
            overrides[task_id] = TaskOverride(**changed)
    return overrides


def apply_overrides(base: T, layers: list[Layer], task_id: str) -> T:
    """Copy of ``base`` with each layer's override for ``task_id`` applied in order."""
    result = base
    for layer in layers:
        override = layer.overrides.get(task_id)
        if override is None:
            continue
        known = {f.name for f in dataclasses.fields(result)}  # type: ignore[arg-type]
        changes = {k: v for k, v in override.fields().items() if k in known}
        if changes:
            result = dataclasses.replace(result, **changes)  # type: ignore[type-var]
    return result if result is not base else copy.copy(base)


class LayerManager:
    """Owns the ordered layer list, the active layer and per-layer edit history."""

    def __init__(self, max_undo_steps: int = 50) -> None:
        self.layers: list[Layer] = []
        self.active_layer_id: str | None = None
        self.max_undo_steps = max_undo_steps
        self._undo: dict[str, list[dict[str, TaskOverride]]] = {}
        self._redo: dict[str, list[dict[str, TaskOverride]]] = {}
        self._operations: list[LayerOperation] = []
        self._undone_operations: list[LayerOperation] = []

    # Lookup

    def get_layer(self, layer_id: str) -> Layer:
        for layer in self.layers:
            if layer.id == layer_id:
                return layer
        raise LayerNotFoundError(f"Unknown layer: {layer_id}")

    def find_by_name(self, name: str) -> Layer | None:
        return next((layer for layer in self.layers if layer.name == name), None)

    @property
    def active_layer(self) -> Layer | None:
        if self.active_layer_id is None:
            return None
        return self.get_layer(self.active_layer_id)

    def visible_layers(self) -> list[Layer]:
        """Visible layers in composition order: creation order, active layer last."""
        visible = [layer for layer in self.layers if layer.visible]
        active = [layer for layer in visible if layer.id == self.active_layer_id]
        return [layer for layer in visible if layer.id != self.active_layer_id] + active

    # Lifecycle

    def create_layer(
        self,
        name: str,
        algorithm: str = "",
        overrides: dict[str, TaskOverride] | None = None,
        description: str = "",
    ) -> Layer:
        """Create and register a layer. Empty overrides are dropped."""
        sparse = {k: v for k, v in (overrides or {}).items() if not v.is_empty()}
        layer = Layer(name=name, algorithm=algorithm, description=description, overrides=sparse)
        operation = LayerOperation(
            LayerOperationType.CREATE, layer.id, layer=layer, index=len(self.layers)
        )
        self._attach(operation)
        self._record(operation)
        logger.changes(f"Created layer '{name}' with {len(sparse)} overrides")
        return layer

    def delete_layer(self, layer_id: str) -> None:
        """Remove a layer. If it was active, no layer is active afterwards."""
        layer = self.get_layer(layer_id)
        operation = LayerOperation(
            LayerOperationType.DELETE,
            layer.id,
            layer=layer,
            previous_active_id=self.active_layer_id,
        )
        self._detach(operation)
        self._record(operation)
        logger.changes(f"Deleted layer '{layer.name}'")

    def rename_layer(self, layer_id: str, name: str) -> None:
        layer = self.get_layer(layer_id)
        layer.name = name
        layer.touch()

    def set_visibility(self, layer_id: str, visible: bool) -> None:
        layer = self.get_layer(layer_id)
        if layer.visible != visible:
            self.toggle_visibility(layer_id)

    def toggle_visibility(self, layer_id: str) -> bool:
        """Flip a layer's visibility and return the new state."""
        layer = self.get_layer(layer_id)
        layer.visible = not layer.visible
        self._record(LayerOperation(LayerOperationType.VISIBILITY, layer_id))
        return layer.visible

    def set_active_layer(self, layer_id: str | None) -> None:
        """Make a layer the edit target, or clear the active layer with None."""
        if layer_id is not None:
            self.get_layer(layer_id)
        if layer_id == self.active_layer_id:
            return
        self._record(
            LayerOperation(
                LayerOperationType.SWITCH, layer_id, previous_active_id=self.active_layer_id
            )
        )
        self.active_layer_id = layer_id

    # Layer operation history

    def _attach(self, operation: LayerOperation) -> None:
        layer = operation.layer
        assert layer is not None
        self.layers.insert(operation.index, layer)
        self._undo[layer.id] = operation.undo_history
        self._redo[layer.id] = operation.redo_history

    def _detach(self, operation: LayerOperation) -> None:
        layer = operation.layer
        assert layer is not None
        operation.index = self.layers.index(layer)
        self.layers.remove(layer)
        operation.undo_history = self._undo.pop(layer.id, [])
        operation.redo_history = self._redo.pop(layer.id, [])
        if self.active_layer_id == layer.id:
            self.active_layer_id = None

    def _record(self, operation: LayerOperation) -> None:
        self._operations.append(operation)
        if len(self._operations) > self.max_undo_steps:
            del self._operations[0]
        self._undone_operations = []

    def can_undo_layer_operation(self) -> bool:
        return bool(self._operations)

    def can_redo_layer_operation(self) -> bool:
        return bool(self._undone_operations)

    def undo_layer_operation(self) -> bool:
        """Revert the last create, delete, active switch or visibility change.

        A deleted layer comes back at its old position with its override
        history, and becomes active again if it was active when deleted.
        """
        if not self._operations:
            return False
        operation = self._operations.pop()
        kind = operation.type
        if kind is LayerOperationType.CREATE:
            self._detach(operation)
        elif kind is LayerOperationType.DELETE:
            self._attach(operation)
            self.active_layer_id = operation.previous_active_id
        elif kind is LayerOperationType.SWITCH:
            self.active_layer_id = operation.previous_active_id
        else:
            layer = self.get_layer(operation.layer_id or "")
            layer.visible = not layer.visible
        self._undone_operations.append(operation)
        logger.changes(f"Undid layer {kind.value}")
        return True

    def redo_layer_operation(self) -> bool:
        """Re-apply the last undone layer operation."""
        if not self._undone_operations:
            return False
        operation = self._undone_operations.pop()
        kind = operation.type
        if kind is LayerOperationType.CREATE:
            self._attach(operation)
        elif kind is LayerOperationType.DELETE:
            self._detach(operation)
        elif kind is LayerOperationType.SWITCH:
            self.active_layer_id = operation.layer_id
        else:
            layer = self.get_layer(operation.layer_id or "")
            layer.visible = not layer.visible
        self._operations.append(operation)
        logger.changes(f"Redid layer {kind.value}")
        return True

    # Metrics

    def update_layer_metrics(self, layer_id: str, metrics: dict[str, float]) -> None:
        layer = self.get_layer(layer_id)
        layer.metrics.update(metrics)
        layer.touch()

    def metric_comparison(self, *names: str) -> dict[str, dict[str, float]]:
        """Metrics per visible layer name, restricted to ``names`` when given."""
        comparison: dict[str, dict[str, float]] = {}
        for layer in self.visible_layers():
            comparison[layer.name] = {
                k: v for k, v in layer.metrics.items() if not names or k in names
            }
        return comparison

    # Reading

    def effective_task(self, base: T, layers: list[Layer] | None = None) -> T:
        """Compose a task with layer overrides; the last layer wins per field.

        Works for any dataclass task with an ``id`` (interactive tasks and
        calendar tasks alike). Defaults to the visible layers with the active
        layer applied last.
        """
        chosen = self.visible_layers() if layers is None else layers
        return apply_overrides(base, chosen, base.id)  # type: ignore[attr-defined]

    # Editing the active layer

    def _require_active(self) -> Layer:
        layer = self.active_layer
        if layer is None:
            raise LayerNotFoundError("No active layer")
        return layer

    def _push_history(self, layer: Layer) -> None:
        history = self._undo.setdefault(layer.id, [])
        history.append(copy.deepcopy(layer.overrides))
        if len(history) > self.max_undo_steps:
            del history[0]
        self._redo[layer.id] = []

    def set_override(self, task_id: str, **values: Any) -> TaskOverride:
        """Set override fields for a task on the active layer."""
        unknown = sorted(set(values) - _OVERRIDE_FIELDS)
        if unknown:
            raise ValueError(f"Field {unknown[0]!r} cannot be overridden")
        layer = self._require_active()
        self._push_history(layer)
        override = layer.overrides.setdefault(task_id, TaskOverride())
        override.merge(**values)
        if override.is_empty():
            del layer.overrides[task_id]
        layer.touch()
        logger.changes(f"Layer '{layer.name}': override {task_id} {values}")
        return override

    def remove_override(self, task_id: str) -> bool:
        """Drop a task's override from the active layer. Returns False if there was none."""
        layer = self._require_active()
        if task_id not in layer.overrides:
            return False
        self._push_history(layer)
        del layer.overrides[task_id]
        layer.touch()
        return True

    def undo(self, layer_id: str | None = None) -> bool:
        """Revert the last override edit on a layer (default: the active one)."""
        layer = self.get_layer(layer_id) if layer_id else self._require_active()
        history = self._undo.get(layer.id, [])
        if not history:
            return False
        self._redo.setdefault(layer.id, []).append(copy.deepcopy(layer.overrides))
        layer.overrides = history.pop()
        layer.touch()
        return True

    def redo(self, layer_id: str | None = None) -> bool:
        """Re-apply the last undone override edit."""
        layer = self.get_layer(layer_id) if layer_id else self._require_active()
        future = self._redo.get(layer.id, [])
        if not future:
            return False
        self._undo.setdefault(layer.id, []).append(copy.deepcopy(layer.overrides))
        layer.overrides = future.pop()
        layer.touch()
        return True
